import json

from conftest import auth_headers, sample_question, seed_questions, signup
from csdaily.core.question_manager import QuestionManager


def generate(client, token, category, count=2, exam_id=None):
    payload = {"category": category, "count": count}
    if exam_id is not None:
        payload["exam_id"] = exam_id
    return client.post("/api/questions/generate", json=payload, headers=auth_headers(token))


def category_id(app, name):
    with app.app_context():
        return app.db_manager.execute_query("SELECT id FROM categories WHERE name = ?", (name,))[0]["id"]


def test_generate_returns_only_requested_category(app, client, user_token):
    seed_questions(app, [sample_question("History", f"H{i}") for i in range(4)]
                   + [sample_question("Polity", f"P{i}") for i in range(4)])
    history_id = category_id(app, "History")

    res = generate(client, user_token, "History", count=5)
    assert res.status_code == 200
    questions = res.get_json()["questions"]
    assert len(questions) == 4
    assert {q["category_id"] for q in questions} == {history_id}


def test_generate_all_spans_categories(app, client, user_token):
    seed_questions(app, [sample_question("History", "H"), sample_question("Polity", "P")])

    questions = generate(client, user_token, "all", count=1).get_json()["questions"]
    assert {q["question_text"] for q in questions} == {"H", "P"}


def test_generate_limits_to_count_times_multiplier(app, client, user_token):
    seed_questions(app, [sample_question("Economy", f"E{i}") for i in range(10)])

    questions = generate(client, user_token, "Economy", count=2).get_json()["questions"]
    assert len(questions) == 6
    # Most recent first
    assert questions[0]["question_text"] == "E9"


def test_generate_unknown_category(client, user_token):
    res = generate(client, user_token, "Astrology")
    assert res.status_code == 404
    assert res.get_json()["error_code"] == "RES_001"


def test_generate_validates_input(client, user_token):
    res = generate(client, user_token, "")
    assert res.status_code == 400
    assert res.get_json()["error_code"] == "VAL_001"

    res = generate(client, user_token, "all", count=0)
    assert res.get_json()["error_code"] == "VAL_003"

    res = generate(client, user_token, "all", count="ten")
    assert res.get_json()["error_code"] == "VAL_003"


def test_generate_is_narrowed_to_exam_categories(app, client, user_token):
    seed_questions(app, [sample_question("History", "H"), sample_question("Polity", "P")])
    with app.app_context():
        exam = app.catalog_manager.create_exam("State PSC")
        app.catalog_manager.add_exam_category(exam["id"], category_id(app, "Polity"))

    questions = generate(client, user_token, "all", exam_id=exam["id"]).get_json()["questions"]
    assert [q["question_text"] for q in questions] == ["P"]

    questions = generate(client, user_token, "History", exam_id=exam["id"]).get_json()["questions"]
    assert questions == []

    res = generate(client, user_token, "all", exam_id=9999)
    assert res.status_code == 404


def save_answer(client, token, question_id, selected, is_correct):
    return client.post("/api/answers", json={
        "question_id": question_id,
        "selected_answer": selected,
        "is_correct": is_correct,
    }, headers=auth_headers(token))


def test_correct_answers_only_include_correct_ones(app, client, user_token):
    seed_questions(app, [sample_question("History", "H1"), sample_question("History", "H2")])
    q1, q2 = sorted(q["id"] for q in generate(client, user_token, "History").get_json()["questions"])

    assert save_answer(client, user_token, q1, "a", True).get_json() == {"success": True}
    assert save_answer(client, user_token, q2, "b", False).status_code == 200

    res = client.get("/api/answers/correct", headers=auth_headers(user_token))
    assert res.get_json()["correctAnswers"] == [q1]


def test_timeout_answer_is_recorded_with_null_selection(app, client, user_token):
    seed_questions(app, [sample_question("History", "H1")])
    qid = generate(client, user_token, "History").get_json()["questions"][0]["id"]

    assert save_answer(client, user_token, qid, None, False).status_code == 200
    with app.app_context():
        rows = app.db_manager.execute_query("SELECT selected_answer, is_correct FROM user_answers")
    assert rows[0]["selected_answer"] is None
    assert not rows[0]["is_correct"]


def test_answers_are_per_user(app, client, user_token):
    seed_questions(app, [sample_question("History", "H1")])
    qid = generate(client, user_token, "History").get_json()["questions"][0]["id"]
    save_answer(client, user_token, qid, "a", True)

    other = signup(client, "other@example.com")["token"]
    res = client.get("/api/answers/correct", headers=auth_headers(other))
    assert res.get_json()["correctAnswers"] == []


def test_solved_questions_are_not_reintroduced_after_filtering(app, client, user_token):
    from csdaily.client.feed import filter_questions

    seed_questions(app, [sample_question("History", f"H{i}") for i in range(5)])
    batch = generate(client, user_token, "History", count=5).get_json()["questions"]
    solved = [q["id"] for q in batch[:3]]
    for qid in solved:
        save_answer(client, user_token, qid, "a", True)

    exclusion = client.get("/api/answers/correct", headers=auth_headers(user_token)).get_json()["correctAnswers"]
    fresh = generate(client, user_token, "History", count=5).get_json()["questions"]
    remaining = filter_questions(fresh, exclusion)
    assert len(remaining) == 2
    assert not {q["id"] for q in remaining} & set(solved)


def test_save_answer_validation(app, client, user_token):
    res = save_answer(client, user_token, 12345, "a", True)
    assert res.status_code == 404

    res = save_answer(client, user_token, "1", "a", True)
    assert res.status_code == 400
    assert res.get_json()["error_code"] == "VAL_002"

    res = save_answer(client, user_token, 1, "a", "yes")
    assert res.get_json()["error_code"] == "VAL_002"


def test_stats(app, client, user_token):
    seed_questions(app, [sample_question("History", f"H{i}") for i in range(3)])
    ids = [q["id"] for q in generate(client, user_token, "History").get_json()["questions"]]
    save_answer(client, user_token, ids[0], "a", True)
    save_answer(client, user_token, ids[1], "c", False)
    save_answer(client, user_token, ids[2], None, False)

    res = client.get("/api/stats", headers=auth_headers(user_token))
    assert res.get_json() == {"totalAnswered": 3, "correctAnswers": 1, "wrongAnswers": 2}


def test_public_catalogue(app, client, user_token):
    seed_questions(app, [sample_question("History", "H"), sample_question("Polity", "P")])
    with app.app_context():
        exam = app.catalog_manager.create_exam("UPSC CSE")
        app.catalog_manager.add_exam_category(exam["id"], category_id(app, "History"))

    res = client.get("/api/exams", headers=auth_headers(user_token))
    assert [e["name"] for e in res.get_json()["exams"]] == ["UPSC CSE"]

    res = client.get("/api/categories", headers=auth_headers(user_token))
    assert [c["name"] for c in res.get_json()["categories"]] == ["History", "Polity"]
    assert all(c["question_count"] == 1 for c in res.get_json()["categories"])

    res = client.get(f"/api/categories?exam_id={exam['id']}", headers=auth_headers(user_token))
    assert [c["name"] for c in res.get_json()["categories"]] == ["History"]

    res = client.get("/api/categories?exam_id=abc", headers=auth_headers(user_token))
    assert res.get_json()["error_code"] == "VAL_003"


def test_import_normalizes_and_reports_errors(app):
    with app.app_context():
        result = app.question_manager.save_questions([
            sample_question("Geography", "ok", correct="B"),
            {"category": "Geography", "question_text": "flat", "option_a": "x", "option_b": "y",
             "correct_answer": "b", "question_format": "statement", "difficulty": "hard", "points": 20},
            {"category": "Geography", "question_text": "no answer"},
            sample_question("Geography", "bad answer", correct="e"),
            sample_question("Geography", "bad points", points=-1),
            "not a dict",
        ], "mixed.json")

        assert result["saved_count"] == 2
        assert result["total_count"] == 6
        assert len(result["errors"]) == 4

        rows = app.db_manager.execute_query(
            "SELECT correct_answer, question_format, difficulty, points FROM questions ORDER BY id"
        )
        assert rows[0] == {"correct_answer": "b", "question_format": "multiple_choice",
                           "difficulty": "medium", "points": 10}
        assert rows[1]["question_format"] == "statement"
        assert rows[1]["points"] == 20

        category = app.db_manager.execute_query("SELECT question_count FROM categories WHERE name = 'Geography'")
        assert category[0]["question_count"] == 2


def test_load_json_folder(app, tmp_path):
    folder = tmp_path / "json_questions"
    folder.mkdir()
    (folder / "history.json").write_text(json.dumps([sample_question("History", "H1")]), encoding="utf-8")
    (folder / "broken.json").write_text("{not json", encoding="utf-8")
    (folder / "notes.txt").write_text("ignored", encoding="utf-8")

    with app.app_context():
        result = app.question_manager.load_json_folder(str(folder))

    assert result["total_files"] == 1
    assert result["total_questions"] == 1
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith("broken.json")


class DummyDB:
    db_type = "sqlite"

    def __init__(self, results):
        self.results = list(results)
        self.queries = []

    def execute_query(self, query, params=None):
        self.queries.append((query, params or ()))
        return self.results.pop(0) if self.results else []


def test_generate_queries_recent_questions_with_multiplier():
    db = DummyDB([[{"id": 3}], []])
    qm = QuestionManager(db, fetch_multiplier=4)

    qm.generate_questions("History", 2)

    query, params = db.queries[-1]
    assert "ORDER BY created_at DESC" in query
    assert params == (3, 8)
