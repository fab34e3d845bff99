import pytest

from conftest import auth_headers, sample_question, seed_questions, signup


@pytest.fixture()
def admin(client, admin_token):
    headers = auth_headers(admin_token)

    def call(method, path, **kwargs):
        return getattr(client, method)(f"/api/admin{path}", headers=headers, **kwargs)
    return call


def create_exam(admin, name="UPSC CSE", **extra):
    res = admin("post", "/exams", json={"name": name, **extra})
    assert res.status_code == 201, res.get_json()
    return res.get_json()["id"]


def create_category(admin, name="History"):
    res = admin("post", "/categories", json={"name": name, "description": f"{name} questions"})
    assert res.status_code == 201, res.get_json()
    return res.get_json()["id"]


def test_non_admin_is_forbidden(client, user_token):
    res = client.get("/api/admin/exams", headers=auth_headers(user_token))
    assert res.status_code == 403
    assert res.get_json()["error_code"] == "AUTH_002"

    res = client.get("/api/admin/stats")
    assert res.status_code == 401


def test_role_claim_alone_does_not_grant_admin(app, client, user_token):
    from csdaily.core.auth import create_token
    import jwt

    claims = jwt.decode(user_token, options={"verify_signature": False})
    forged = create_token(
        {"id": claims["userId"], "email": claims["email"], "role": "admin"},
        app.config["JWT_SECRET"],
    )
    res = client.get("/api/admin/exams", headers=auth_headers(forged))
    assert res.status_code == 403


def test_exam_crud(admin):
    exam_id = create_exam(admin, "UPSC CSE", category="Civil Services", description="Prelims")

    res = admin("get", f"/exams/{exam_id}")
    assert res.get_json()["exam"]["category"] == "Civil Services"

    res = admin("put", f"/exams/{exam_id}", json={"description": "Prelims and Mains"})
    exam = res.get_json()["exam"]
    assert exam["description"] == "Prelims and Mains"
    assert exam["name"] == "UPSC CSE"

    res = admin("post", "/exams", json={"name": "UPSC CSE"})
    assert res.status_code == 409
    assert res.get_json()["error_code"] == "RES_002"

    res = admin("post", "/exams", json={"name": "U"})
    assert res.status_code == 400

    res = admin("get", "/exams")
    assert [e["name"] for e in res.get_json()["exams"]] == ["UPSC CSE"]

    res = admin("delete", f"/exams/{exam_id}")
    assert res.get_json()["deleted"] is True
    assert admin("get", f"/exams/{exam_id}").status_code == 404


def test_category_crud(admin):
    category_id = create_category(admin, "History")

    res = admin("put", f"/categories/{category_id}", json={"name": "Modern History"})
    assert res.get_json()["category"]["name"] == "Modern History"

    other_id = create_category(admin, "Polity")
    res = admin("put", f"/categories/{other_id}", json={"name": "Modern History"})
    assert res.status_code == 409

    res = admin("get", "/categories")
    assert [c["name"] for c in res.get_json()["categories"]] == ["Modern History", "Polity"]

    assert admin("delete", f"/categories/{category_id}").status_code == 200
    assert admin("delete", f"/categories/{category_id}").status_code == 404


def test_exam_category_mappings(admin):
    exam_id = create_exam(admin)
    category_id = create_category(admin)

    res = admin("post", f"/exams/{exam_id}/categories/{category_id}")
    assert res.status_code == 201

    res = admin("post", f"/exams/{exam_id}/categories/{category_id}")
    assert res.status_code == 409

    res = admin("get", f"/exams/{exam_id}/categories")
    assert [c["id"] for c in res.get_json()["categories"]] == [category_id]

    res = admin("post", f"/exams/{exam_id}/categories/9999")
    assert res.status_code == 404

    assert admin("delete", f"/exams/{exam_id}/categories/{category_id}").status_code == 200
    assert admin("delete", f"/exams/{exam_id}/categories/{category_id}").status_code == 404


def test_deleting_exam_orphans_its_only_category(app, client, admin):
    seed_questions(app, [sample_question("Ethics", f"E{i}") for i in range(3)]
                   + [sample_question("Polity", "P")])
    categories = {c["name"]: c["id"] for c in admin("get", "/categories").get_json()["categories"]}

    exam_id = create_exam(admin, "UPSC CSE")
    other_exam_id = create_exam(admin, "State PSC")
    admin("post", f"/exams/{exam_id}/categories/{categories['Ethics']}")
    admin("post", f"/exams/{exam_id}/categories/{categories['Polity']}")
    admin("post", f"/exams/{other_exam_id}/categories/{categories['Polity']}")

    user = signup(client, "aspirant@example.com")
    client.put("/api/users/me/exam", json={"exam_id": exam_id}, headers=auth_headers(user["token"]))

    impact = admin("get", f"/exams/{exam_id}/deletion-impact").get_json()
    assert impact["exam_name"] == "UPSC CSE"
    assert impact["category_mappings_to_remove"] == 2
    assert impact["users_assigned"] == 1
    assert impact["questions_no_longer_accessible"] == 3
    assert impact["orphaned_categories"] == [{"id": categories["Ethics"], "name": "Ethics"}]
    assert impact["orphaned_categories_count"] == 1

    result = admin("delete", f"/exams/{exam_id}").get_json()
    assert result["category_mappings_removed"] == 2
    assert result["users_unassigned"] == 1

    me = client.get("/api/auth/me", headers=auth_headers(user["token"])).get_json()["user"]
    assert me["exam_id"] is None

    stats = admin("get", "/question-library/stats").get_json()
    assert stats["total_questions"] == 4
    assert stats["orphaned_categories_count"] == 1
    assert stats["orphaned_categories"][0]["name"] == "Ethics"
    assert stats["orphaned_categories"][0]["question_count"] == 3
    assert stats["questions_by_exam"] == [
        {"exam_id": other_exam_id, "exam_name": "State PSC", "question_count": 1}
    ]


def test_deleting_category_keeps_questions(app, admin):
    seed_questions(app, [sample_question("Ethics", "E1"), sample_question("Ethics", "E2")])
    category_id = admin("get", "/categories").get_json()["categories"][0]["id"]
    exam_id = create_exam(admin)
    admin("post", f"/exams/{exam_id}/categories/{category_id}")

    impact = admin("get", f"/categories/{category_id}/deletion-impact").get_json()
    assert impact["category_name"] == "Ethics"
    assert impact["exam_mappings_to_remove"] == 1
    assert impact["exams_using_category"] == [{"id": exam_id, "name": "UPSC CSE"}]
    assert impact["questions_count"] == 2

    result = admin("delete", f"/categories/{category_id}").get_json()
    assert result["exam_mappings_removed"] == 1

    with app.app_context():
        remaining = app.db_manager.execute_query("SELECT COUNT(*) as count FROM questions")[0]["count"]
    assert remaining == 2
    assert admin("get", f"/exams/{exam_id}/categories").get_json()["categories"] == []


def test_question_import_endpoint(admin):
    res = admin("post", "/questions/import", json={"questions": [
        sample_question("Geography", "G1"),
        sample_question("Geography", "G2", correct="z"),
    ]})
    assert res.status_code == 200
    body = res.get_json()
    assert body["saved_count"] == 1
    assert body["total_count"] == 2
    assert len(body["errors"]) == 1

    res = admin("post", "/questions/import", json=[sample_question("Geography", "G3")])
    assert res.get_json()["saved_count"] == 1

    res = admin("post", "/questions/import", json={"items": []})
    assert res.status_code == 400
    assert res.get_json()["error_code"] == "VAL_002"


def test_system_stats(app, client, admin):
    seed_questions(app, [sample_question("History", "H1")])
    create_exam(admin)
    user = signup(client, "aspirant@example.com")
    qid = client.post("/api/questions/generate", json={"category": "all"},
                      headers=auth_headers(user["token"])).get_json()["questions"][0]["id"]
    client.post("/api/answers", json={"question_id": qid, "selected_answer": "a", "is_correct": True},
                headers=auth_headers(user["token"]))

    stats = admin("get", "/stats").get_json()
    assert stats == {
        "users_count": 2,
        "questions_count": 1,
        "answers_count": 1,
        "answers_today": 1,
        "categories_count": 1,
        "exams_count": 1,
    }
