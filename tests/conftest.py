import pytest

from csdaily.app import create_app
from csdaily.core.config import Config

ADMIN_EMAIL = "admin@example.com"


def make_config(tmp_path):
    db_path = tmp_path / "test.db"

    class TestConfig(Config):
        TESTING = True
        DEBUG = False
        SECRET_KEY = "test-secret"
        JWT_SECRET = None
        DATABASE_TYPE = "sqlite"
        DATABASE_URL = f"sqlite:///{db_path}"
        ADMIN_EMAILS = [ADMIN_EMAIL]
        QUESTIONS_FOLDER = str(tmp_path / "json_questions")

    return TestConfig


@pytest.fixture()
def app(tmp_path):
    return create_app(make_config(tmp_path))


@pytest.fixture()
def client(app):
    return app.test_client()


def signup(client, email="user@example.com", password="secret1"):
    res = client.post("/api/auth/signup", json={"email": email, "password": password})
    assert res.status_code == 200, res.get_json()
    return res.get_json()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user_token(client):
    return signup(client)["token"]


@pytest.fixture()
def admin_token(client):
    return signup(client, ADMIN_EMAIL, "adminpass")["token"]


def sample_question(category, text="Q", correct="a", **extra):
    question = {
        "category": category,
        "question_text": text,
        "options": ["Option A", "Option B", "Option C", "Option D"],
        "correct_answer": correct,
        "explanation": "because",
    }
    question.update(extra)
    return question


def seed_questions(app, questions):
    with app.app_context():
        result = app.question_manager.save_questions(questions, "seed")
    assert not result["errors"], result["errors"]
    return result
