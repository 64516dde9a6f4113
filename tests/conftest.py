import pytest

from english_quiz.db import init_db
from english_quiz.users import register_user


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_quiz.db")
    return db_path


@pytest.fixture
def user(tmp_db):
    """An initialized database with one registered user."""
    init_db(tmp_db)
    return register_user(tmp_db, "alice", "alice@example.com", "secret123")


def make_result(qid="q1", exercise_id="reading-1", category="reading", is_correct=True, **extra):
    result = {
        "id": qid,
        "exerciseId": exercise_id,
        "category": category,
        "type": "multiple-choice",
        "question": f"Question {qid}",
        "userAnswer": "A" if is_correct else "B",
        "correctAnswer": "A",
        "isCorrect": is_correct,
    }
    result.update(extra)
    return result
