"""Seed the database with the bundled starter exercises."""
from pathlib import Path

from english_quiz.db import get_connection
from english_quiz.importer import import_exercises

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether any exercise has been stored yet."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM exercises").fetchone()[0]
    conn.close()
    return count > 0


def seed_all(db_path: str) -> dict | None:
    """Load content/exercises.json unless exercises already exist."""
    if is_seeded(db_path):
        return None
    return import_exercises(db_path, str(CONTENT_DIR / "exercises.json"))
