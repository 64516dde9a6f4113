"""Database initialization and connection management."""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from english_quiz.config import get_settings
from english_quiz.exceptions import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    password_salt TEXT NOT NULL,
    is_active INTEGER DEFAULT 1,
    total_questions INTEGER DEFAULT 0,
    correct_answers INTEGER DEFAULT 0,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS category_stats (
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    category TEXT NOT NULL,
    total INTEGER DEFAULT 0,
    correct INTEGER DEFAULT 0,
    PRIMARY KEY (user_id, category)
);

CREATE TABLE IF NOT EXISTS answer_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    exercise_id TEXT NOT NULL,
    category TEXT NOT NULL,
    question_type TEXT,
    question_text TEXT,
    selected_answer TEXT,
    correct_answer TEXT,
    is_correct INTEGER NOT NULL,
    time_spent_seconds REAL DEFAULT 0,
    timestamp TEXT
);

CREATE TABLE IF NOT EXISTS question_performance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    exercise_id TEXT NOT NULL,
    category TEXT,
    question_type TEXT,
    question_text TEXT,
    total_attempts INTEGER DEFAULT 0,
    correct_attempts INTEGER DEFAULT 0,
    wrong_attempts INTEGER DEFAULT 0,
    success_rate REAL DEFAULT 0,
    average_time_spent_seconds REAL DEFAULT 0,
    last_attempt_at TEXT,
    is_weak_point INTEGER DEFAULT 0,
    needs_review INTEGER DEFAULT 0,
    UNIQUE(user_id, question_id, exercise_id)
);

CREATE TABLE IF NOT EXISTS wrong_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    exercise_id TEXT NOT NULL,
    category TEXT,
    question_text TEXT,
    selected_answer TEXT,
    correct_answer TEXT,
    timestamp TEXT
);

CREATE TABLE IF NOT EXISTS frequently_wrong (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    exercise_id TEXT,
    category TEXT,
    question_text TEXT,
    count INTEGER DEFAULT 1,
    last_wrong_at TEXT,
    UNIQUE(user_id, question_id)
);

CREATE TABLE IF NOT EXISTS exercises (
    id TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    title TEXT,
    passage TEXT,
    audio_url TEXT,
    transcript TEXT,
    question TEXT,
    options TEXT,
    correct TEXT,
    image TEXT,
    is_active INTEGER DEFAULT 1,
    created_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_exercises_category ON exercises(category, is_active);

CREATE TABLE IF NOT EXISTS exercise_questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exercise_id TEXT NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    question_id TEXT NOT NULL,
    question TEXT NOT NULL,
    type TEXT DEFAULT 'multiple-choice',
    options TEXT,
    correct TEXT,
    blanks TEXT
);

CREATE TABLE IF NOT EXISTS app_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);
"""


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    settings = get_settings()
    db_path = db_path or settings.db_path
    conn = sqlite3.connect(db_path, timeout=settings.db_timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def write_transaction(db_path: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Hold the database write lock from the first read to the commit.

    Everything done on the yielded connection is committed together or rolled
    back together. SQLite errors surface as PersistenceError.
    """
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Transaction on %s rolled back: %s", db_path, e)
        raise PersistenceError(str(e), e) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM app_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str | None) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO app_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def init_db(db_path: Optional[str] = None) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    db_path = db_path or get_settings().db_path
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
