"""Runtime settings read from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from english_quiz.exceptions import ValidationError

load_dotenv()

DATA_DIR = Path.home() / ".english_quiz"


@dataclass(frozen=True)
class Settings:
    db_path: str
    log_level: str
    db_timeout: float
    pending_path: str


def _read_timeout() -> float:
    raw = os.getenv("ENGLISH_QUIZ_DB_TIMEOUT", "5")
    try:
        timeout = float(raw)
    except ValueError:
        timeout = -1.0
    if timeout < 0:
        raise ValidationError(
            f"ENGLISH_QUIZ_DB_TIMEOUT must be a non-negative number of seconds, got {raw!r}",
            {"ENGLISH_QUIZ_DB_TIMEOUT": raw},
        )
    return timeout


def get_settings() -> Settings:
    return Settings(
        db_path=os.getenv("ENGLISH_QUIZ_DB", str(DATA_DIR / "quiz.db")),
        log_level=os.getenv("ENGLISH_QUIZ_LOG_LEVEL", "WARNING").upper(),
        db_timeout=_read_timeout(),
        pending_path=os.getenv("ENGLISH_QUIZ_PENDING", str(DATA_DIR / "pending.json")),
    )
