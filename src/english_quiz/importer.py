"""Import exercises and exported user statistics from JSON or YAML files."""
import json
import logging
from pathlib import Path

import yaml

from english_quiz.db import get_connection
from english_quiz.exceptions import QuizError, ValidationError
from english_quiz.exercises import create_exercise
from english_quiz.models import CATEGORIES, UserStats
from english_quiz.stats import replace_stats

logger = logging.getLogger(__name__)


def read_file_content(file_path: str):
    path = Path(file_path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    if suffix == ".json":
        return json.loads(text)
    raise ValidationError(f"Unsupported file type: {suffix or path.name}", {"file": "expected .json or .yaml"})


def normalize_exercises(data: dict) -> list[dict]:
    """Turn a ``{category: [exercise, ...]}`` document into exercise payloads."""
    if not isinstance(data, dict):
        raise ValidationError("Exercise file must map categories to lists of exercises")
    payloads = []
    for category, exercises in data.items():
        if category not in CATEGORIES:
            logger.warning("Skipping unknown category %r", category)
            continue
        for exercise in exercises or []:
            payload = {"category": category, "isActive": True}
            if category == "clozetext":
                raw_id = exercise.get("id")
                if raw_id is not None and not str(raw_id).startswith("clozetext-"):
                    raw_id = f"clozetext-{raw_id}"
                payload.update(
                    id=raw_id,
                    question=exercise.get("question"),
                    options=exercise.get("options"),
                    correct=exercise.get("correct"),
                    image=exercise.get("image") or "",
                )
            else:
                payload.update(
                    id=exercise.get("id"),
                    title=exercise.get("title"),
                    questions=[
                        {**q, "type": q.get("type") or "multiple-choice"}
                        for q in exercise.get("questions") or []
                    ],
                )
                if category == "reading":
                    payload["passage"] = exercise.get("passage") or ""
                else:
                    payload["audioUrl"] = exercise.get("audioUrl") or ""
                    payload["transcript"] = exercise.get("transcript") or ""
            payloads.append(payload)
    return payloads


def import_exercises(db_path: str, file_path: str, replace: bool = False) -> dict:
    """Create every exercise in the file; invalid ones are logged and skipped."""
    payloads = normalize_exercises(read_file_content(file_path))
    if replace:
        conn = get_connection(db_path)
        conn.execute("DELETE FROM exercises")
        conn.commit()
        conn.close()
        logger.info("Cleared existing exercises")

    counts = {c: 0 for c in CATEGORIES}
    skipped = 0
    for payload in payloads:
        try:
            exercise = create_exercise(db_path, payload)
        except QuizError as e:
            logger.warning("Skipped exercise %s: %s", payload.get("id"), e.message)
            skipped += 1
            continue
        counts[exercise.category] += 1
    return {"imported": counts, "skipped": skipped, "filename": Path(file_path).name}


def import_user_stats(db_path: str, user_id: int, file_path: str) -> UserStats:
    """Load an exported stats document (or a whole user export) for the user."""
    data = read_file_content(file_path)
    if isinstance(data, dict) and isinstance(data.get("stats"), dict):
        data = data["stats"]
    try:
        stats = UserStats.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed stats document: {e}") from e
    replace_stats(db_path, user_id, stats)
    logger.info("Imported stats for user %s from %s", user_id, file_path)
    return stats
