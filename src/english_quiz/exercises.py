"""Exercise catalogue: reading, listening and cloze exercises."""
import json
import logging
import re
import sqlite3
import time
from dataclasses import asdict
from datetime import datetime

from english_quiz.db import get_connection
from english_quiz.exceptions import NotFoundError, ValidationError
from english_quiz.models import (
    CATEGORIES, ClozeExercise, Exercise, ListeningExercise, Question, ReadingExercise,
)
from english_quiz.schemas import parse_exercise

logger = logging.getLogger(__name__)


def _load_questions(conn: sqlite3.Connection, exercise_id: str) -> list[Question]:
    rows = conn.execute(
        "SELECT * FROM exercise_questions WHERE exercise_id = ? ORDER BY position",
        (exercise_id,),
    ).fetchall()
    return [
        Question(
            id=r["question_id"],
            question=r["question"],
            type=r["type"],
            options=json.loads(r["options"] or "[]"),
            correct=r["correct"] or "",
            blanks=json.loads(r["blanks"] or "[]"),
        )
        for r in rows
    ]


def _row_to_exercise(conn: sqlite3.Connection, row: sqlite3.Row) -> Exercise:
    active = bool(row["is_active"])
    if row["category"] == "clozetext":
        return ClozeExercise(
            id=row["id"], question=row["question"] or "",
            options=json.loads(row["options"] or "[]"), correct=row["correct"] or "",
            image=row["image"] or "", is_active=active,
        )
    questions = _load_questions(conn, row["id"])
    if row["category"] == "listening":
        return ListeningExercise(
            id=row["id"], title=row["title"], audio_url=row["audio_url"] or "",
            transcript=row["transcript"] or "", questions=questions, is_active=active,
        )
    return ReadingExercise(
        id=row["id"], title=row["title"], passage=row["passage"] or "",
        questions=questions, is_active=active,
    )


def exercise_to_dict(exercise: Exercise) -> dict:
    data = asdict(exercise)
    data["isActive"] = data.pop("is_active")
    if "audio_url" in data:
        data["audioUrl"] = data.pop("audio_url")
    return data


def _fetch(db_path: str, where: str = "", params: tuple = ()) -> list[Exercise]:
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM exercises {where} ORDER BY created_at DESC, rowid DESC", params
    ).fetchall()
    exercises = [_row_to_exercise(conn, r) for r in rows]
    conn.close()
    return exercises


def list_exercises(db_path: str) -> dict:
    """Active exercises grouped by category, newest first."""
    grouped = {c: [] for c in CATEGORIES}
    for exercise in _fetch(db_path, "WHERE is_active = 1"):
        grouped[exercise.category].append(exercise)
    return grouped


def get_exercises_by_category(db_path: str, category: str) -> list[Exercise]:
    return _fetch(db_path, "WHERE category = ? AND is_active = 1", (category,))


def list_all_exercises(db_path: str) -> list[Exercise]:
    """Every exercise including soft-deleted ones."""
    return _fetch(db_path)


def get_exercise(db_path: str, exercise_id: str) -> Exercise:
    found = _fetch(db_path, "WHERE id = ?", (exercise_id,))
    if not found:
        raise NotFoundError(f"Exercise {exercise_id} not found")
    return found[0]


def _exists(conn: sqlite3.Connection, exercise_id: str) -> bool:
    return conn.execute("SELECT 1 FROM exercises WHERE id = ?", (exercise_id,)).fetchone() is not None


def check_exercise_id(db_path: str, exercise_id: str) -> dict:
    conn = get_connection(db_path)
    exists = _exists(conn, exercise_id)
    conn.close()
    return {"available": not exists, "exists": exists, "id": exercise_id}


def _fallback_id(category: str) -> str:
    return f"{category}-{int(time.time() * 1000)}"


def next_exercise_id(conn: sqlite3.Connection, category: str) -> str:
    """``{category}-{n}`` where n is one past the highest number in use."""
    pattern = re.compile(rf"^{re.escape(category)}-(\d+)$")
    highest = 0
    for row in conn.execute("SELECT id FROM exercises WHERE category = ?", (category,)):
        match = pattern.match(row["id"])
        if match:
            highest = max(highest, int(match.group(1)))
    candidate = f"{category}-{highest + 1}"
    if _exists(conn, candidate):
        candidate = _fallback_id(category)
    return candidate


def _write(conn: sqlite3.Connection, exercise: Exercise, created_at: str, updated_at: str) -> None:
    cloze = isinstance(exercise, ClozeExercise)
    conn.execute(
        """INSERT INTO exercises
        (id, category, title, passage, audio_url, transcript, question, options, correct,
         image, is_active, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            exercise.id,
            exercise.category,
            getattr(exercise, "title", None),
            getattr(exercise, "passage", None),
            getattr(exercise, "audio_url", None),
            getattr(exercise, "transcript", None),
            exercise.question if cloze else None,
            json.dumps(exercise.options) if cloze else None,
            exercise.correct if cloze else None,
            exercise.image if cloze else None,
            int(exercise.is_active),
            created_at,
            updated_at,
        ),
    )
    for position, q in enumerate(getattr(exercise, "questions", [])):
        conn.execute(
            """INSERT INTO exercise_questions
            (exercise_id, position, question_id, question, type, options, correct, blanks)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (exercise.id, position, q.id, q.question, q.type,
             json.dumps(q.options), q.correct, json.dumps(q.blanks)),
        )


def create_exercise(db_path: str, data: dict) -> Exercise:
    """Validate and store a new exercise, generating its id when none is given."""
    payload = parse_exercise(data)
    conn = get_connection(db_path)
    try:
        if payload.id:
            if _exists(conn, payload.id):
                raise ValidationError(
                    f'An exercise with ID "{payload.id}" already exists',
                    {"id": "duplicate"},
                    suggested_id=_fallback_id(payload.category),
                )
            exercise_id = payload.id
        else:
            exercise_id = next_exercise_id(conn, payload.category)
        exercise = payload.to_model(exercise_id)
        now = datetime.now().isoformat()
        _write(conn, exercise, now, now)
        conn.commit()
    finally:
        conn.close()
    logger.info("Created exercise %s", exercise.id)
    return exercise


def update_exercise(db_path: str, exercise_id: str, data: dict) -> Exercise:
    """Apply the given fields over the stored exercise and re-validate the result."""
    current = exercise_to_dict(get_exercise(db_path, exercise_id))
    merged = {**current, **data, "id": exercise_id}
    exercise = parse_exercise(merged).to_model(exercise_id)
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT created_at FROM exercises WHERE id = ?", (exercise_id,)).fetchone()
        conn.execute("DELETE FROM exercises WHERE id = ?", (exercise_id,))
        _write(conn, exercise, row["created_at"], datetime.now().isoformat())
        conn.commit()
    finally:
        conn.close()
    return exercise


def delete_exercise(db_path: str, exercise_id: str) -> None:
    """Soft delete: the exercise stays in the admin listing."""
    conn = get_connection(db_path)
    cursor = conn.execute(
        "UPDATE exercises SET is_active = 0, updated_at = ? WHERE id = ?",
        (datetime.now().isoformat(), exercise_id),
    )
    conn.commit()
    conn.close()
    if cursor.rowcount == 0:
        raise NotFoundError(f"Exercise {exercise_id} not found")
