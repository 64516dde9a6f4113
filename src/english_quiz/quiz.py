"""Quiz engine: turning exercises into questions, checking answers, practice sets."""
import random
from typing import Optional

from english_quiz.exceptions import ValidationError
from english_quiz.exercises import get_exercises_by_category, list_exercises
from english_quiz.models import ClozeExercise
from english_quiz.stats import get_priority


def build_quiz_items(exercises: list) -> list[dict]:
    """Flatten exercises into one item per answerable question."""
    items = []
    for exercise in exercises:
        if isinstance(exercise, ClozeExercise):
            items.append({
                "id": exercise.id,
                "exerciseId": exercise.id,
                "category": exercise.category,
                "type": "multiple-choice",
                "question": exercise.question,
                "options": exercise.options,
                "correct": exercise.correct,
                "blanks": [],
                "context": None,
            })
            continue
        context = getattr(exercise, "passage", None) or getattr(exercise, "transcript", None)
        for q in exercise.questions:
            items.append({
                "id": q.id,
                "exerciseId": exercise.id,
                "category": exercise.category,
                "type": q.type,
                "question": q.question,
                "options": q.options,
                "correct": q.correct,
                "blanks": q.blanks,
                "context": context,
                "title": exercise.title,
            })
    return items


def get_quiz_items(db_path: str, category: str, count: int = 10) -> list[dict]:
    if count < 1:
        raise ValidationError("count must be at least 1", {"count": count})
    items = build_quiz_items(get_exercises_by_category(db_path, category))
    return random.sample(items, min(count, len(items)))


def check_answer(item: dict, answer) -> bool:
    if item["type"] == "fill-blank":
        if isinstance(answer, str):
            answer = answer.split(",")
        answers = [a.strip().lower() for a in answer or []]
        blanks = [b.strip().lower() for b in item["blanks"]]
        return len(answers) == len(blanks) and answers == blanks
    return str(answer or "").strip().lower() == str(item["correct"]).strip().lower()


def correct_answer_text(item: dict) -> str:
    if item["type"] == "fill-blank":
        return ", ".join(item["blanks"])
    return item["correct"]


def build_result(item: dict, answer, is_correct: bool) -> dict:
    """Result entry in the shape accepted by stats.update_stats."""
    return {
        "id": item["id"],
        "exerciseId": item["exerciseId"],
        "category": item["category"],
        "type": item["type"],
        "question": item["question"],
        "userAnswer": answer,
        "correctAnswer": correct_answer_text(item),
        "isCorrect": is_correct,
    }


def get_practice_items(
    db_path: str, user_id: int, category: Optional[str] = None, limit: int = 10,
) -> list[dict]:
    """Current quiz items for the user's highest-priority questions, in priority order.

    Questions whose exercise is no longer active are skipped.
    """
    priority = get_priority(db_path, user_id, category, limit)["priorityQuestions"]
    exercises = [e for group in list_exercises(db_path).values() for e in group]
    by_key = {(i["exerciseId"], i["id"]): i for i in build_quiz_items(exercises)}
    return [
        by_key[(p["exerciseId"], p["questionId"])]
        for p in priority
        if (p["exerciseId"], p["questionId"]) in by_key
    ]
