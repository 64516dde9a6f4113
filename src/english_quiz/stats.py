"""Recording submitted quiz results and reading back per-user statistics.

A user's statistics are loaded, changed in memory and written back inside a
single write transaction, so a batch of results is stored completely or not
at all and two submissions for the same user never overwrite each other.
"""
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from english_quiz.db import get_connection, write_transaction
from english_quiz.exceptions import NotFoundError
from english_quiz.models import (
    AnswerAttempt, CategoryTally, FrequentlyWrongCounter,
    QuestionPerformance, UserStats, WrongAnswerRecord, format_time, parse_time,
)
from english_quiz.performance import (
    DEFAULT_PRIORITY_LIMIT, count_needs_review, count_weak_points,
    get_performance_stats, get_priority_questions, update_question_performance,
)
from english_quiz.schemas import AttemptInput, parse_submission

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1000


def apply_results(
    stats: UserStats,
    results: list[AttemptInput],
    time_spent: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> UserStats:
    """Fold a batch of validated results into ``stats`` in submission order."""
    time_spent = time_spent or {}
    now = now or datetime.now()

    for result in results:
        stats.total_questions += 1
        question_time = time_spent.get(result.time_key, 0)

        stats.answer_history.append(AnswerAttempt(
            question_id=result.id,
            exercise_id=result.exercise_id,
            category=result.category,
            question_type=result.type,
            question_text=result.question,
            selected_answer=result.user_answer,
            correct_answer=result.correct_answer,
            is_correct=result.is_correct,
            time_spent_seconds=question_time,
            timestamp=now,
        ))
        if len(stats.answer_history) > HISTORY_LIMIT:
            del stats.answer_history[:len(stats.answer_history) - HISTORY_LIMIT]

        update_question_performance(
            stats,
            question_id=result.id,
            exercise_id=result.exercise_id,
            category=result.category,
            question_type=result.type,
            question_text=result.question,
            is_correct=result.is_correct,
            time_spent=question_time,
            now=now,
        )

        tally = stats.category_stats.setdefault(result.category, CategoryTally())
        tally.total += 1
        if result.is_correct:
            stats.correct_answers += 1
            tally.correct += 1
            continue

        stats.wrong_answers.append(WrongAnswerRecord(
            question_id=result.id,
            exercise_id=result.exercise_id,
            category=result.category,
            question_text=result.question,
            selected_answer=result.user_answer,
            correct_answer=result.correct_answer,
            timestamp=now,
        ))
        counter = next((w for w in stats.frequently_wrong if w.question_id == result.id), None)
        if counter:
            counter.count += 1
            counter.last_wrong_at = now
        else:
            stats.frequently_wrong.append(FrequentlyWrongCounter(
                question_id=result.id,
                exercise_id=result.exercise_id,
                category=result.category,
                question_text=result.question,
                count=1,
                last_wrong_at=now,
            ))

    stats.frequently_wrong.sort(key=lambda w: w.count, reverse=True)
    return stats


def _ensure_user(conn: sqlite3.Connection, user_id: int) -> sqlite3.Row:
    user = conn.execute(
        "SELECT id, total_questions, correct_answers FROM users WHERE id = ?", (user_id,)
    ).fetchone()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def load_stats(conn: sqlite3.Connection, user_id: int) -> UserStats:
    user = _ensure_user(conn, user_id)
    stats = UserStats(
        total_questions=user["total_questions"],
        correct_answers=user["correct_answers"],
    )
    for row in conn.execute(
        "SELECT category, total, correct FROM category_stats WHERE user_id = ?", (user_id,)
    ):
        stats.category_stats[row["category"]] = CategoryTally(row["total"], row["correct"])

    stats.answer_history = [
        AnswerAttempt(
            question_id=r["question_id"], exercise_id=r["exercise_id"], category=r["category"],
            question_type=r["question_type"], question_text=r["question_text"],
            selected_answer=r["selected_answer"], correct_answer=r["correct_answer"],
            is_correct=bool(r["is_correct"]), time_spent_seconds=r["time_spent_seconds"],
            timestamp=parse_time(r["timestamp"]),
        )
        for r in conn.execute(
            "SELECT * FROM answer_history WHERE user_id = ? ORDER BY position", (user_id,)
        )
    ]
    stats.question_performance = [
        QuestionPerformance(
            question_id=r["question_id"], exercise_id=r["exercise_id"], category=r["category"],
            question_type=r["question_type"], question_text=r["question_text"],
            total_attempts=r["total_attempts"], correct_attempts=r["correct_attempts"],
            wrong_attempts=r["wrong_attempts"], success_rate=r["success_rate"],
            average_time_spent_seconds=r["average_time_spent_seconds"],
            last_attempt_at=parse_time(r["last_attempt_at"]),
            is_weak_point=bool(r["is_weak_point"]), needs_review=bool(r["needs_review"]),
        )
        for r in conn.execute(
            "SELECT * FROM question_performance WHERE user_id = ? ORDER BY position", (user_id,)
        )
    ]
    stats.wrong_answers = [
        WrongAnswerRecord(
            question_id=r["question_id"], exercise_id=r["exercise_id"], category=r["category"],
            question_text=r["question_text"], selected_answer=r["selected_answer"],
            correct_answer=r["correct_answer"], timestamp=parse_time(r["timestamp"]),
        )
        for r in conn.execute(
            "SELECT * FROM wrong_answers WHERE user_id = ? ORDER BY position", (user_id,)
        )
    ]
    stats.frequently_wrong = [
        FrequentlyWrongCounter(
            question_id=r["question_id"], exercise_id=r["exercise_id"], category=r["category"],
            question_text=r["question_text"], count=r["count"],
            last_wrong_at=parse_time(r["last_wrong_at"]),
        )
        for r in conn.execute(
            "SELECT * FROM frequently_wrong WHERE user_id = ? ORDER BY position", (user_id,)
        )
    ]
    return stats


def save_stats(conn: sqlite3.Connection, user_id: int, stats: UserStats) -> None:
    """Replace everything stored for the user with ``stats``. Caller commits."""
    conn.execute(
        "UPDATE users SET total_questions = ?, correct_answers = ?, updated_at = ? WHERE id = ?",
        (stats.total_questions, stats.correct_answers, datetime.now().isoformat(), user_id),
    )
    for table in ("category_stats", "answer_history", "question_performance",
                  "wrong_answers", "frequently_wrong"):
        conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))

    conn.executemany(
        "INSERT INTO category_stats (user_id, category, total, correct) VALUES (?, ?, ?, ?)",
        [(user_id, c, t.total, t.correct) for c, t in stats.category_stats.items()],
    )
    conn.executemany(
        """INSERT INTO answer_history
        (user_id, position, question_id, exercise_id, category, question_type, question_text,
         selected_answer, correct_answer, is_correct, time_spent_seconds, timestamp)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (user_id, i, a.question_id, a.exercise_id, a.category, a.question_type,
             a.question_text, a.selected_answer, a.correct_answer, int(a.is_correct),
             a.time_spent_seconds, format_time(a.timestamp))
            for i, a in enumerate(stats.answer_history)
        ],
    )
    conn.executemany(
        """INSERT INTO question_performance
        (user_id, position, question_id, exercise_id, category, question_type, question_text,
         total_attempts, correct_attempts, wrong_attempts, success_rate,
         average_time_spent_seconds, last_attempt_at, is_weak_point, needs_review)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (user_id, i, p.question_id, p.exercise_id, p.category, p.question_type,
             p.question_text, p.total_attempts, p.correct_attempts, p.wrong_attempts,
             p.success_rate, p.average_time_spent_seconds, format_time(p.last_attempt_at),
             int(p.is_weak_point), int(p.needs_review))
            for i, p in enumerate(stats.question_performance)
        ],
    )
    conn.executemany(
        """INSERT INTO wrong_answers
        (user_id, position, question_id, exercise_id, category, question_text,
         selected_answer, correct_answer, timestamp)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (user_id, i, w.question_id, w.exercise_id, w.category, w.question_text,
             w.selected_answer, w.correct_answer, format_time(w.timestamp))
            for i, w in enumerate(stats.wrong_answers)
        ],
    )
    conn.executemany(
        """INSERT INTO frequently_wrong
        (user_id, position, question_id, exercise_id, category, question_text, count, last_wrong_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (user_id, i, f.question_id, f.exercise_id, f.category, f.question_text,
             f.count, format_time(f.last_wrong_at))
            for i, f in enumerate(stats.frequently_wrong)
        ],
    )


def update_stats(
    db_path: str,
    user_id: int,
    results: list,
    time_spent: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Record a finished quiz for the user and return the updated stats.

    ``results`` are submission dicts (id, exerciseId, category, type, question,
    userAnswer, correctAnswer, isCorrect); ``time_spent`` maps
    "{exerciseId}-{id}" to seconds.
    """
    submission = parse_submission({"results": results, "timeSpent": time_spent or {}})
    with write_transaction(db_path) as conn:
        stats = load_stats(conn, user_id)
        apply_results(stats, submission.results, submission.time_spent, now)
        save_stats(conn, user_id, stats)
    logger.info("Recorded %d results for user %s", len(submission.results), user_id)
    return stats.to_dict()


def replace_stats(db_path: str, user_id: int, stats: UserStats) -> None:
    with write_transaction(db_path) as conn:
        _ensure_user(conn, user_id)
        save_stats(conn, user_id, stats)


def read_stats(db_path: str, user_id: int) -> UserStats:
    conn = get_connection(db_path)
    try:
        return load_stats(conn, user_id)
    finally:
        conn.close()


def get_stats(db_path: str, user_id: int) -> dict:
    return read_stats(db_path, user_id).to_dict()


def get_priority(
    db_path: str,
    user_id: int,
    category: Optional[str] = None,
    limit: int = DEFAULT_PRIORITY_LIMIT,
) -> dict:
    """Questions to re-practice first, plus weak/review totals over all questions."""
    performance = read_stats(db_path, user_id).question_performance
    return {
        "priorityQuestions": [
            p.to_dict() for p in get_priority_questions(performance, category, limit)
        ],
        "totalWeakPoints": count_weak_points(performance),
        "totalNeedsReview": count_needs_review(performance),
    }


def get_performance(db_path: str, user_id: int) -> dict:
    return get_performance_stats(read_stats(db_path, user_id))