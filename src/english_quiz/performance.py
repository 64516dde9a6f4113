"""Per-question performance tracking and practice prioritisation."""
from datetime import datetime
from typing import Optional

from english_quiz.exceptions import ValidationError
from english_quiz.models import QuestionPerformance, UserStats, category_stats_dict

WEAK_POINT_THRESHOLD = 50.0
WEAK_POINT_MIN_ATTEMPTS = 2
REVIEW_AFTER_DAYS = 7
DEFAULT_PRIORITY_LIMIT = 10
SUMMARY_PRIORITY_LIMIT = 5
RECENT_ACTIVITY_COUNT = 10


def calc_success_rate(correct: int, total: int) -> float:
    if total == 0:
        return 0.0
    return correct / total * 100


def derive_flags(perf: QuestionPerformance, was_correct: bool, now: datetime) -> None:
    """Recompute is_weak_point and needs_review from the record's current counters.

    needs_review compares ``now`` against last_attempt_at, which the updater has
    already moved to ``now``; at update time the staleness term is therefore
    always false and the flag reduces to "this attempt was wrong".
    """
    perf.is_weak_point = (
        perf.success_rate < WEAK_POINT_THRESHOLD
        and perf.total_attempts >= WEAK_POINT_MIN_ATTEMPTS
    )
    days_since = 0.0
    if perf.last_attempt_at is not None:
        days_since = (now - perf.last_attempt_at).total_seconds() / 86400
    perf.needs_review = (not was_correct) or days_since > REVIEW_AFTER_DAYS


def find_performance(stats: UserStats, question_id: str, exercise_id: str) -> Optional[QuestionPerformance]:
    for perf in stats.question_performance:
        if perf.question_id == question_id and perf.exercise_id == exercise_id:
            return perf
    return None


def update_question_performance(
    stats: UserStats,
    question_id: str,
    exercise_id: str,
    category: str,
    question_type: str,
    question_text: str,
    is_correct: bool,
    time_spent: float = 0,
    now: Optional[datetime] = None,
) -> QuestionPerformance:
    """Apply one attempt to the matching record, creating it on first sight."""
    now = now or datetime.now()
    perf = find_performance(stats, question_id, exercise_id)
    if perf is None:
        perf = QuestionPerformance(
            question_id=question_id,
            exercise_id=exercise_id,
            category=category,
            question_type=question_type,
            question_text=question_text,
            last_attempt_at=now,
        )
        stats.question_performance.append(perf)

    perf.total_attempts += 1
    if is_correct:
        perf.correct_attempts += 1
    else:
        perf.wrong_attempts += 1

    perf.success_rate = calc_success_rate(perf.correct_attempts, perf.total_attempts)

    if time_spent > 0:
        perf.average_time_spent_seconds = (
            perf.average_time_spent_seconds * (perf.total_attempts - 1) + time_spent
        ) / perf.total_attempts

    perf.last_attempt_at = now
    derive_flags(perf, is_correct, now)
    return perf


def _priority_key(perf: QuestionPerformance):
    last = perf.last_attempt_at.timestamp() if perf.last_attempt_at else float("-inf")
    # Weak first, then needs review, then lowest success rate, then most recent.
    return (not perf.is_weak_point, not perf.needs_review, perf.success_rate, -last)


def get_priority_questions(
    performances: list,
    category: Optional[str] = None,
    limit: int = DEFAULT_PRIORITY_LIMIT,
) -> list:
    """Rank questions for re-practice. The input list is left untouched."""
    if limit < 0:
        raise ValidationError("limit must not be negative", {"limit": "must be >= 0"})
    questions = performances
    if category:
        questions = [q for q in questions if q.category == category]
    return sorted(questions, key=_priority_key)[:limit]


def count_weak_points(performances: list) -> int:
    return sum(1 for p in performances if p.is_weak_point)


def count_needs_review(performances: list) -> int:
    return sum(1 for p in performances if p.needs_review)


def get_performance_stats(stats: UserStats) -> dict:
    """Overview used by the dashboard."""
    performance = stats.question_performance
    return {
        "totalQuestions": stats.total_questions,
        "correctAnswers": stats.correct_answers,
        "successRate": calc_success_rate(stats.correct_answers, stats.total_questions),
        "weakPoints": count_weak_points(performance),
        "needsReview": count_needs_review(performance),
        "categoryBreakdown": category_stats_dict(stats.category_stats),
        "recentActivity": [a.to_dict() for a in stats.answer_history[-RECENT_ACTIVITY_COUNT:]],
        "priorityQuestions": [
            p.to_dict() for p in get_priority_questions(performance, None, SUMMARY_PRIORITY_LIMIT)
        ],
    }
