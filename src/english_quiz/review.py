"""Weak point analysis and answer history browsing."""
import math
from typing import Optional

from english_quiz.exceptions import ValidationError
from english_quiz.stats import read_stats


def get_weak_points(db_path: str, user_id: int, category: Optional[str] = None) -> dict:
    """Weak questions (lowest success rate first) broken down by question type."""
    stats = read_stats(db_path, user_id)
    weak = [p for p in stats.question_performance if p.is_weak_point]
    if category:
        weak = [p for p in weak if p.category == category]
    weak.sort(key=lambda p: p.success_rate)

    by_type = {}
    for p in weak:
        entry = by_type.setdefault(p.question_type, {"count": 0, "avgSuccessRate": 0, "questions": []})
        entry["count"] += 1
        entry["questions"].append(p.to_dict())
    for entry in by_type.values():
        rates = [q["successRate"] for q in entry["questions"]]
        entry["avgSuccessRate"] = sum(rates) / len(rates)

    return {
        "weakPoints": [p.to_dict() for p in weak],
        "analysisByType": by_type,
        "totalWeakPoints": len(weak),
    }


def get_history(
    db_path: str,
    user_id: int,
    category: Optional[str] = None,
    limit: int = 50,
    page: int = 1,
) -> dict:
    """Answer history, newest first, one page at a time."""
    if limit < 1 or page < 1:
        raise ValidationError("limit and page must be positive", {"limit": limit, "page": page})
    history = read_stats(db_path, user_id).answer_history
    if category:
        history = [h for h in history if h.category == category]
    # Within a batch timestamps tie; later entries are newer.
    ordered = [h for _, h in sorted(
        enumerate(history),
        key=lambda pair: (pair[1].timestamp.timestamp() if pair[1].timestamp else 0, pair[0]),
        reverse=True,
    )]
    start = (page - 1) * limit
    return {
        "history": [h.to_dict() for h in ordered[start:start + limit]],
        "totalCount": len(ordered),
        "currentPage": page,
        "totalPages": math.ceil(len(ordered) / limit),
    }
