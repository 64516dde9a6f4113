"""Dashboard scoring labels and per-category breakdown."""
from english_quiz.models import CATEGORIES
from english_quiz.performance import calc_success_rate
from english_quiz.stats import get_performance

CATEGORY_NAMES = {
    "reading": "Reading",
    "listening": "Listening",
    "clozetext": "Cloze test",
}


def get_score_label(score: float) -> str:
    if score >= 80:
        return "EXCELLENT"
    elif score >= 65:
        return "GOOD"
    elif score >= 50:
        return "NEEDS WORK"
    return "KEEP PRACTICING"


def get_score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def get_category_scores(breakdown: dict) -> list[dict]:
    results = []
    for category in CATEGORIES:
        tally = breakdown.get(category, {"total": 0, "correct": 0})
        score = calc_success_rate(tally["correct"], tally["total"])
        results.append({
            "category": category,
            "name": CATEGORY_NAMES[category],
            "total": tally["total"],
            "correct": tally["correct"],
            "score": round(score, 1),
            "label": get_score_label(score),
        })
    return results


def get_dashboard(db_path: str, user_id: int) -> dict:
    """Performance summary with presentation rounding applied."""
    performance = get_performance(db_path, user_id)
    return {
        "score": round(performance["successRate"], 1),
        "label": get_score_label(performance["successRate"]),
        "color": get_score_color(performance["successRate"]),
        "categories": get_category_scores(performance["categoryBreakdown"]),
        "performance": performance,
    }
