"""Data classes for the quiz domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

CATEGORIES = ("reading", "listening", "clozetext")
QUESTION_TYPES = ("multiple-choice", "true-false", "fill-blank")


def parse_time(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    # Mongo exports use a trailing "Z"
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)


def format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _pick(data: dict, *keys, default=None):
    """First present key wins; lets legacy field names load."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass
class AnswerAttempt:
    question_id: str
    exercise_id: str
    category: str
    question_type: str
    question_text: str
    selected_answer: str
    correct_answer: str
    is_correct: bool
    time_spent_seconds: float = 0
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "exerciseId": self.exercise_id,
            "category": self.category,
            "questionType": self.question_type,
            "questionText": self.question_text,
            "selectedAnswer": self.selected_answer,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
            "timeSpentSeconds": self.time_spent_seconds,
            "timestamp": format_time(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnswerAttempt":
        return cls(
            question_id=str(data["questionId"]),
            exercise_id=str(data["exerciseId"]),
            category=data.get("category", ""),
            question_type=_pick(data, "questionType", default=""),
            question_text=_pick(data, "questionText", "question", default=""),
            selected_answer=_pick(data, "selectedAnswer", default=""),
            correct_answer=_pick(data, "correctAnswer", default=""),
            is_correct=bool(data.get("isCorrect", False)),
            time_spent_seconds=_pick(data, "timeSpentSeconds", "timeSpent", default=0),
            timestamp=parse_time(data.get("timestamp")),
        )


@dataclass
class QuestionPerformance:
    question_id: str
    exercise_id: str
    category: str
    question_type: str
    question_text: str
    total_attempts: int = 0
    correct_attempts: int = 0
    wrong_attempts: int = 0
    success_rate: float = 0
    average_time_spent_seconds: float = 0
    last_attempt_at: Optional[datetime] = None
    is_weak_point: bool = False
    needs_review: bool = False

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "exerciseId": self.exercise_id,
            "category": self.category,
            "questionType": self.question_type,
            "questionText": self.question_text,
            "totalAttempts": self.total_attempts,
            "correctAttempts": self.correct_attempts,
            "wrongAttempts": self.wrong_attempts,
            "successRate": self.success_rate,
            "averageTimeSpentSeconds": self.average_time_spent_seconds,
            "lastAttemptAt": format_time(self.last_attempt_at),
            "isWeakPoint": self.is_weak_point,
            "needsReview": self.needs_review,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionPerformance":
        return cls(
            question_id=str(data["questionId"]),
            exercise_id=str(data["exerciseId"]),
            category=data.get("category", ""),
            question_type=_pick(data, "questionType", default=""),
            question_text=_pick(data, "questionText", "question", default=""),
            total_attempts=data.get("totalAttempts", 0),
            correct_attempts=data.get("correctAttempts", 0),
            wrong_attempts=data.get("wrongAttempts", 0),
            success_rate=data.get("successRate", 0),
            average_time_spent_seconds=_pick(data, "averageTimeSpentSeconds", "averageTimeSpent", default=0),
            last_attempt_at=parse_time(_pick(data, "lastAttemptAt", "lastAttempt")),
            is_weak_point=bool(data.get("isWeakPoint", False)),
            needs_review=bool(data.get("needsReview", False)),
        )


@dataclass
class WrongAnswerRecord:
    question_id: str
    exercise_id: str
    category: str
    question_text: str
    selected_answer: str
    correct_answer: str
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "exerciseId": self.exercise_id,
            "category": self.category,
            "questionText": self.question_text,
            "selectedAnswer": self.selected_answer,
            "correctAnswer": self.correct_answer,
            "timestamp": format_time(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WrongAnswerRecord":
        return cls(
            question_id=str(data["questionId"]),
            exercise_id=str(data["exerciseId"]),
            category=data.get("category", ""),
            question_text=_pick(data, "questionText", "question", default=""),
            selected_answer=_pick(data, "selectedAnswer", default=""),
            correct_answer=_pick(data, "correctAnswer", default=""),
            timestamp=parse_time(data.get("timestamp")),
        )


@dataclass
class FrequentlyWrongCounter:
    question_id: str
    exercise_id: str
    category: str
    question_text: str
    count: int = 1
    last_wrong_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "exerciseId": self.exercise_id,
            "category": self.category,
            "questionText": self.question_text,
            "count": self.count,
            "lastWrongAt": format_time(self.last_wrong_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FrequentlyWrongCounter":
        return cls(
            question_id=str(data["questionId"]),
            exercise_id=str(data.get("exerciseId", "")),
            category=data.get("category", ""),
            question_text=_pick(data, "questionText", "question", default=""),
            count=data.get("count", 1),
            last_wrong_at=parse_time(_pick(data, "lastWrongAt", "lastWrong")),
        )


@dataclass
class CategoryTally:
    total: int = 0
    correct: int = 0


@dataclass
class UserStats:
    total_questions: int = 0
    correct_answers: int = 0
    answer_history: list = field(default_factory=list)
    question_performance: list = field(default_factory=list)
    wrong_answers: list = field(default_factory=list)
    frequently_wrong: list = field(default_factory=list)
    category_stats: dict = field(default_factory=lambda: {c: CategoryTally() for c in CATEGORIES})

    def to_dict(self) -> dict:
        return {
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "answerHistory": [a.to_dict() for a in self.answer_history],
            "questionPerformance": [p.to_dict() for p in self.question_performance],
            "wrongAnswers": [w.to_dict() for w in self.wrong_answers],
            "frequentlyWrong": [f.to_dict() for f in self.frequently_wrong],
            "categoryStats": category_stats_dict(self.category_stats),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "UserStats":
        """Build stats from a stored document, filling anything missing with defaults."""
        data = data or {}
        tallies = {c: CategoryTally() for c in CATEGORIES}
        for category, tally in (data.get("categoryStats") or {}).items():
            if category in tallies and isinstance(tally, dict):
                tallies[category] = CategoryTally(
                    total=tally.get("total") or 0, correct=tally.get("correct") or 0,
                )

        def _items(key):
            value = data.get(key)
            return value if isinstance(value, list) else []

        return cls(
            total_questions=data.get("totalQuestions") or 0,
            correct_answers=data.get("correctAnswers") or 0,
            answer_history=[AnswerAttempt.from_dict(a) for a in _items("answerHistory")],
            question_performance=[QuestionPerformance.from_dict(p) for p in _items("questionPerformance")],
            wrong_answers=[WrongAnswerRecord.from_dict(w) for w in _items("wrongAnswers")],
            frequently_wrong=[FrequentlyWrongCounter.from_dict(f) for f in _items("frequentlyWrong")],
            category_stats=tallies,
        )


def category_stats_dict(tallies: dict) -> dict:
    return {c: {"total": t.total, "correct": t.correct} for c, t in tallies.items()}


@dataclass
class User:
    id: int
    username: str
    email: str
    is_active: bool = True
    created_at: Optional[str] = None
    stats: UserStats = field(default_factory=UserStats)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "stats": self.stats.to_dict(),
        }


@dataclass
class Question:
    id: str
    question: str
    type: str = "multiple-choice"
    options: list = field(default_factory=list)
    correct: str = ""
    blanks: list = field(default_factory=list)


@dataclass
class ReadingExercise:
    id: str
    title: str
    passage: str = ""
    questions: list = field(default_factory=list)
    is_active: bool = True
    category: str = field(default="reading", init=False)


@dataclass
class ListeningExercise:
    id: str
    title: str
    audio_url: str = ""
    transcript: str = ""
    questions: list = field(default_factory=list)
    is_active: bool = True
    category: str = field(default="listening", init=False)


@dataclass
class ClozeExercise:
    id: str
    question: str
    options: list = field(default_factory=list)
    correct: str = ""
    image: str = ""
    is_active: bool = True
    category: str = field(default="clozetext", init=False)


Exercise = Union[ReadingExercise, ListeningExercise, ClozeExercise]
