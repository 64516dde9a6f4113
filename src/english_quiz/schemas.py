"""Pydantic models for validating submitted results and exercise payloads."""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from english_quiz.exceptions import ValidationError
from english_quiz.models import (
    ClozeExercise, ListeningExercise, Question, ReadingExercise,
)

Category = Literal["reading", "listening", "clozetext"]
QuestionType = Literal["multiple-choice", "true-false", "fill-blank"]


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _to_id(value: Any) -> Any:
    if isinstance(value, int):
        return str(value)
    return value


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AttemptInput(_Model):
    id: str
    exercise_id: str = Field(alias="exerciseId")
    category: Category
    type: QuestionType = "multiple-choice"
    question: str = ""
    user_answer: str = Field(default="", alias="userAnswer")
    correct_answer: str = Field(default="", alias="correctAnswer")
    is_correct: bool = Field(alias="isCorrect")

    @field_validator("id", "exercise_id", mode="before")
    @classmethod
    def coerce_ids(cls, value):
        return _to_id(value)

    @field_validator("user_answer", "correct_answer", mode="before")
    @classmethod
    def stringify_answers(cls, value):
        return _to_text(value)

    @property
    def time_key(self) -> str:
        return f"{self.exercise_id}-{self.id}"


class StatsSubmission(_Model):
    results: list[AttemptInput] = Field(default_factory=list)
    time_spent: dict[str, Annotated[float, Field(ge=0)]] = Field(default_factory=dict, alias="timeSpent")


class QuestionInput(_Model):
    id: str
    question: str = Field(min_length=1)
    type: QuestionType = "multiple-choice"
    options: list[str] = Field(default_factory=list)
    correct: str = ""
    blanks: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        return _to_id(value)

    @field_validator("correct", mode="before")
    @classmethod
    def stringify_correct(cls, value):
        return _to_text(value)

    def to_model(self) -> Question:
        return Question(
            id=self.id, question=self.question, type=self.type,
            options=list(self.options), correct=self.correct, blanks=list(self.blanks),
        )


class ReadingInput(_Model):
    category: Literal["reading"]
    id: Optional[str] = None
    title: str = Field(min_length=1)
    passage: str = ""
    questions: list[QuestionInput] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")

    def to_model(self, exercise_id: str) -> ReadingExercise:
        return ReadingExercise(
            id=exercise_id, title=self.title, passage=self.passage,
            questions=[q.to_model() for q in self.questions], is_active=self.is_active,
        )


class ListeningInput(_Model):
    category: Literal["listening"]
    id: Optional[str] = None
    title: str = Field(min_length=1)
    audio_url: str = Field(default="", alias="audioUrl")
    transcript: str = ""
    questions: list[QuestionInput] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")

    def to_model(self, exercise_id: str) -> ListeningExercise:
        return ListeningExercise(
            id=exercise_id, title=self.title, audio_url=self.audio_url,
            transcript=self.transcript, questions=[q.to_model() for q in self.questions],
            is_active=self.is_active,
        )


class ClozeInput(_Model):
    category: Literal["clozetext"]
    id: Optional[str] = None
    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=4, max_length=4)
    correct: str = ""
    image: str = ""
    is_active: bool = Field(default=True, alias="isActive")

    @field_validator("correct", mode="before")
    @classmethod
    def stringify_correct(cls, value):
        return _to_text(value)

    def to_model(self, exercise_id: str) -> ClozeExercise:
        return ClozeExercise(
            id=exercise_id, question=self.question, options=list(self.options),
            correct=self.correct, image=self.image, is_active=self.is_active,
        )


ExerciseInput = Annotated[
    Union[ReadingInput, ListeningInput, ClozeInput], Field(discriminator="category")
]
_exercise_adapter = TypeAdapter(ExerciseInput)


def _field_errors(exc: PydanticValidationError) -> dict:
    errors = {}
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "__root__"
        errors[loc] = err["msg"]
    return errors


def parse_submission(data: dict) -> StatsSubmission:
    try:
        return StatsSubmission.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid results submission", _field_errors(e)) from e


def parse_exercise(data: dict) -> Union[ReadingInput, ListeningInput, ClozeInput]:
    try:
        return _exercise_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError("Validation failed", _field_errors(e)) from e
