"""Answer grading.

Pure functions only: nothing in here touches the database. The submit route
loads the quiz, runs the access gate, then hands the question list and the
parsed answers to :func:`grade`.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from quizarena.core.errors import ValidationError
from quizarena.models.quiz import Question, Quiz

OPTION_COUNT = 4
UNANSWERED = 0


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: uuid.UUID
    # None means the question was left unanswered.
    selected_option: int | None
    time_spent: int | None = None

    @property
    def answered(self) -> bool:
        return self.selected_option is not None


@dataclass(frozen=True)
class GradingPolicy:
    negative_marks: float = 0.0
    score_floor: float = 0.0

    @classmethod
    def for_quiz(cls, quiz: Quiz, *, score_floor: float, default_negative_marks: float) -> "GradingPolicy":
        penalty = 0.0
        if quiz.has_negative_marking:
            penalty = quiz.negative_marks if quiz.negative_marks is not None else default_negative_marks
        return cls(negative_marks=max(0.0, float(penalty or 0.0)), score_floor=float(score_floor))


@dataclass(frozen=True)
class QuestionResult:
    question_id: uuid.UUID
    question_text: str
    options: tuple[str, str, str, str]
    selected_option: int | None
    correct_option: int
    is_correct: bool
    explanation: str | None
    image_url: str | None = None
    time_spent: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": str(self.question_id),
            "question_text": self.question_text,
            "options": list(self.options),
            "selected_option": self.selected_option,
            "correct_option": self.correct_option,
            "is_correct": self.is_correct,
            "explanation": self.explanation,
            "image_url": self.image_url,
            "time_spent": self.time_spent,
        }


@dataclass(frozen=True)
class GradeResult:
    total_questions: int
    correct_count: int
    wrong_count: int
    unanswered_count: int
    score: float
    percentage: float
    negative_marks: float = 0.0
    results: tuple[QuestionResult, ...] = field(default_factory=tuple)

    @property
    def display_percentage(self) -> float:
        return round(self.percentage, 2)

    def results_snapshot(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self.results]


def _coerce_option(value: Any, *, position: int) -> int | None:
    if value is None:
        return None
    # bool is an int subclass; "true" is not an option.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"answer {position}: selected option must be an integer")
    if value == UNANSWERED:
        return None
    if value < 1 or value > OPTION_COUNT:
        raise ValidationError(f"answer {position}: selected option must be between 1 and {OPTION_COUNT}")
    return value


def _coerce_question_id(value: Any, *, position: int) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"answer {position}: invalid question id") from e


def parse_submission(raw: Any) -> list[SubmittedAnswer]:
    """Turn a decoded JSON answers array into typed answers.

    Each entry needs ``question_id`` (or ``questionId``); ``selected_option``
    (or ``selectedOption``) may be 1-4, or 0/null/absent for unanswered.
    """
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise ValidationError("answers must be an array")
    if not raw:
        raise ValidationError("answers must not be empty")

    parsed: list[SubmittedAnswer] = []
    seen: set[uuid.UUID] = set()
    for i, item in enumerate(raw, start=1):
        if not isinstance(item, Mapping):
            raise ValidationError(f"answer {i}: expected an object")

        qid = _coerce_question_id(item.get("question_id", item.get("questionId")), position=i)
        if qid in seen:
            raise ValidationError(f"answer {i}: duplicate answer for question {qid}")
        seen.add(qid)

        option = _coerce_option(item.get("selected_option", item.get("selectedOption")), position=i)

        time_spent = item.get("time_spent", item.get("timeSpent"))
        if time_spent is not None:
            if isinstance(time_spent, bool) or not isinstance(time_spent, int) or time_spent < 0:
                raise ValidationError(f"answer {i}: time spent must be a non-negative integer")

        parsed.append(SubmittedAnswer(question_id=qid, selected_option=option, time_spent=time_spent))

    return parsed


def grade(
    questions: Sequence[Question],
    answers: Sequence[SubmittedAnswer],
    policy: GradingPolicy | None = None,
) -> GradeResult:
    policy = policy or GradingPolicy()

    if not questions:
        raise ValidationError("quiz has no questions, nothing to grade")

    by_question = {q.id: q for q in questions}
    foreign = [a.question_id for a in answers if a.question_id not in by_question]
    if foreign:
        raise ValidationError("answers reference questions that do not belong to this quiz")

    by_answer = {a.question_id: a for a in answers}

    correct = 0
    wrong = 0
    unanswered = 0
    results: list[QuestionResult] = []
    for q in questions:
        answer = by_answer.get(q.id)
        selected = answer.selected_option if answer is not None else None

        is_correct = selected is not None and selected == q.correct_option
        if selected is None:
            unanswered += 1
        elif is_correct:
            correct += 1
        else:
            wrong += 1

        results.append(
            QuestionResult(
                question_id=q.id,
                question_text=q.question_text,
                options=(q.option1, q.option2, q.option3, q.option4),
                selected_option=selected,
                correct_option=q.correct_option,
                is_correct=is_correct,
                explanation=q.explanation,
                image_url=q.image_url,
                time_spent=answer.time_spent if answer is not None else None,
            )
        )

    total = len(questions)
    # Unanswered questions carry no penalty.
    score = max(policy.score_floor, correct - wrong * policy.negative_marks)
    percentage = (score / total) * 100

    return GradeResult(
        total_questions=total,
        correct_count=correct,
        wrong_count=wrong,
        unanswered_count=unanswered,
        score=score,
        percentage=percentage,
        negative_marks=policy.negative_marks,
        results=tuple(results),
    )
