from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field, field_validator

from quizarena.models.suggestion import SuggestionStatus
from quizarena.schemas.quiz import Pagination

MAX_SUGGESTION_LENGTH = 2000


class SuggestionCreateRequest(BaseModel):
    quiz_id: str = Field(validation_alias=AliasChoices("quiz_id", "quizId"))
    attempt_id: str | None = Field(default=None, validation_alias=AliasChoices("attempt_id", "attemptId"))
    suggestion_text: str = Field(
        max_length=MAX_SUGGESTION_LENGTH,
        validation_alias=AliasChoices("suggestion_text", "suggestionText"),
    )

    @field_validator("suggestion_text")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class SuggestionStatusUpdate(BaseModel):
    status: SuggestionStatus


class SuggestionQuiz(BaseModel):
    id: str
    title: str | None = None
    subject: str | None = None
    exam_year: int | None = None


class SuggestionOut(BaseModel):
    id: str
    quiz: SuggestionQuiz
    attempt_id: str | None = None
    suggestion_text: str
    status: str
    created_at: datetime
    updated_at: datetime | None = None


class SuggestionAdminOut(SuggestionOut):
    user_id: str
    user_email: str | None = None


class SuggestionListResponse(BaseModel):
    suggestions: list[SuggestionOut]
    pagination: Pagination


class SuggestionAdminListResponse(BaseModel):
    suggestions: list[SuggestionAdminOut]
    pagination: Pagination
