from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from quizarena.schemas.quiz import Pagination, QuizSummary

MIN_EXAM_YEAR = 1900


class QuestionIn(BaseModel):
    question_text: str = Field(min_length=1)
    option1: str = Field(min_length=1, max_length=500)
    option2: str = Field(min_length=1, max_length=500)
    option3: str = Field(min_length=1, max_length=500)
    option4: str = Field(min_length=1, max_length=500)
    correct_option: int = Field(ge=1, le=4)
    explanation: str | None = None
    image_url: str | None = None

    @field_validator("question_text", "option1", "option2", "option3", "option4")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class QuizUpsertRequest(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=100)
    exam_year: int
    education_level: str | None = None
    is_active: bool = True
    is_paid: bool = False
    price: float = Field(default=0.0, ge=0)
    prize: str | None = None
    time_limit: int | None = Field(default=None, gt=0)
    has_negative_marking: bool = False
    negative_marks: float | None = Field(default=None, ge=0)
    questions: list[QuestionIn] = Field(min_length=1)

    @field_validator("exam_year")
    @classmethod
    def _exam_year(cls, v: int) -> int:
        if v < MIN_EXAM_YEAR or v > datetime.utcnow().year + 5:
            raise ValueError("invalid exam year")
        return v

    @model_validator(mode="after")
    def _price_matches_paid_flag(self) -> "QuizUpsertRequest":
        if self.is_paid and self.price <= 0:
            raise ValueError("paid quizzes need a price greater than 0")
        if not self.is_paid:
            self.price = 0.0
        return self


class QuestionAdmin(BaseModel):
    id: str
    position: int
    question_text: str
    option1: str
    option2: str
    option3: str
    option4: str
    correct_option: int
    explanation: str | None = None
    image_url: str | None = None


class QuizAdminResponse(QuizSummary):
    questions: list[QuestionAdmin]


class UserAdmin(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: str
    created_at: datetime | None = None


class UsersListResponse(BaseModel):
    users: list[UserAdmin]
    pagination: Pagination


class GrantAccessRequest(BaseModel):
    user_id: str
    quiz_id: str


class GrantAccessResponse(BaseModel):
    purchase_id: str
    user_id: str
    quiz_id: str
    created: bool


class AdminAttemptItem(BaseModel):
    attempt_id: str
    user_id: str
    user_email: str | None = None
    quiz_id: str
    quiz_title: str | None = None
    score: float
    percentage: float
    correct_count: int
    wrong_count: int
    unanswered_count: int
    total_questions: int
    time_taken_seconds: int | None = None
    attempted_at: datetime


class AdminAttemptsResponse(BaseModel):
    attempts: list[AdminAttemptItem]
    pagination: Pagination


class DashboardStatsResponse(BaseModel):
    total_users: int
    total_quizzes: int
    active_quizzes: int
    paid_quizzes: int
    total_attempts: int
    total_purchases: int
    total_revenue: float
    average_percentage: float
