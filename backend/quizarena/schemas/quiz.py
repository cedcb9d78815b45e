from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class QuizSummary(BaseModel):
    id: str
    title: str
    description: str
    subject: str
    exam_year: int
    education_level: str | None = None
    is_active: bool
    is_paid: bool
    price: float
    prize: str | None = None
    time_limit: int | None = None
    has_negative_marking: bool
    negative_marks: float | None = None
    question_count: int
    created_at: datetime | None = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    limit: int


class QuizStats(BaseModel):
    total: int
    free: int
    paid: int


class QuizListResponse(BaseModel):
    quizzes: list[QuizSummary]
    pagination: Pagination
    stats: QuizStats


class QuestionPublic(BaseModel):
    id: str
    question_text: str
    option1: str
    option2: str
    option3: str
    option4: str
    image_url: str | None = None


class QuizDetailResponse(QuizSummary):
    has_access: bool
    access_message: str | None = None
    questions: list[QuestionPublic]


class SubmittedAnswerIn(BaseModel):
    question_id: str = Field(validation_alias=AliasChoices("question_id", "questionId"))
    selected_option: int | None = Field(
        default=None,
        strict=True,
        validation_alias=AliasChoices("selected_option", "selectedOption"),
    )
    time_spent: int | None = Field(default=None, strict=True, validation_alias=AliasChoices("time_spent", "timeSpent"))


class QuizSubmitRequest(BaseModel):
    answers: list[SubmittedAnswerIn]
    time_taken_seconds: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("time_taken_seconds", "timeTakenSeconds", "timeTaken"),
    )


class QuestionResultOut(BaseModel):
    question_id: str
    question_text: str
    options: list[str]
    selected_option: int | None
    correct_option: int
    is_correct: bool
    explanation: str | None = None
    image_url: str | None = None
    time_spent: int | None = None


class QuizSubmitResponse(BaseModel):
    attempt_id: str
    quiz_id: str
    quiz_title: str
    total_questions: int
    correct_count: int
    wrong_count: int
    unanswered_count: int
    score: float
    percentage: float
    time_taken_seconds: int | None
    attempted_at: datetime
    results: list[QuestionResultOut]


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: str
    user_email: str
    score: float
    percentage: float
    correct_count: int
    total_questions: int
    time_taken_seconds: int | None
    attempted_at: datetime


class LeaderboardResponse(BaseModel):
    quiz_id: str
    quiz_title: str
    leaderboard: list[LeaderboardEntryOut]
