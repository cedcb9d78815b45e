from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from quizarena.schemas.quiz import Pagination, QuestionResultOut


class AttemptQuizRef(BaseModel):
    id: str
    title: str | None = None
    subject: str | None = None
    exam_year: int | None = None


class AttemptSummaryOut(BaseModel):
    attempt_id: str
    quiz: AttemptQuizRef
    score: float
    total_questions: int
    correct_count: int
    wrong_count: int
    unanswered_count: int
    percentage: float
    time_taken_seconds: int | None = None
    attempted_at: datetime


class AttemptHistoryResponse(BaseModel):
    attempts: list[AttemptSummaryOut]
    pagination: Pagination


class AttemptDetailQuiz(AttemptQuizRef):
    description: str | None = None
    has_negative_marking: bool = False
    negative_marks: float | None = None


class AttemptDetailResponse(AttemptSummaryOut):
    quiz: AttemptDetailQuiz
    results: list[QuestionResultOut]


class SubjectStats(BaseModel):
    subject: str
    attempts: int
    average_score: float
    total_correct: int
    total_wrong: int
    accuracy: float


class UserStatsResponse(BaseModel):
    total_attempts: int
    average_score: float
    average_percentage: float
    total_questions_attempted: int
    total_correct: int
    total_wrong: int
    total_unanswered: int
    overall_accuracy: float
    best_percentage: float
    worst_percentage: float
    subject_stats: list[SubjectStats]
