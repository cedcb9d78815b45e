import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizarena.db.base import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    subject: Mapped[str] = mapped_column(String(100), index=True)
    exam_year: Mapped[int] = mapped_column(Integer, index=True)
    education_level: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    prize: Mapped[str | None] = mapped_column(String(200), nullable=True)

    time_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_negative_marking: Mapped[bool] = mapped_column(Boolean, default=False)
    negative_marks: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    questions: Mapped[list["Question"]] = relationship(
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quiz_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quizzes.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    question_text: Mapped[str] = mapped_column(Text, default="")
    option1: Mapped[str] = mapped_column(String(500), default="")
    option2: Mapped[str] = mapped_column(String(500), default="")
    option3: Mapped[str] = mapped_column(String(500), default="")
    option4: Mapped[str] = mapped_column(String(500), default="")

    # Answer key. Never serialized on public read paths.
    correct_option: Mapped[int] = mapped_column(Integer)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    quiz: Mapped[Quiz] = relationship(back_populates="questions")
