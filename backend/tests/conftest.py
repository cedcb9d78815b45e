import sys
import time
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from quizarena.db.base import Base
from quizarena.db import session as session_module
from quizarena.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from quizarena.models.user import User, UserRole
from quizarena.models.quiz import Quiz, Question
from quizarena.models.purchase import Purchase, PurchaseStatus
from quizarena.models.attempt import QuizAttempt  # noqa: F401
from quizarena.models.security_audit import SecurityAuditEvent  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def flushall(self):
        self._data.clear()
        return True


# Configure test DB (SQLite in-memory) at import time so all tests importing
# quizarena.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


# Stub Redis at import time (rate limiting + readiness check).
_mem_redis = _MemoryRedis()
import quizarena.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import quizarena.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import quizarena.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    _mem_redis.flushall()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


def _make_user(role: UserRole = UserRole.user, email: str | None = None) -> User:
    from quizarena.core.security import hash_password

    with session_module.SessionLocal() as s:
        u = User(
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            name="Test user",
            role=role,
            password_hash=hash_password("testpass123"),
        )
        s.add(u)
        s.commit()
        s.refresh(u)
        s.expunge(u)
        return u


def _headers_for(u: User) -> dict[str, str]:
    from quizarena.core.security import create_access_token

    token = create_access_token(user_id=str(u.id), role=u.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_user():
    return _make_user


@pytest.fixture()
def headers_for():
    return _headers_for


@pytest.fixture()
def user():
    return _make_user()


@pytest.fixture()
def auth_headers(user):
    return _headers_for(user)


@pytest.fixture()
def admin():
    return _make_user(UserRole.admin)


@pytest.fixture()
def admin_headers(admin):
    return _headers_for(admin)


def _make_quiz(
    *,
    correct: tuple[int, ...] = (2, 1, 4, 3),
    is_paid: bool = False,
    price: float = 0.0,
    is_active: bool = True,
    has_negative_marking: bool = False,
    negative_marks: float | None = None,
    subject: str = "Physics",
    exam_year: int = 2024,
) -> Quiz:
    with session_module.SessionLocal() as s:
        quiz = Quiz(
            title=f"Quiz {uuid.uuid4().hex[:6]}",
            description="Past paper",
            subject=subject,
            exam_year=exam_year,
            is_active=is_active,
            is_paid=is_paid,
            price=price,
            has_negative_marking=has_negative_marking,
            negative_marks=negative_marks,
        )
        quiz.questions = [
            Question(
                position=i,
                question_text=f"Question {i + 1}",
                option1="A",
                option2="B",
                option3="C",
                option4="D",
                correct_option=c,
                explanation=f"Because {c}",
            )
            for i, c in enumerate(correct)
        ]
        s.add(quiz)
        s.commit()
        s.refresh(quiz)
        # Load questions before detaching.
        list(quiz.questions)
        s.expunge_all()
        return quiz


@pytest.fixture()
def make_quiz():
    return _make_quiz


@pytest.fixture()
def make_purchase():
    def _make(user_id: uuid.UUID, quiz_id: uuid.UUID, amount: float = 0.0) -> None:
        with session_module.SessionLocal() as s:
            s.add(Purchase(user_id=user_id, quiz_id=quiz_id, amount=amount, status=PurchaseStatus.completed))
            s.commit()

    return _make
