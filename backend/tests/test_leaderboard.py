import uuid
from datetime import datetime, timedelta

import pytest

from quizarena.core.config import settings
from quizarena.core.errors import NotFoundError, ValidationError
from quizarena.db import session as session_module
from quizarena.models.attempt import QuizAttempt
from quizarena.services.leaderboard import (
    AttemptRow,
    LeaderboardService,
    best_attempt_per_user,
    mask_email,
    rank_entries,
)

T0 = datetime(2026, 1, 1, 12, 0, 0)


def _row(user_id, percentage, time_taken, *, minutes=0, email="someone@example.com"):
    return AttemptRow(
        attempt_id=uuid.uuid4(),
        user_id=user_id,
        email=email,
        score=percentage / 10,
        percentage=percentage,
        correct_count=int(percentage // 10),
        total_questions=10,
        time_taken_seconds=time_taken,
        attempted_at=T0 + timedelta(minutes=minutes),
    )


def test_faster_time_breaks_percentage_tie():
    a, b = uuid.uuid4(), uuid.uuid4()
    entries = rank_entries([_row(a, 90.0, 120), _row(b, 90.0, 90)], 10)

    assert [e.user_id for e in entries] == [b, a]
    assert [e.rank for e in entries] == [1, 2]


def test_one_entry_per_user_with_best_attempt():
    a, b = uuid.uuid4(), uuid.uuid4()
    rows = [
        _row(a, 60.0, 100, minutes=0),
        _row(a, 80.0, 200, minutes=5),
        _row(a, 80.0, 150, minutes=10),
        _row(b, 70.0, 50),
    ]
    entries = rank_entries(rows, 10)

    assert len(entries) == 2
    assert entries[0].user_id == a
    assert entries[0].percentage == 80.0
    assert entries[0].time_taken_seconds == 150


def test_untimed_attempt_ranks_after_timed():
    a, b = uuid.uuid4(), uuid.uuid4()
    entries = rank_entries([_row(a, 75.0, None), _row(b, 75.0, 3600)], 10)
    assert [e.user_id for e in entries] == [b, a]


def test_earlier_attempt_wins_full_tie():
    a, b = uuid.uuid4(), uuid.uuid4()
    entries = rank_entries([_row(a, 50.0, 60, minutes=3), _row(b, 50.0, 60, minutes=1)], 10)
    assert [e.user_id for e in entries] == [b, a]


def test_limit_truncates_and_ranks_are_dense():
    rows = [_row(uuid.uuid4(), float(p), 30) for p in (10, 90, 40, 70, 20)]
    entries = rank_entries(rows, 3)

    assert [e.percentage for e in entries] == [90.0, 70.0, 40.0]
    assert [e.rank for e in entries] == [1, 2, 3]


def test_best_attempt_per_user_keeps_first_best():
    a = uuid.uuid4()
    first = _row(a, 80.0, 100, minutes=0)
    later = _row(a, 80.0, 100, minutes=5)
    assert best_attempt_per_user([later, first])[a] is first


@pytest.mark.parametrize(
    "email,expected",
    [
        ("alice@example.com", "al***@example.com"),
        ("ab@example.com", "a***@example.com"),
        ("a@example.com", "***@example.com"),
        ("no-at-sign", "no***"),
    ],
)
def test_mask_email(email, expected):
    assert mask_email(email) == expected


def test_masked_email_never_contains_full_local_part():
    entries = rank_entries([_row(uuid.uuid4(), 10.0, 1, email="bob@example.com")], 10)
    assert entries[0].user_email == "bo***@example.com"


def _insert_attempt(quiz_id, user_id, percentage, time_taken, minutes=0):
    with session_module.SessionLocal() as s:
        s.add(
            QuizAttempt(
                quiz_id=quiz_id,
                user_id=user_id,
                score=percentage / 25,
                total_questions=4,
                correct_count=int(percentage // 25),
                wrong_count=4 - int(percentage // 25),
                unanswered_count=0,
                percentage=percentage,
                time_taken_seconds=time_taken,
                answers=[],
                results=[],
                attempted_at=T0 + timedelta(minutes=minutes),
            )
        )
        s.commit()


def test_leaderboard_endpoint(client, make_quiz, make_user):
    quiz = make_quiz()
    alice = make_user(email=f"alice{uuid.uuid4().hex[:6]}@example.com")
    bob = make_user(email=f"bob{uuid.uuid4().hex[:6]}@example.com")
    _insert_attempt(quiz.id, alice.id, 75.0, 120)
    _insert_attempt(quiz.id, alice.id, 50.0, 30, minutes=1)
    _insert_attempt(quiz.id, bob.id, 75.0, 90)

    r = client.get(f"/quizzes/{quiz.id}/leaderboard")
    assert r.status_code == 200
    body = r.json()
    assert body["quiz_id"] == str(quiz.id)
    assert body["quiz_title"] == quiz.title

    board = body["leaderboard"]
    assert [e["user_id"] for e in board] == [str(bob.id), str(alice.id)]
    assert [e["rank"] for e in board] == [1, 2]
    assert board[1]["user_email"].startswith("al***@")
    assert alice.email not in r.text

    # Reads have no side effects.
    assert client.get(f"/quizzes/{quiz.id}/leaderboard").json() == body


def test_leaderboard_empty(client, make_quiz):
    quiz = make_quiz()
    r = client.get(f"/quizzes/{quiz.id}/leaderboard")
    assert r.status_code == 200
    assert r.json()["leaderboard"] == []


def test_leaderboard_unknown_or_inactive_quiz(client, make_quiz):
    r = client.get(f"/quizzes/{uuid.uuid4()}/leaderboard")
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"

    inactive = make_quiz(is_active=False)
    assert client.get(f"/quizzes/{inactive.id}/leaderboard").status_code == 404


def test_leaderboard_limit(client, make_quiz):
    quiz = make_quiz()
    r = client.get(f"/quizzes/{quiz.id}/leaderboard", params={"limit": 0})
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"


def test_resolve_limit(db):
    service = LeaderboardService(db, settings)
    assert service.resolve_limit(None) == settings.leaderboard_default_limit
    assert service.resolve_limit(5) == 5
    assert service.resolve_limit(10_000) == settings.leaderboard_max_limit
    with pytest.raises(ValidationError):
        service.resolve_limit(-1)


def test_service_not_found(db):
    with pytest.raises(NotFoundError):
        LeaderboardService(db, settings).leaderboard(uuid.uuid4())
