import uuid

import pytest

from quizarena.core.errors import AuthorizationError, NotFoundError
from quizarena.models.quiz import Quiz
from quizarena.services.access import (
    LOGIN_REQUIRED,
    PURCHASE_REQUIRED,
    AccessEvaluator,
    evaluate_access,
    get_visible_quiz,
)


def test_free_quiz_always_granted():
    quiz = Quiz(is_paid=False)
    assert evaluate_access(None, quiz, has_purchase=False).granted
    assert evaluate_access(uuid.uuid4(), quiz, has_purchase=False).granted


def test_paid_quiz_rules():
    quiz = Quiz(is_paid=True, price=5.0)

    anon = evaluate_access(None, quiz, has_purchase=False)
    assert not anon.granted
    assert anon.reason == LOGIN_REQUIRED

    denied = evaluate_access(uuid.uuid4(), quiz, has_purchase=False)
    assert not denied.granted
    assert denied.reason == PURCHASE_REQUIRED

    assert evaluate_access(uuid.uuid4(), quiz, has_purchase=True).granted


def test_purchase_flips_access(db, user, make_quiz, make_purchase):
    quiz = make_quiz(is_paid=True, price=9.99)
    loaded = get_visible_quiz(db, quiz.id)

    assert not AccessEvaluator(db).evaluate(user.id, loaded).granted
    with pytest.raises(AuthorizationError):
        AccessEvaluator(db).require(user.id, loaded)

    make_purchase(user.id, quiz.id, 9.99)
    assert AccessEvaluator(db).evaluate(user.id, loaded).granted


def test_inactive_quiz_hidden(db, make_quiz):
    quiz = make_quiz(is_active=False)

    with pytest.raises(NotFoundError):
        get_visible_quiz(db, quiz.id)
    assert get_visible_quiz(db, quiz.id, include_inactive=True).id == quiz.id


def test_missing_quiz_not_found(db):
    with pytest.raises(NotFoundError):
        get_visible_quiz(db, uuid.uuid4())


def test_check_access_endpoint(client, auth_headers, user, make_quiz, make_purchase):
    quiz = make_quiz(is_paid=True, price=4.5)

    r = client.get(f"/purchases/check-access/{quiz.id}", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["granted"] is False
    assert body["reason"] == PURCHASE_REQUIRED
    assert body["quiz"]["price"] == 4.5

    make_purchase(user.id, quiz.id, 4.5)
    r = client.get(f"/purchases/check-access/{quiz.id}", headers=auth_headers)
    assert r.json()["granted"] is True


def test_check_access_requires_login(client, make_quiz):
    quiz = make_quiz()
    r = client.get(f"/purchases/check-access/{quiz.id}")
    assert r.status_code == 401
    assert r.json()["ok"] is False


def test_quiz_detail_hides_questions_without_access(client, auth_headers, make_quiz):
    quiz = make_quiz(is_paid=True, price=3.0)

    r = client.get(f"/quizzes/{quiz.id}", headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["has_access"] is False
    assert body["questions"] == []


def test_quiz_detail_never_leaks_answer_key(client, make_quiz):
    quiz = make_quiz()

    r = client.get(f"/quizzes/{quiz.id}")
    assert r.status_code == 200
    body = r.json()
    assert body["has_access"] is True
    assert len(body["questions"]) == 4
    for q in body["questions"]:
        assert "correct_option" not in q
        assert "explanation" not in q


def test_purchase_endpoint(client, auth_headers, make_quiz):
    paid = make_quiz(is_paid=True, price=7.0)
    free = make_quiz()

    r = client.post(f"/purchases/quizzes/{paid.id}", headers=auth_headers)
    assert r.status_code == 201
    assert r.json()["amount"] == 7.0
    assert r.json()["status"] == "completed"

    r = client.post(f"/purchases/quizzes/{paid.id}", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"

    r = client.post(f"/purchases/quizzes/{free.id}", headers=auth_headers)
    assert r.status_code == 400

    r = client.get("/purchases/my-quizzes", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["total_purchased"] == 1
    assert r.json()["quizzes"][0]["question_count"] == 4

    r = client.get("/purchases/mine", headers=auth_headers)
    assert r.json()["pagination"]["total"] == 1
