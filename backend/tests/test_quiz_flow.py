import uuid

from sqlalchemy import func, select

from quizarena.models.attempt import QuizAttempt


def _question_ids(client, quiz_id, headers=None):
    r = client.get(f"/quizzes/{quiz_id}", headers=headers or {})
    assert r.status_code == 200
    return [q["id"] for q in r.json()["questions"]]


def test_submit_scores_attempt(client, auth_headers, make_quiz):
    quiz = make_quiz()
    ids = _question_ids(client, quiz.id)

    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={
            "answers": [
                {"questionId": ids[0], "selectedOption": 2},
                {"questionId": ids[1], "selectedOption": 1},
                {"questionId": ids[2], "selectedOption": 1},
            ],
            "timeTaken": 95,
        },
    )
    assert r.status_code == 201
    body = r.json()
    assert body["correct_count"] == 2
    assert body["wrong_count"] == 1
    assert body["unanswered_count"] == 1
    assert body["score"] == 2
    assert body["percentage"] == 50.0
    assert body["time_taken_seconds"] == 95
    assert [x["correct_option"] for x in body["results"]] == [2, 1, 4, 3]


def test_submit_with_negative_marking(client, auth_headers, make_quiz):
    quiz = make_quiz(has_negative_marking=True)
    ids = _question_ids(client, quiz.id)

    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={
            "answers": [
                {"question_id": ids[0], "selected_option": 2},
                {"question_id": ids[1], "selected_option": 1},
                {"question_id": ids[2], "selected_option": 1},
                {"question_id": ids[3], "selected_option": 0},
            ]
        },
    )
    assert r.status_code == 201
    assert r.json()["score"] == 1.75
    assert r.json()["percentage"] == 43.75


def test_submit_paid_quiz_without_purchase_is_denied(client, db, auth_headers, user, make_quiz, make_purchase):
    quiz = make_quiz(is_paid=True, price=2.0)
    qid = str(uuid.uuid4())

    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={"answers": [{"question_id": qid, "selected_option": 1}]},
    )
    assert r.status_code == 403
    assert r.json()["error_code"] == "authorization_error"
    assert db.scalar(select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz.id)) == 0

    make_purchase(user.id, quiz.id, 2.0)
    ids = _question_ids(client, quiz.id, auth_headers)
    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={"answers": [{"question_id": ids[0], "selected_option": 2}]},
    )
    assert r.status_code == 201


def test_submit_requires_login(client, make_quiz):
    quiz = make_quiz()
    r = client.post(f"/quizzes/{quiz.id}/attempts", json={"answers": []})
    assert r.status_code == 401


def test_submit_rejects_bad_answers(client, auth_headers, make_quiz):
    quiz = make_quiz()
    ids = _question_ids(client, quiz.id)

    bad_payloads = [
        {"answers": []},
        {"answers": [{"question_id": ids[0], "selected_option": 7}]},
        {"answers": [{"question_id": ids[0], "selected_option": "2"}]},
        {"answers": [{"question_id": str(uuid.uuid4()), "selected_option": 1}]},
        {"answers": [{"question_id": ids[0], "selected_option": 1}, {"question_id": ids[0], "selected_option": 2}]},
        {"answers": "nope"},
    ]
    for payload in bad_payloads:
        r = client.post(f"/quizzes/{quiz.id}/attempts", headers=auth_headers, json=payload)
        assert r.status_code == 400, payload
        assert r.json()["error_code"] == "validation_error"


def test_submit_unknown_quiz(client, auth_headers):
    r = client.post(
        f"/quizzes/{uuid.uuid4()}/attempts",
        headers=auth_headers,
        json={"answers": [{"question_id": str(uuid.uuid4()), "selected_option": 1}]},
    )
    assert r.status_code == 404


def test_history_stats_and_detail(client, auth_headers, make_user, headers_for, make_quiz):
    quiz = make_quiz(subject="Chemistry")
    ids = _question_ids(client, quiz.id)

    for picks in ([2, 1, 4, 3], [1, 1, 1, 1]):
        r = client.post(
            f"/quizzes/{quiz.id}/attempts",
            headers=auth_headers,
            json={"answers": [{"question_id": i, "selected_option": p} for i, p in zip(ids, picks)]},
        )
        assert r.status_code == 201
    attempt_id = r.json()["attempt_id"]

    r = client.get("/me/attempts", headers=auth_headers, params={"quiz_id": str(quiz.id)})
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 2

    r = client.get("/me/stats", headers=auth_headers)
    stats = r.json()
    assert stats["total_attempts"] == 2
    assert stats["best_percentage"] == 100.0
    assert stats["worst_percentage"] == 25.0
    assert stats["subject_stats"][0]["subject"] == "Chemistry"

    r = client.get(f"/me/attempts/{attempt_id}", headers=auth_headers)
    assert r.status_code == 200
    assert len(r.json()["results"]) == 4

    stranger = headers_for(make_user())
    r = client.get(f"/me/attempts/{attempt_id}", headers=stranger)
    assert r.status_code == 403


def test_list_quizzes_filters(client, make_quiz):
    subject = f"Subject {uuid.uuid4().hex[:6]}"
    make_quiz(subject=subject, exam_year=2021)
    make_quiz(subject=subject, exam_year=2022, is_paid=True, price=1.0)
    make_quiz(subject=subject, exam_year=2022, is_active=False)

    r = client.get("/quizzes", params={"subject": subject})
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"]["total"] == 2
    assert body["stats"] == {"total": 2, "free": 1, "paid": 1}

    r = client.get("/quizzes", params={"subject": subject, "year": 2021})
    assert r.json()["pagination"]["total"] == 1

    assert subject in client.get("/quizzes/subjects").json()["subjects"]


def test_submit_to_inactive_quiz_is_not_found(client, db, auth_headers, admin_headers, make_quiz):
    quiz = make_quiz(is_active=False)
    ids = _question_ids(client, quiz.id, admin_headers)

    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={"answers": [{"question_id": ids[0], "selected_option": 2}]},
    )
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"
    assert db.scalar(select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz.id)) == 0


def test_malformed_ids_are_rejected_everywhere(client, auth_headers, admin_headers):
    checks = [
        client.get("/quizzes/not-a-uuid", headers=auth_headers),
        client.get("/quizzes/not-a-uuid/leaderboard"),
        client.get("/purchases/check-access/not-a-uuid", headers=auth_headers),
        client.get("/me/attempts/not-a-uuid", headers=auth_headers),
        client.get("/me/attempts", headers=auth_headers, params={"quiz_id": "nope"}),
        client.get("/admin/quizzes/not-a-uuid", headers=admin_headers),
    ]
    for r in checks:
        assert r.status_code == 400, r.request.url
        assert r.json()["error_code"] == "validation_error"


def test_error_envelope_carries_request_id(client):
    r = client.get(f"/quizzes/{uuid.uuid4()}", headers={"X-Request-ID": "rid-404"})
    assert r.status_code == 404
    assert r.json()["request_id"] == "rid-404"
