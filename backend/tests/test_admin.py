import uuid

from sqlalchemy import select

from quizarena.models.security_audit import SecurityAuditEvent


def _quiz_payload(**overrides):
    payload = {
        "title": "Mock exam",
        "description": "Full length mock",
        "subject": "Biology",
        "exam_year": 2025,
        "is_paid": False,
        "questions": [
            {
                "question_text": "Cell powerhouse?",
                "option1": "Nucleus",
                "option2": "Mitochondria",
                "option3": "Ribosome",
                "option4": "Golgi",
                "correct_option": 2,
                "explanation": "ATP",
            }
        ],
    }
    payload.update(overrides)
    return payload


def test_non_admin_is_forbidden(client, auth_headers):
    r = client.post("/admin/quizzes", headers=auth_headers, json=_quiz_payload())
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"

    assert client.get("/admin/users", headers=auth_headers).status_code == 403
    assert client.get("/admin/dashboard-stats").status_code == 401


def test_create_and_update_quiz(client, db, admin_headers):
    r = client.post("/admin/quizzes", headers=admin_headers, json=_quiz_payload())
    assert r.status_code == 201
    quiz = r.json()
    assert quiz["question_count"] == 1
    assert quiz["questions"][0]["correct_option"] == 2
    assert quiz["price"] == 0.0

    updated = _quiz_payload(
        title="Mock exam v2",
        is_paid=True,
        price=12.5,
        has_negative_marking=True,
        negative_marks=0.5,
    )
    updated["questions"] = updated["questions"] * 2
    r = client.put(f"/admin/quizzes/{quiz['id']}", headers=admin_headers, json=updated)
    assert r.status_code == 200
    body = r.json()
    assert body["title"] == "Mock exam v2"
    assert body["price"] == 12.5
    assert body["negative_marks"] == 0.5
    assert body["question_count"] == 2

    events = db.scalars(
        select(SecurityAuditEvent.event_type).where(SecurityAuditEvent.quiz_id == uuid.UUID(quiz["id"]))
    ).all()
    assert "admin_create_quiz" in events
    assert "admin_update_quiz" in events


def test_create_quiz_validation(client, admin_headers):
    r = client.post("/admin/quizzes", headers=admin_headers, json=_quiz_payload(is_paid=True, price=0))
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"

    r = client.post("/admin/quizzes", headers=admin_headers, json=_quiz_payload(questions=[]))
    assert r.status_code == 400

    bad_question = _quiz_payload()
    bad_question["questions"][0]["correct_option"] = 5
    r = client.post("/admin/quizzes", headers=admin_headers, json=bad_question)
    assert r.status_code == 400


def test_grant_access(client, admin_headers, user, headers_for, make_quiz):
    quiz = make_quiz(is_paid=True, price=3.0)
    body = {"user_id": str(user.id), "quiz_id": str(quiz.id)}

    r = client.post("/admin/grant-access", headers=admin_headers, json=body)
    assert r.status_code == 200
    assert r.json()["created"] is True

    r = client.post("/admin/grant-access", headers=admin_headers, json=body)
    assert r.json()["created"] is False

    r = client.get(f"/purchases/check-access/{quiz.id}", headers=headers_for(user))
    assert r.json()["granted"] is True

    r = client.post(
        "/admin/grant-access",
        headers=admin_headers,
        json={"user_id": str(uuid.uuid4()), "quiz_id": str(quiz.id)},
    )
    assert r.status_code == 404


def test_admin_sees_inactive_quiz(client, admin_headers, make_quiz):
    quiz = make_quiz(is_active=False)

    assert client.get(f"/quizzes/{quiz.id}").status_code == 404
    r = client.get(f"/quizzes/{quiz.id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_active"] is False


def test_delete_attempt_and_quiz(client, admin_headers, auth_headers, make_quiz):
    quiz = make_quiz()
    ids = [q["id"] for q in client.get(f"/quizzes/{quiz.id}").json()["questions"]]
    r = client.post(
        f"/quizzes/{quiz.id}/attempts",
        headers=auth_headers,
        json={"answers": [{"question_id": ids[0], "selected_option": 2}]},
    )
    attempt_id = r.json()["attempt_id"]

    r = client.get("/admin/attempts", headers=admin_headers, params={"quiz_id": str(quiz.id)})
    assert r.json()["pagination"]["total"] == 1

    assert client.delete(f"/admin/attempts/{attempt_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/quizzes/{quiz.id}/leaderboard").json()["leaderboard"] == []

    assert client.delete(f"/admin/quizzes/{quiz.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/quizzes/{quiz.id}").status_code == 404


def test_dashboard_stats(client, admin_headers):
    r = client.get("/admin/dashboard-stats", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["total_users"] >= 1
