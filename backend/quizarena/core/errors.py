from __future__ import annotations


class QuizError(Exception):
    """Base for errors raised by the quiz core.

    ``kind`` is the stable, machine-readable class of the failure and ends up
    as ``error_code`` in the HTTP error envelope.
    """

    kind = "quiz_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"error_code": self.kind, "error_message": self.message}
        if self.retryable:
            payload["retryable"] = True
        return payload


class ValidationError(QuizError):
    kind = "validation_error"
    status_code = 400


class AuthorizationError(QuizError):
    kind = "authorization_error"
    status_code = 403


class NotFoundError(QuizError):
    kind = "not_found"
    status_code = 404


class PersistenceError(QuizError):
    kind = "persistence_error"
    status_code = 503
    retryable = True
