from quizarena.models.user import User, UserRole
from quizarena.models.quiz import Question, Quiz
from quizarena.models.purchase import Purchase, PurchaseStatus
from quizarena.models.attempt import QuizAttempt
from quizarena.models.security_audit import SecurityAuditEvent
from quizarena.models.suggestion import Suggestion, SuggestionStatus

__all__ = [
    "User",
    "UserRole",
    "Quiz",
    "Question",
    "Purchase",
    "PurchaseStatus",
    "QuizAttempt",
    "SecurityAuditEvent",
    "Suggestion",
    "SuggestionStatus",
]
