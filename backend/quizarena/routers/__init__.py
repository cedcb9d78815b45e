from quizarena.routers import admin, auth, health, me, purchases, quizzes, suggestions

__all__ = [
    "admin",
    "auth",
    "health",
    "me",
    "purchases",
    "quizzes",
    "suggestions",
]
