"""Database layer: SQLAlchemy models and session."""

from server.db.models import (
    Base,
    LearningSession,
    LessonCompletion,
    QuizResult,
    ReminderSettings,
    Subscription,
    User,
    UserProgress,
    WordHistory,
)
from server.db.session import get_db, init_db

__all__ = [
    "Base",
    "User",
    "UserProgress",
    "LessonCompletion",
    "QuizResult",
    "WordHistory",
    "ReminderSettings",
    "LearningSession",
    "Subscription",
    "get_db",
    "init_db",
]
