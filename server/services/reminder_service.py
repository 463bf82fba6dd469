"""Study reminders and learning sessions."""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import LearningSession, ReminderSettings, User, UserProgress
from server.services import review_service

logger = logging.getLogger("learnbuddy.reminders")

FREQUENCIES = ("daily", "weekdays", "weekends", "custom")
DEFAULTS = {
    "enabled": True,
    "preferred_time": "09:00",
    "timezone": "Asia/Tokyo",
    "frequency": "daily",
}

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_time(value: str) -> None:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValueError("preferred_time must be HH:MM (24-hour)")


def validate_frequency(value: str) -> None:
    if value not in FREQUENCIES:
        raise ValueError(f"frequency must be one of {', '.join(FREQUENCIES)}")


def settings_to_dict(s: ReminderSettings) -> Dict[str, Any]:
    return {
        "user_id": s.user_id,
        "enabled": bool(s.enabled),
        "preferred_time": s.preferred_time,
        "timezone": s.timezone,
        "frequency": s.frequency,
        "last_reminder_sent": s.last_reminder_sent.isoformat() if s.last_reminder_sent else None,
    }


def get_settings(db: DBSession, user_id: str) -> Optional[ReminderSettings]:
    return db.get(ReminderSettings, user_id)


def update_settings(
    db: DBSession,
    user_id: str,
    enabled: Optional[bool] = None,
    preferred_time: Optional[str] = None,
    timezone: Optional[str] = None,
    frequency: Optional[str] = None,
) -> ReminderSettings:
    """Create or update reminder settings. Unset fields keep their current (or default) value."""
    if preferred_time is not None:
        validate_time(preferred_time)
    if frequency is not None:
        validate_frequency(frequency)

    settings = get_settings(db, user_id)
    if settings is None:
        settings = ReminderSettings(user_id=user_id, **DEFAULTS)
        db.add(settings)
    if enabled is not None:
        settings.enabled = enabled
    if preferred_time:
        settings.preferred_time = preferred_time
    if timezone:
        settings.timezone = timezone
    if frequency:
        settings.frequency = frequency
    db.flush()
    return settings


def initialize_for_user(db: DBSession, user_id: str) -> ReminderSettings:
    settings = get_settings(db, user_id)
    if settings is None:
        settings = update_settings(db, user_id)
    return settings


def record_reminder_sent(db: DBSession, user_id: str, now: Optional[datetime] = None) -> None:
    settings = get_settings(db, user_id)
    if settings is None:
        raise KeyError(f"No reminder settings for user {user_id}")
    settings.last_reminder_sent = now or datetime.utcnow()
    db.flush()


# ---- Learning sessions ----

def session_to_dict(s: LearningSession) -> Dict[str, Any]:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "started_at": s.started_at.isoformat(),
        "ended_at": s.ended_at.isoformat() if s.ended_at else None,
        "words_reviewed": s.words_reviewed or 0,
        "quiz_completed": s.quiz_completed or 0,
        "from_reminder": bool(s.from_reminder),
    }


def start_session(
    db: DBSession,
    user_id: str,
    from_reminder: bool = False,
    now: Optional[datetime] = None,
) -> LearningSession:
    session = LearningSession(
        user_id=user_id,
        started_at=now or datetime.utcnow(),
        words_reviewed=0,
        quiz_completed=0,
        from_reminder=from_reminder,
    )
    db.add(session)
    db.flush()
    return session


def _own_session(db: DBSession, user_id: str, session_id: int) -> LearningSession:
    session = db.get(LearningSession, session_id)
    if session is None or session.user_id != user_id:
        raise KeyError(f"Session {session_id} not found")
    return session


def update_session(
    db: DBSession,
    user_id: str,
    session_id: int,
    words_reviewed: Optional[int] = None,
    quiz_completed: Optional[int] = None,
) -> LearningSession:
    session = _own_session(db, user_id, session_id)
    if words_reviewed is not None:
        if words_reviewed < 0:
            raise ValueError("words_reviewed must be >= 0")
        session.words_reviewed = words_reviewed
    if quiz_completed is not None:
        if quiz_completed < 0:
            raise ValueError("quiz_completed must be >= 0")
        session.quiz_completed = quiz_completed
    db.flush()
    return session


def end_session(db: DBSession, user_id: str, session_id: int, now: Optional[datetime] = None) -> LearningSession:
    session = _own_session(db, user_id, session_id)
    session.ended_at = now or datetime.utcnow()
    db.flush()
    return session


def recent_sessions(db: DBSession, user_id: str, limit: int = 10) -> List[LearningSession]:
    return (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user_id)
        .order_by(LearningSession.started_at.desc())
        .limit(max(0, limit))
        .all()
    )


# ---- Reminder targets and status ----

def users_due_reminder(db: DBSession, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Learners to remind today: reminders enabled, none sent yet today,
    and at least one word due for review.
    """
    if now is None:
        now = datetime.utcnow()
    today = now.date()
    start_of_day = datetime.combine(today, datetime.min.time())

    rows = (
        db.query(ReminderSettings, User)
        .join(User, ReminderSettings.user_id == User.id)
        .filter(
            ReminderSettings.enabled.is_(True),
            (ReminderSettings.last_reminder_sent.is_(None))
            | (ReminderSettings.last_reminder_sent < start_of_day),
        )
        .all()
    )

    targets = []
    for settings, user in rows:
        due = review_service.get_words_to_review(db, user.id, limit=1, today=today)
        stats = review_service.get_stats(db, user.id, today=today)
        if due or stats["due_today"] > 0:
            targets.append({
                "user_id": user.id,
                "email": user.email,
                "username": user.username,
                "preferred_time": settings.preferred_time,
                "timezone": settings.timezone,
                "due_words": stats["due_today"],
            })
    logger.debug("%d learners due a reminder", len(targets))
    return targets


def learning_status(db: DBSession, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Summary used in reminder messages."""
    if now is None:
        now = datetime.utcnow()
    today = now.date()
    stats = review_service.get_stats(db, user_id, today=today)
    preview = review_service.get_words_to_review(db, user_id, limit=3, today=today)
    week_sessions = (
        db.query(LearningSession)
        .filter(
            LearningSession.user_id == user_id,
            LearningSession.started_at >= now - timedelta(days=7),
        )
        .count()
    )
    progress = db.get(UserProgress, user_id)

    return {
        "due_words_count": stats["due_today"],
        "total_words_learned": stats["total_words"],
        "mastered_words_count": stats["mastered_words"],
        "mastery_percentage": stats["mastery_percentage"],
        "weekly_session_count": week_sessions,
        "current_streak": (progress.streak or 0) if progress else 0,
        "words_preview": [w.word for w in preview],
    }
