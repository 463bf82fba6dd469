"""Learner records: creation, lookup, progress counters and streaks."""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import LearningSession, User, UserProgress
from server.services import plan_service

logger = logging.getLogger("learnbuddy.users")


def create_user(db: DBSession, username: str, email: str) -> User:
    """
    Create a learner on the free plan with empty progress and a free subscription.

    Raises ValueError if the email is already registered.
    """
    email = email.lower().strip()
    username = username.strip()
    if not username or not email:
        raise ValueError("Username and email are required")
    if db.query(User).filter(User.email == email).first():
        raise ValueError("Email already registered")

    user = User(username=username, email=email, plan="free")
    db.add(user)
    db.flush()
    db.add(UserProgress(user_id=user.id))
    plan_service.create_subscription(db, user.id, "free")
    db.flush()
    logger.info("Created user %s", user.id)
    return user


def get_user(db: DBSession, user_id: str) -> Optional[User]:
    if not user_id:
        return None
    return db.get(User, user_id)


def get_or_create_progress(db: DBSession, user_id: str) -> UserProgress:
    progress = db.get(UserProgress, user_id)
    if progress is None:
        progress = UserProgress(
            user_id=user_id,
            total_lessons_completed=0,
            total_questions_asked=0,
            words_learned=0,
            streak=0,
        )
        db.add(progress)
        db.flush()
    return progress


def progress_to_dict(progress: Optional[UserProgress]) -> Dict:
    if progress is None:
        return {
            'total_lessons_completed': 0,
            'total_questions_asked': 0,
            'words_learned': 0,
            'streak': 0,
            'last_active_date': None,
        }
    return {
        'total_lessons_completed': progress.total_lessons_completed or 0,
        'total_questions_asked': progress.total_questions_asked or 0,
        'words_learned': progress.words_learned or 0,
        'streak': progress.streak or 0,
        'last_active_date': progress.last_active_date,
    }


def get_progress(db: DBSession, user_id: str) -> Dict:
    return progress_to_dict(db.get(UserProgress, user_id))


def touch_activity(db: DBSession, user_id: str, now: Optional[datetime] = None) -> UserProgress:
    """
    Record learning activity for today and maintain the streak.

    Same day: unchanged. Day after the last activity: +1. Any gap: back to 1.
    """
    if now is None:
        now = datetime.utcnow()
    progress = get_or_create_progress(db, user_id)
    today = now.date().isoformat()
    yesterday = (now.date() - timedelta(days=1)).isoformat()

    if progress.last_active_date == today:
        return progress
    if progress.last_active_date == yesterday:
        progress.streak = (progress.streak or 0) + 1
    else:
        progress.streak = 1
    progress.last_active_date = today
    db.flush()
    return progress


def open_session(db: DBSession, user_id: str) -> Optional[LearningSession]:
    """Most recently started learning session that has not ended."""
    return (
        db.query(LearningSession)
        .filter(LearningSession.user_id == user_id, LearningSession.ended_at.is_(None))
        .order_by(LearningSession.started_at.desc())
        .first()
    )
