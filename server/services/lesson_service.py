"""Lesson catalog, vocabulary lookups and lesson completions."""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import LessonCompletion, User
from server.services import plan_service, user_service
from study import vocabulary
from study.models import Lesson, VocabularyWord

logger = logging.getLogger("learnbuddy.lessons")


def list_lessons() -> List[Lesson]:
    return vocabulary.all_lessons()


def get_lesson(lesson_id: str) -> Optional[Lesson]:
    return vocabulary.get_lesson(lesson_id)


def get_vocabulary_words(content_dir, lesson_id: str = vocabulary.BASIC_ENGLISH) -> List[VocabularyWord]:
    return vocabulary.load_vocabulary(content_dir, lesson_id)


def get_word_of_the_day(content_dir, today: Optional[date] = None) -> Optional[VocabularyWord]:
    words = vocabulary.load_vocabulary(content_dir, vocabulary.WORD_OF_THE_DAY)
    return vocabulary.word_of_the_day(words, today)


def mark_complete(
    db: DBSession,
    user: User,
    lesson_id: str,
    score: Optional[int] = None,
    now: Optional[datetime] = None,
) -> LessonCompletion:
    """
    Record a completed lesson.

    Raises KeyError for an unknown lesson, ValueError for a score outside
    0-100, and QuotaExceededError when the monthly lesson allowance is used up.
    """
    if vocabulary.get_lesson(lesson_id) is None:
        raise KeyError(f"Unknown lesson: {lesson_id}")
    if score is not None and not (0 <= score <= 100):
        raise ValueError("score must be between 0 and 100")
    if now is None:
        now = datetime.utcnow()

    plan_service.check_lesson_quota(db, user, now=now)

    completion = LessonCompletion(user_id=user.id, lesson_id=lesson_id, score=score, completed_at=now)
    db.add(completion)
    progress = user_service.get_or_create_progress(db, user.id)
    progress.total_lessons_completed = (progress.total_lessons_completed or 0) + 1
    user_service.touch_activity(db, user.id, now=now)
    db.flush()
    logger.info("User %s completed lesson %s (score=%s)", user.id, lesson_id, score)
    return completion


def completion_to_dict(c: LessonCompletion) -> Dict[str, Any]:
    return {
        'lesson_id': c.lesson_id,
        'score': c.score,
        'completed_at': c.completed_at.isoformat(),
    }


def get_completed_lessons(db: DBSession, user_id: str) -> List[LessonCompletion]:
    return (
        db.query(LessonCompletion)
        .filter(LessonCompletion.user_id == user_id)
        .order_by(LessonCompletion.completed_at.desc())
        .all()
    )
