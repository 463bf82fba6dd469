"""Load a learner's records and run the study analytics over them."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import LearningSession, LessonCompletion, UserProgress, WordHistory
from server.services.review_service import load_word_records
from study import analytics, curriculum
from study.models import LessonAttempt, SessionRecord
from study.vocabulary import BASIC_ENGLISH, load_vocabulary


def load_completions(db: DBSession, user_id: str) -> List[LessonAttempt]:
    rows = (
        db.query(LessonCompletion)
        .filter(LessonCompletion.user_id == user_id)
        .order_by(LessonCompletion.completed_at.asc())
        .all()
    )
    return [LessonAttempt(lesson_id=r.lesson_id, score=r.score, completed_at=r.completed_at) for r in rows]


def load_sessions(db: DBSession, user_id: str, since: Optional[datetime] = None) -> List[SessionRecord]:
    q = db.query(LearningSession).filter(LearningSession.user_id == user_id)
    if since is not None:
        q = q.filter(LearningSession.started_at >= since)
    return [
        SessionRecord(
            started_at=s.started_at,
            ended_at=s.ended_at,
            words_reviewed=s.words_reviewed or 0,
            quiz_completed=s.quiz_completed or 0,
            from_reminder=bool(s.from_reminder),
        )
        for s in q.order_by(LearningSession.started_at.asc()).all()
    ]


def _streak(db: DBSession, user_id: str) -> int:
    progress = db.get(UserProgress, user_id)
    return (progress.streak or 0) if progress else 0


def word_performance(db: DBSession, user_id: str) -> Dict:
    return analytics.analyze_word_performance(load_word_records(db, user_id))


def lesson_progress(db: DBSession, user_id: str) -> Dict:
    return analytics.analyze_lesson_progress(load_completions(db, user_id))


def learning_pattern(
    db: DBSession,
    user_id: str,
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> Dict:
    if now is None:
        now = datetime.utcnow()
    sessions = load_sessions(db, user_id, since=now - timedelta(days=window_days))
    return analytics.analyze_learning_pattern(sessions, _streak(db, user_id), now=now, window_days=window_days)


def weaknesses(db: DBSession, user_id: str) -> Dict:
    return analytics.detect_weaknesses(load_word_records(db, user_id))


def comprehensive_analysis(
    db: DBSession,
    user_id: str,
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> Dict:
    if now is None:
        now = datetime.utcnow()
    return curriculum.build_comprehensive_analysis(
        user_id,
        load_word_records(db, user_id),
        load_completions(db, user_id),
        load_sessions(db, user_id, since=now - timedelta(days=window_days)),
        streak=_streak(db, user_id),
        now=now,
        window_days=window_days,
    )


def adaptive_curriculum(
    db: DBSession,
    user_id: str,
    content_dir,
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Today's curriculum. The learn task is filled with vocabulary words the
    learner has not started yet, in content order.
    """
    analysis = comprehensive_analysis(db, user_id, window_days=window_days, now=now)
    plan = curriculum.build_adaptive_curriculum(analysis, now=now)

    studied = {
        w for (w,) in db.query(WordHistory.word).filter(WordHistory.user_id == user_id).all()
    }
    unstudied = [v.word for v in load_vocabulary(content_dir, BASIC_ENGLISH) if v.word not in studied]
    for task in plan['todays_tasks']:
        if task['type'] == 'learn':
            task['words'] = unstudied[:curriculum.new_words_target(analysis['word_analysis']['mastery_rate'])]
    return plan
