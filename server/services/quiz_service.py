"""Quiz generation, caching and grading."""

import logging
from collections import OrderedDict
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session as DBSession

from server.db.models import QuizResult
from server.services import user_service
from server.services.llm import LLMError, LLMProvider
from server.services.llm.prompts import quiz_generation
from study.models import QuizQuestion
from study.quiz import DIFFICULTIES, grade_quiz, normalize_topic, parse_quiz_questions, quiz_id_for, sample_quiz

logger = logging.getLogger("learnbuddy.quiz")

# Generated quizzes by quiz id (LRU). Submissions are graded against these.
_CACHE: "OrderedDict[str, List[QuizQuestion]]" = OrderedDict()
_CACHE_MAX = 200
_LOCK = Lock()

# Fallback quizzes are stored under a separate id so submissions can still be graded
FALLBACK_SUFFIX = "-sample"


def set_capacity(size: int) -> None:
    global _CACHE_MAX
    with _LOCK:
        _CACHE_MAX = max(1, size)
        while len(_CACHE) > _CACHE_MAX:
            _CACHE.popitem(last=False)


def _get(quiz_id: str) -> Optional[List[QuizQuestion]]:
    with _LOCK:
        if quiz_id in _CACHE:
            _CACHE.move_to_end(quiz_id)
            return _CACHE[quiz_id]
    return None


def _set(quiz_id: str, questions: List[QuizQuestion]) -> None:
    with _LOCK:
        if quiz_id in _CACHE:
            _CACHE.move_to_end(quiz_id)
        _CACHE[quiz_id] = questions
        while len(_CACHE) > _CACHE_MAX:
            _CACHE.popitem(last=False)


def clear_cache() -> None:
    """Clear cache (for tests)."""
    with _LOCK:
        _CACHE.clear()


async def _generate(provider: Optional[LLMProvider], topic: str, difficulty: str) -> Tuple[List[QuizQuestion], bool]:
    """Return (questions, usable_as_cached). A fallback after a model failure is not."""
    if provider is None:
        return sample_quiz(topic), True
    try:
        raw = await provider.generate_json(None, quiz_generation(topic, difficulty), max_tokens=1500, temperature=0.8)
        return parse_quiz_questions(raw), True
    except LLMError as e:
        logger.warning("Quiz generation failed for %r: %s (%s); using sample quiz", topic, e.message, e.kind)
    except ValueError as e:
        logger.warning("Quiz generation for %r returned no valid questions (%s); using sample quiz", topic, e)
    return sample_quiz(topic), False


async def get_quiz(provider: Optional[LLMProvider], topic: str, difficulty: str = "medium") -> Dict[str, Any]:
    """
    Quiz for (topic, difficulty), generated once and then served from cache.

    Answers and explanations are never included in the returned questions.
    """
    topic = normalize_topic(topic)
    if not topic:
        raise ValueError("topic is required")
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")

    quiz_id = quiz_id_for(topic, difficulty)
    questions = _get(quiz_id)
    if questions is None:
        questions, cacheable = await _generate(provider, topic, difficulty)
        if not cacheable:
            # Keep the real id free so the next request retries the model
            quiz_id = f"{quiz_id}{FALLBACK_SUFFIX}"
        _set(quiz_id, questions)

    return {
        'quiz_id': quiz_id,
        'topic': topic,
        'difficulty': difficulty,
        'questions': [q.public_dict() for q in questions],
    }


def submit_quiz(
    db: DBSession,
    quiz_id: str,
    answers: List[Optional[int]],
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Grade answers against a cached quiz. Raises KeyError for an unknown quiz.

    With a user, the result is stored, the open learning session's quiz
    counter is bumped and the day counts towards the streak.
    """
    questions = _get(quiz_id)
    if questions is None:
        raise KeyError(f"Unknown quiz: {quiz_id}")
    result = grade_quiz(questions, answers)

    if user_id:
        if now is None:
            now = datetime.utcnow()
        db.add(QuizResult(
            user_id=user_id,
            quiz_id=quiz_id,
            score=result['score'],
            total=result['total'],
            percentage=result['percentage'],
            completed_at=now,
        ))
        session = user_service.open_session(db, user_id)
        if session is not None:
            session.quiz_completed = (session.quiz_completed or 0) + 1
        user_service.touch_activity(db, user_id, now=now)
        db.flush()
    return result


def recent_results(db: DBSession, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
    rows = (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id)
        .order_by(QuizResult.completed_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            'quiz_id': r.quiz_id,
            'score': r.score,
            'total': r.total,
            'percentage': r.percentage,
            'completed_at': r.completed_at.isoformat(),
        }
        for r in rows
    ]
