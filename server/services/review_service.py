"""Spaced-repetition reviews persisted in word_history."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import WordHistory
from server.services import user_service
from study.analytics import compute_review_stats
from study.models import VocabularyWord, WordRecord
from study.scheduler import sm2_schedule

logger = logging.getLogger("learnbuddy.review")

# Quality recorded when a learner starts a word: first sight, understood
START_QUALITY = 4


def _to_record(row: WordHistory) -> WordRecord:
    return WordRecord(
        word=row.word,
        correct_count=row.correct_count or 0,
        incorrect_count=row.incorrect_count or 0,
        ease_factor=row.ease_factor if row.ease_factor is not None else 2.5,
        interval_days=row.interval or 1,
        last_reviewed=row.last_reviewed,
        next_review=row.next_review,
    )


def load_word_records(db: DBSession, user_id: str) -> List[WordRecord]:
    rows = db.query(WordHistory).filter(WordHistory.user_id == user_id).all()
    return [_to_record(r) for r in rows]


def _find(db: DBSession, user_id: str, word: str) -> Optional[WordHistory]:
    return (
        db.query(WordHistory)
        .filter(WordHistory.user_id == user_id, WordHistory.word == word)
        .first()
    )


def _bump_open_session(db: DBSession, user_id: str) -> None:
    session = user_service.open_session(db, user_id)
    if session is not None:
        session.words_reviewed = (session.words_reviewed or 0) + 1


def record_review(
    db: DBSession,
    user_id: str,
    word: str,
    quality: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Apply one review to the learner's state for `word` and persist it.

    A first review creates the word_history row and counts the word as
    learned. Every review also counts as activity for today's streak.
    """
    word = (word or "").strip()
    if not word:
        raise ValueError("word is required")
    if now is None:
        now = datetime.utcnow()

    row = _find(db, user_id, word)
    if row is None:
        result = sm2_schedule(quality, is_new=True, now=now)
        row = WordHistory(user_id=user_id, word=word)
        db.add(row)
        progress = user_service.get_or_create_progress(db, user_id)
        progress.words_learned = (progress.words_learned or 0) + 1
    else:
        result = sm2_schedule(
            quality,
            interval_days=row.interval or 1,
            ease_factor=row.ease_factor if row.ease_factor is not None else 2.5,
            correct_count=row.correct_count or 0,
            incorrect_count=row.incorrect_count or 0,
            now=now,
        )

    row.correct_count = result['correct_count']
    row.incorrect_count = result['incorrect_count']
    row.ease_factor = result['ease_factor']
    row.interval = result['interval_days']
    row.last_reviewed = result['reviewed_at']
    row.next_review = result['next_review']

    _bump_open_session(db, user_id)
    user_service.touch_activity(db, user_id, now=now)
    db.flush()
    logger.debug("Review %s/%s q=%s -> %sd", user_id, word, result['quality'], result['interval_days'])

    return {
        'word': word,
        'quality': result['quality'],
        'is_correct': result['is_correct'],
        'next_review': result['next_review'].isoformat(),
        'interval_days': result['interval_days'],
        'ease_factor': result['ease_factor'],
        'correct_count': result['correct_count'],
        'incorrect_count': result['incorrect_count'],
    }


def get_words_to_review(
    db: DBSession,
    user_id: str,
    limit: int = 10,
    today: Optional[date] = None,
) -> List[WordRecord]:
    """Due words: never scheduled first, then by next_review ascending."""
    if today is None:
        today = datetime.utcnow().date()
    end_of_day = datetime.combine(today + timedelta(days=1), time.min)
    rows = (
        db.query(WordHistory)
        .filter(
            WordHistory.user_id == user_id,
            (WordHistory.next_review.is_(None)) | (WordHistory.next_review < end_of_day),
        )
        .order_by(WordHistory.next_review.isnot(None), WordHistory.next_review.asc())
        .limit(max(0, limit))
        .all()
    )
    return [_to_record(r) for r in rows]


def enrich_with_vocabulary(records: List[WordRecord], vocabulary: List[VocabularyWord]) -> List[Dict[str, Any]]:
    """Attach definitions and examples; words outside the list get empty strings."""
    by_word = {v.word: v for v in vocabulary}
    enriched = []
    for r in records:
        vocab = by_word.get(r.word)
        item = r.to_dict()
        item.update({
            'definition': vocab.definition if vocab else '',
            'definition_ja': vocab.definition_ja if vocab else '',
            'example': vocab.example if vocab else '',
            'example_ja': vocab.example_ja if vocab else '',
            'pronunciation': vocab.pronunciation if vocab else '',
        })
        enriched.append(item)
    return enriched


def get_stats(db: DBSession, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    if today is None:
        today = datetime.utcnow().date()
    return compute_review_stats(load_word_records(db, user_id), today)


def get_word_history(db: DBSession, user_id: str, word: str) -> Optional[WordRecord]:
    row = _find(db, user_id, word)
    return _to_record(row) if row is not None else None


def start_word(
    db: DBSession,
    user_id: str,
    word: str,
    vocabulary: List[VocabularyWord],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Begin studying a vocabulary word.

    Already-studied words are returned unchanged with started=False.
    Raises KeyError when the word is not in the vocabulary.
    """
    existing = get_word_history(db, user_id, word)
    if existing is not None:
        return {'started': False, 'word_history': existing.to_dict()}

    vocab = next((v for v in vocabulary if v.word == word), None)
    if vocab is None:
        raise KeyError(f"Unknown word: {word}")

    result = record_review(db, user_id, word, START_QUALITY, now=now)
    return {'started': True, 'result': result, 'vocab': vocab.to_dict()}

