"""Tests for server/services/review_service.py -- persisted SM-2 reviews."""

import sys
import tempfile
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from server.config import Settings
from server.db.models import WordHistory
from server.db.session import get_session_factory, init_db, reset_engine
from server.services import reminder_service, review_service, user_service
from study.models import VocabularyWord

NOW = datetime(2026, 3, 10, 9, 0)


@contextmanager
def _session():
    reset_engine()
    with tempfile.TemporaryDirectory() as tmp:
        settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}")
        init_db(settings)
        db = get_session_factory(settings)()
        try:
            yield db
        finally:
            db.close()
            reset_engine()


def _user(db):
    return user_service.create_user(db, "learner", "learner@example.com")


def test_first_review_creates_history():
    with _session() as db:
        user = _user(db)
        result = review_service.record_review(db, user.id, "abundant", 4, now=NOW)
        assert result["interval_days"] == 1
        assert result["ease_factor"] == 2.5
        assert result["is_correct"] is True
        assert result["next_review"] == (NOW + timedelta(days=1)).isoformat()

        progress = user_service.get_progress(db, user.id)
        assert progress["words_learned"] == 1
        assert progress["streak"] == 1
        assert progress["last_active_date"] == "2026-03-10"


def test_repeated_reviews_follow_sm2():
    with _session() as db:
        user = _user(db)
        review_service.record_review(db, user.id, "crucial", 4, now=NOW)
        second = review_service.record_review(db, user.id, "crucial", 4, now=NOW + timedelta(days=1))
        assert second["interval_days"] == 6
        third = review_service.record_review(db, user.id, "crucial", 5, now=NOW + timedelta(days=7))
        assert third["interval_days"] == 15
        assert third["ease_factor"] == pytest.approx(2.6)
        assert third["correct_count"] == 3

        miss = review_service.record_review(db, user.id, "crucial", 1, now=NOW + timedelta(days=22))
        assert miss["interval_days"] == 1
        assert miss["incorrect_count"] == 1

        # Only the first review counts the word as learned
        assert user_service.get_progress(db, user.id)["words_learned"] == 1
        history = review_service.get_word_history(db, user.id, "crucial")
        assert history.correct_count == 3
        assert history.incorrect_count == 1


def test_empty_word_rejected():
    with _session() as db:
        user = _user(db)
        with pytest.raises(ValueError):
            review_service.record_review(db, user.id, "   ", 4, now=NOW)


def test_streak_extends_and_resets():
    with _session() as db:
        user = _user(db)
        review_service.record_review(db, user.id, "a", 4, now=NOW)
        review_service.record_review(db, user.id, "b", 4, now=NOW + timedelta(hours=3))
        assert user_service.get_progress(db, user.id)["streak"] == 1
        review_service.record_review(db, user.id, "c", 4, now=NOW + timedelta(days=1))
        assert user_service.get_progress(db, user.id)["streak"] == 2
        review_service.record_review(db, user.id, "d", 4, now=NOW + timedelta(days=4))
        assert user_service.get_progress(db, user.id)["streak"] == 1


def test_review_bumps_open_session():
    with _session() as db:
        user = _user(db)
        session = reminder_service.start_session(db, user.id, now=NOW)
        review_service.record_review(db, user.id, "a", 4, now=NOW)
        review_service.record_review(db, user.id, "b", 2, now=NOW)
        assert session.words_reviewed == 2


def test_due_words_order_and_limit():
    with _session() as db:
        user = _user(db)
        for word, next_review in [
            ("future", datetime(2026, 3, 12)),
            ("today", datetime(2026, 3, 10, 22, 0)),
            ("unscheduled", None),
            ("overdue", datetime(2026, 3, 1)),
        ]:
            db.add(WordHistory(user_id=user.id, word=word, next_review=next_review))
        db.flush()

        due = review_service.get_words_to_review(db, user.id, limit=10, today=date(2026, 3, 10))
        assert [w.word for w in due] == ["unscheduled", "overdue", "today"]
        limited = review_service.get_words_to_review(db, user.id, limit=2, today=date(2026, 3, 10))
        assert [w.word for w in limited] == ["unscheduled", "overdue"]


def test_due_words_are_per_user():
    with _session() as db:
        alice = _user(db)
        bob = user_service.create_user(db, "bob", "bob@example.com")
        review_service.record_review(db, alice.id, "a", 0, now=NOW - timedelta(days=2))
        assert review_service.get_words_to_review(db, bob.id, today=NOW.date()) == []
        assert len(review_service.get_words_to_review(db, alice.id, today=NOW.date())) == 1


def test_enrich_with_vocabulary():
    with _session() as db:
        user = _user(db)
        review_service.record_review(db, user.id, "abundant", 4, now=NOW)
        review_service.record_review(db, user.id, "zzz", 4, now=NOW)
        records = review_service.load_word_records(db, user.id)
        vocab = [VocabularyWord(word="abundant", definition="plenty", definition_ja="豊富な")]
        enriched = {item["word"]: item for item in review_service.enrich_with_vocabulary(records, vocab)}
        assert enriched["abundant"]["definition"] == "plenty"
        assert enriched["abundant"]["definition_ja"] == "豊富な"
        assert enriched["zzz"]["definition"] == ""
        assert enriched["zzz"]["ease_factor"] == 2.5


def test_stats():
    with _session() as db:
        user = _user(db)
        assert review_service.get_stats(db, user.id, today=NOW.date())["total_words"] == 0
        review_service.record_review(db, user.id, "a", 4, now=NOW - timedelta(days=3))
        review_service.record_review(db, user.id, "b", 4, now=NOW)
        stats = review_service.get_stats(db, user.id, today=NOW.date())
        assert stats["total_words"] == 2
        assert stats["due_today"] == 1
        assert stats["mastered_words"] == 0


def test_start_word():
    with _session() as db:
        user = _user(db)
        vocab = [VocabularyWord(word="benefit", definition="an advantage")]
        started = review_service.start_word(db, user.id, "benefit", vocab, now=NOW)
        assert started["started"] is True
        assert started["result"]["quality"] == review_service.START_QUALITY
        assert started["vocab"]["definition"] == "an advantage"

        again = review_service.start_word(db, user.id, "benefit", vocab, now=NOW)
        assert again["started"] is False
        assert again["word_history"]["correct_count"] == 1

        with pytest.raises(KeyError):
            review_service.start_word(db, user.id, "missing", vocab, now=NOW)
