"""Tests for the LLM provider layer and the quiz/ask services built on it."""

import asyncio
import logging
import sys
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from server.config import Settings
from server.db.session import get_session_factory, init_db, reset_engine
from server.services import ask_service, quiz_service, reminder_service, user_service
from server.services.errors import QuotaExceededError
from server.services.llm import FakeProvider, LLMError, get_provider, reset_provider
from server.services.llm.provider import OllamaProvider, OpenAIProvider, parse_json_text

NOW = datetime(2026, 3, 10, 9, 0)

QUIZ_JSON = [
    {"question": "Pick the synonym of 'abundant'", "options": ["plentiful", "scarce", "late"],
     "correctIndex": 0, "explanation": "abundant means plentiful"},
    {"question": "Pick the antonym of 'frequent'", "options": ["often", "rare"],
     "correctIndex": 1, "explanation": "rare is the opposite"},
]


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


# ============================================================================
# Provider selection and JSON parsing
# ============================================================================

def test_disabled_returns_no_provider():
    reset_provider()

    class DisabledSettings:
        llm_enabled = False

    assert get_provider(DisabledSettings()) is None


def test_openai_without_key_returns_none():
    reset_provider()
    settings = Settings(database_url="sqlite://", llm_enabled=True, llm_provider="openai", llm_api_key="")
    assert get_provider(settings) is None


def test_provider_selection_is_cached():
    reset_provider()
    settings = Settings(database_url="sqlite://", llm_enabled=True, llm_provider="ollama",
                        llm_base_url="http://localhost:11434/")
    provider = get_provider(settings)
    assert isinstance(provider, OllamaProvider)
    assert provider.base_url == "http://localhost:11434"
    assert get_provider(settings) is provider
    reset_provider()

    settings = Settings(database_url="sqlite://", llm_enabled=True, llm_provider="openai", llm_api_key="sk-test")
    assert isinstance(get_provider(settings), OpenAIProvider)
    reset_provider()


def test_parse_json_tolerates_code_fence():
    assert parse_json_text('```json\n[{"a": 1}]\n```') == [{"a": 1}]
    assert parse_json_text('{"a": 2}') == {"a": 2}


@pytest.mark.parametrize("text", ["", "not json", "```\n{broken\n```"])
def test_parse_json_rejects_garbage(text):
    with pytest.raises(LLMError) as exc:
        parse_json_text(text)
    assert exc.value.kind == "invalid_json"


def test_fake_provider_records_calls():
    provider = FakeProvider(canned={"ok": True})
    result = asyncio.run(provider.generate_json("sys", "user"))
    assert result == {"ok": True}
    assert provider.calls[0]["system"] == "sys"
    assert provider.calls[0]["user"] == "user"


# ============================================================================
# Quiz generation
# ============================================================================

def test_quiz_generated_from_model_and_cached():
    quiz_service.clear_cache()
    provider = FakeProvider(canned=QUIZ_JSON)
    quiz = asyncio.run(quiz_service.get_quiz(provider, "vocabulary", "easy"))
    assert quiz["quiz_id"] == "vocabulary-easy"
    assert len(quiz["questions"]) == 2
    assert "correct_index" not in quiz["questions"][0]
    assert "explanation" not in quiz["questions"][0]

    # Second request is served from cache without calling the model
    asyncio.run(quiz_service.get_quiz(provider, "vocabulary", "easy"))
    assert len(provider.calls) == 1
    quiz_service.clear_cache()


def test_quiz_falls_back_when_model_fails():
    quiz_service.clear_cache()
    failing = FakeProvider(error=LLMError(kind="unavailable", message="Ollama not running"))
    quiz = asyncio.run(quiz_service.get_quiz(failing, "travel"))
    assert len(quiz["questions"]) == 1
    assert "travel" in quiz["questions"][0]["question"]
    assert quiz["quiz_id"] == "travel-medium-sample"

    # The fallback is still gradable under its own id
    graded = quiz_service.submit_quiz(None, quiz["quiz_id"], [0])
    assert graded["score"] == 1

    # The real id was left free, so a working model is asked again
    working = FakeProvider(canned=QUIZ_JSON)
    quiz = asyncio.run(quiz_service.get_quiz(working, "travel"))
    assert quiz["quiz_id"] == "travel-medium"
    assert len(quiz["questions"]) == 2
    assert len(working.calls) == 1
    quiz_service.clear_cache()


def test_quiz_falls_back_on_invalid_questions():
    quiz_service.clear_cache()
    provider = FakeProvider(canned=[{"question": "no options"}])
    quiz = asyncio.run(quiz_service.get_quiz(provider, "travel", "hard"))
    assert quiz["questions"][0]["options"] == ["Option A", "Option B", "Option C", "Option D"]
    assert quiz_service._get("travel-hard") is None
    quiz_service.clear_cache()


def test_quiz_failure_logs_error_kind(caplog):
    quiz_service.clear_cache()
    provider = FakeProvider(error=LLMError(kind="timeout", message="Model request timed out"))
    with caplog.at_level(logging.WARNING, logger="learnbuddy.quiz"):
        asyncio.run(quiz_service.get_quiz(provider, "travel"))
    assert "Model request timed out (timeout)" in caplog.text
    quiz_service.clear_cache()


def test_quiz_rejects_bad_input():
    with pytest.raises(ValueError):
        asyncio.run(quiz_service.get_quiz(None, "   "))
    with pytest.raises(ValueError):
        asyncio.run(quiz_service.get_quiz(None, "travel", "extreme"))


def test_quiz_cache_evicts_least_recently_used():
    quiz_service.clear_cache()
    quiz_service.set_capacity(2)
    try:
        for topic in ("a", "b"):
            asyncio.run(quiz_service.get_quiz(None, topic))
        quiz_service._get("a-medium")  # touch a
        asyncio.run(quiz_service.get_quiz(None, "c"))
        assert quiz_service._get("a-medium") is not None
        assert quiz_service._get("b-medium") is None
    finally:
        quiz_service.set_capacity(200)
        quiz_service.clear_cache()


def test_submit_quiz_records_result():
    quiz_service.clear_cache()
    with _session() as db:
        user = user_service.create_user(db, "learner", "learner@example.com")
        session = reminder_service.start_session(db, user.id, now=NOW)
        provider = FakeProvider(canned=QUIZ_JSON)
        quiz = asyncio.run(quiz_service.get_quiz(provider, "vocabulary", "easy"))

        result = quiz_service.submit_quiz(db, quiz["quiz_id"], [0, 0], user_id=user.id, now=NOW)
        assert result["score"] == 1
        assert result["percentage"] == 50
        assert session.quiz_completed == 1
        recent = quiz_service.recent_results(db, user.id)
        assert recent[0]["quiz_id"] == "vocabulary-easy"
        assert user_service.get_progress(db, user.id)["streak"] == 1

        with pytest.raises(KeyError):
            quiz_service.submit_quiz(db, "unknown-easy", [0])
    quiz_service.clear_cache()


# ============================================================================
# Tutor Q&A
# ============================================================================

def test_ask_dev_mode_without_provider():
    with _session() as db:
        user = user_service.create_user(db, "learner", "learner@example.com")
        result = asyncio.run(ask_service.answer_question(db, user, None, "What does 'crucial' mean?", now=NOW))
        assert result["answer"].startswith("[Development mode]")
        assert result["sources"] == []
        assert result["usage"] == {"used": 1, "limit": 5, "remaining": 4}
        assert user_service.get_progress(db, user.id)["total_questions_asked"] == 1


def test_ask_passes_context_to_model():
    with _session() as db:
        user = user_service.create_user(db, "learner", "learner@example.com")
        provider = FakeProvider(canned="It means very important.")
        result = asyncio.run(ask_service.answer_question(
            db, user, provider, "What does 'crucial' mean?", context="Lesson 1", now=NOW,
        ))
        assert result["answer"] == "It means very important."
        assert provider.calls[0]["user"] == "Context: Lesson 1\n\nQuestion: What does 'crucial' mean?"


def test_ask_quota_and_validation():
    with _session() as db:
        user = user_service.create_user(db, "learner", "learner@example.com")
        with pytest.raises(ValueError):
            asyncio.run(ask_service.answer_question(db, user, None, "   ", now=NOW))
        with pytest.raises(ValueError):
            asyncio.run(ask_service.answer_question(db, user, None, "x" * 2001, now=NOW))

        asyncio.run(ask_service.answer_question(db, user, None, "q1", free_daily_questions=1, now=NOW))
        with pytest.raises(QuotaExceededError):
            asyncio.run(ask_service.answer_question(db, user, None, "q2", free_daily_questions=1, now=NOW))


def test_ask_propagates_model_errors():
    with _session() as db:
        user = user_service.create_user(db, "learner", "learner@example.com")
        provider = FakeProvider(error=LLMError(kind="timeout", message="Model request timed out"))
        with pytest.raises(LLMError):
            asyncio.run(ask_service.answer_question(db, user, provider, "hello", now=NOW))
