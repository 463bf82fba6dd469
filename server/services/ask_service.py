"""Tutor Q&A backed by the configured language model."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import User
from server.services import plan_service, user_service
from server.services.llm import LLMProvider
from server.services.llm.prompts import dev_mode_answer, tutor_answer

logger = logging.getLogger("learnbuddy.ask")

MAX_QUESTION_CHARS = 2000


async def answer_question(
    db: DBSession,
    user: User,
    provider: Optional[LLMProvider],
    question: str,
    context: Optional[str] = None,
    *,
    free_daily_questions: Optional[int] = None,
    max_tokens: int = 1000,
    temperature: float = 0.7,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Answer one learner question.

    The question is counted against the daily allowance before the model is
    called (QuotaExceededError when used up). Without a provider a
    development-mode answer is returned. LLMError propagates to the caller.
    """
    question = (question or "").strip()
    if not question:
        raise ValueError("question is required")
    if len(question) > MAX_QUESTION_CHARS:
        raise ValueError(f"question must be at most {MAX_QUESTION_CHARS} characters")

    plan_service.consume_question(db, user, free_daily_questions, now=now)
    progress = user_service.get_or_create_progress(db, user.id)
    progress.total_questions_asked = (progress.total_questions_asked or 0) + 1
    db.flush()

    if provider is None:
        answer = dev_mode_answer(question)
    else:
        system, prompt = tutor_answer(question, context)
        answer = await provider.generate_text(system, prompt, max_tokens=max_tokens, temperature=temperature)

    usage = plan_service.get_remaining_usage(db, user.id, free_daily_questions, now=now)
    return {
        'answer': answer,
        'sources': [],
        'usage': usage['daily_questions'],
    }
