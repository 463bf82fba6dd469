"""FastAPI application -- routes for the LearnBuddy tutoring backend."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session as DBSession

from server.__version__ import __version__
from server.auth import get_current_user, get_current_user_optional
from server.config import Settings
from server.db.models import User
from server.dependencies import get_db_session, get_llm_provider, get_settings
from server.schemas import (
    AskRequest,
    AskResponse,
    CompleteLessonRequest,
    CreateUserRequest,
    DueWordsResponse,
    LearningStatusResponse,
    ProgressResponse,
    QuizResponse,
    QuizResultResponse,
    QuizSubmitRequest,
    ReminderSettingsRequest,
    ReminderSettingsResponse,
    ReviewRequest,
    ReviewResponse,
    SessionResponse,
    StartSessionRequest,
    StartWordRequest,
    StatsResponse,
    SubscriptionResponse,
    UpdateSessionRequest,
    UpgradeRequest,
    UserResponse,
)
from server.services import (
    analytics_service,
    ask_service,
    lesson_service,
    plan_service,
    quiz_service,
    reminder_service,
    review_service,
    user_service,
)
from server.services.errors import FeatureNotAvailableError, QuotaExceededError
from server.services.llm import LLMError, LLMProvider

logger = logging.getLogger("learnbuddy")

UPGRADE_URL = "/plans"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: create tables and expire lapsed subscriptions."""
    from server.db.session import get_db, init_db
    settings = app.dependency_overrides.get(get_settings, get_settings)()
    init_db(settings)
    quiz_service.set_capacity(settings.quiz_cache_size)
    with get_db(settings) as db:
        expired = plan_service.process_expired_subscriptions(db)
    ts = datetime.utcnow().isoformat() + "Z"
    logger.info("[%s] Startup: database ready, %d subscriptions expired", ts, expired)
    yield
    ts_end = datetime.utcnow().isoformat() + "Z"
    logger.info("[%s] Shutdown: complete", ts_end)


app = FastAPI(title="LearnBuddy", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Error translation ----

@app.exception_handler(FeatureNotAvailableError)
async def feature_not_available_handler(request: Request, exc: FeatureNotAvailableError):
    return JSONResponse(
        status_code=403,
        content={
            "detail": str(exc),
            "feature": exc.feature,
            "current_plan": exc.current_plan,
            "required_plans": exc.required_plans,
            "upgrade_url": UPGRADE_URL,
        },
    )


@app.exception_handler(QuotaExceededError)
async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
    return JSONResponse(
        status_code=429,
        content={
            "detail": str(exc),
            "quota": exc.quota,
            "limit": exc.limit,
            "used": exc.used,
            "upgrade_url": UPGRADE_URL,
        },
    )


# ---- Health (no dependencies, always fast) ----

@app.get("/api/health")
def health():
    """Minimal health check. No deps. Always returns immediately."""
    return {"ok": True, "version": __version__}


# ---- Users ----

def _user_dict(user: User) -> dict:
    return {"id": user.id, "username": user.username, "email": user.email, "plan": user.plan}


@app.post("/api/users", response_model=UserResponse, status_code=201)
def create_user(body: CreateUserRequest, db: DBSession = Depends(get_db_session)):
    """Register a learner on the free plan. Credentials live in the upstream auth layer."""
    try:
        user = user_service.create_user(db, body.username, body.email)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    reminder_service.initialize_for_user(db, user.id)
    return _user_dict(user)


@app.get("/api/users/me", response_model=UserResponse)
def users_me(user: User = Depends(get_current_user)):
    return _user_dict(user)


@app.get("/api/users/progress", response_model=ProgressResponse)
def users_progress(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    return user_service.get_progress(db, user.id)


# ---- Review (spaced repetition) ----

@app.get("/api/review", response_model=DueWordsResponse)
def review_due(
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """Words due today, enriched with definitions from the vocabulary list."""
    records = review_service.get_words_to_review(db, user.id, limit or settings.review_batch_limit)
    words = review_service.enrich_with_vocabulary(
        records, lesson_service.get_vocabulary_words(settings.content_dir),
    )
    return {"words_to_review": words, "count": len(words)}


@app.post("/api/review", response_model=ReviewResponse)
def review_record(
    body: ReviewRequest,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    """Record a review (quality 0-5) and reschedule the word."""
    try:
        result = review_service.record_review(db, user.id, body.word, body.quality)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "result": result}


@app.get("/api/review/stats", response_model=StatsResponse)
def review_stats(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    return {"stats": review_service.get_stats(db, user.id)}


@app.post("/api/review/start")
def review_start(
    body: StartWordRequest,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """Start studying a vocabulary word. Already-started words are returned as-is."""
    try:
        return review_service.start_word(
            db, user.id, body.word.strip(), lesson_service.get_vocabulary_words(settings.content_dir),
        )
    except KeyError:
        raise HTTPException(status_code=404, detail="Word not found")


@app.get("/api/review/words/{word}")
def review_word_history(word: str, user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    record = review_service.get_word_history(db, user.id, word)
    if record is None:
        raise HTTPException(status_code=404, detail="Word not studied yet")
    return record.to_dict()


# ---- Analytics (premium) ----

@app.get("/api/analytics")
def analytics_overview(
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    plan_service.require_feature(db, user, "analytics_access")
    return analytics_service.comprehensive_analysis(db, user.id, window_days=settings.analysis_window_days)


@app.get("/api/analytics/words")
def analytics_words(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    plan_service.require_feature(db, user, "analytics_access")
    return analytics_service.word_performance(db, user.id)


@app.get("/api/analytics/lessons")
def analytics_lessons(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    plan_service.require_feature(db, user, "analytics_access")
    return analytics_service.lesson_progress(db, user.id)


@app.get("/api/analytics/pattern")
def analytics_pattern(
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    plan_service.require_feature(db, user, "analytics_access")
    return analytics_service.learning_pattern(db, user.id, window_days=settings.analysis_window_days)


@app.get("/api/analytics/weaknesses")
def analytics_weaknesses(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    plan_service.require_feature(db, user, "analytics_access")
    return analytics_service.weaknesses(db, user.id)


@app.get("/api/analytics/curriculum")
def analytics_curriculum(
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    plan_service.require_feature(db, user, "curriculum_access")
    try:
        return analytics_service.adaptive_curriculum(
            db, user.id, settings.content_dir, window_days=settings.analysis_window_days,
        )
    except Exception:
        logger.exception("Curriculum build failed for user %s", user.id)
        raise HTTPException(status_code=500, detail="Could not build curriculum")


# ---- Lessons ----

@app.get("/api/lessons")
def lessons_list():
    return {"lessons": [l.to_dict() for l in lesson_service.list_lessons()]}


@app.get("/api/lessons/word-of-the-day")
def lessons_word_of_the_day(settings: Settings = Depends(get_settings)):
    word = lesson_service.get_word_of_the_day(settings.content_dir)
    if word is None:
        raise HTTPException(status_code=404, detail="No vocabulary available")
    return {"word": word.to_dict()}


@app.get("/api/lessons/completed")
def lessons_completed(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    rows = lesson_service.get_completed_lessons(db, user.id)
    return {"completions": [lesson_service.completion_to_dict(c) for c in rows]}


@app.get("/api/lessons/{lesson_id}")
def lessons_get(lesson_id: str):
    lesson = lesson_service.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return {"lesson": lesson.to_dict()}


@app.get("/api/lessons/{lesson_id}/words")
def lessons_words(lesson_id: str, settings: Settings = Depends(get_settings)):
    if lesson_service.get_lesson(lesson_id) is None:
        raise HTTPException(status_code=404, detail="Lesson not found")
    words = lesson_service.get_vocabulary_words(settings.content_dir, lesson_id)
    return {"words": [w.to_dict() for w in words], "count": len(words)}


@app.post("/api/lessons/{lesson_id}/complete")
def lessons_complete(
    lesson_id: str,
    body: Optional[CompleteLessonRequest] = None,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    """Record a completion; counted against the plan's monthly lesson quota."""
    score = body.score if body else None
    try:
        completion = lesson_service.mark_complete(db, user, lesson_id, score)
    except KeyError:
        raise HTTPException(status_code=404, detail="Lesson not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "completion": lesson_service.completion_to_dict(completion)}


# ---- Quiz ----

@app.post("/api/quiz/submit", response_model=QuizResultResponse)
def quiz_submit(
    body: QuizSubmitRequest,
    user: Optional[User] = Depends(get_current_user_optional),
    db: DBSession = Depends(get_db_session),
):
    """Grade a cached quiz. Results are stored when the caller is known."""
    try:
        return quiz_service.submit_quiz(db, body.quiz_id, body.answers, user_id=user.id if user else None)
    except KeyError:
        raise HTTPException(status_code=404, detail="Quiz not found")


@app.get("/api/quiz/results")
def quiz_results(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    return {"results": quiz_service.recent_results(db, user.id)}


@app.get("/api/quiz/{topic}", response_model=QuizResponse)
async def quiz_get(
    topic: str,
    difficulty: str = "medium",
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
):
    """Quiz for a topic, generated once per (topic, difficulty). Answers are withheld."""
    try:
        return await quiz_service.get_quiz(provider, topic, difficulty)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---- Ask (AI tutor) ----

@app.post("/api/ask", response_model=AskResponse)
async def ask(
    body: AskRequest,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    provider: Optional[LLMProvider] = Depends(get_llm_provider),
):
    """Answer a question. Counts against the daily question allowance."""
    try:
        return await ask_service.answer_question(
            db,
            user,
            provider,
            body.question,
            body.context,
            free_daily_questions=settings.free_daily_questions,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LLMError as e:
        logger.warning("Ask failed: %s (%s)", e.message, e.kind)
        raise HTTPException(status_code=502, detail="Failed to generate an answer")


# ---- Plans & subscriptions ----

@app.get("/api/plans")
def plans_list():
    return {"plans": plan_service.list_plans()}


@app.get("/api/plans/current", response_model=SubscriptionResponse)
def plans_current(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    """Current subscription; a free one is created for learners without one."""
    sub = plan_service.get_subscription(db, user.id)
    if sub is None:
        sub = plan_service.create_subscription(db, user.id, "free")
    return {"subscription": plan_service.subscription_to_dict(sub), "plan": plan_service.get_plan(sub.plan)}


@app.get("/api/plans/usage")
def plans_usage(
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    return {"usage": plan_service.get_remaining_usage(db, user.id, settings.free_daily_questions)}


@app.get("/api/plans/features/{feature}")
def plans_feature(feature: str, user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    try:
        allowed, reason = plan_service.can_access_feature(db, user.id, feature)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"feature": feature, "allowed": allowed, "reason": reason}


@app.post("/api/plans/upgrade", response_model=SubscriptionResponse)
def plans_upgrade(body: UpgradeRequest, user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    """Apply a plan change directly (payment is handled outside this service)."""
    try:
        sub = plan_service.upgrade_plan(db, user.id, body.plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"subscription": plan_service.subscription_to_dict(sub), "plan": plan_service.get_plan(sub.plan)}


@app.post("/api/plans/cancel", response_model=SubscriptionResponse)
def plans_cancel(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    """Schedule a downgrade to free at the end of the current period."""
    try:
        sub = plan_service.schedule_cancellation(db, user.id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"subscription": plan_service.subscription_to_dict(sub)}


@app.post("/api/plans/cancel/undo", response_model=SubscriptionResponse)
def plans_reactivate(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    try:
        sub = plan_service.undo_cancellation(db, user.id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"subscription": plan_service.subscription_to_dict(sub)}


@app.post("/api/plans/cancel/immediate", response_model=SubscriptionResponse)
def plans_cancel_now(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    try:
        sub = plan_service.cancel_immediately(db, user.id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return {"subscription": plan_service.subscription_to_dict(sub)}


@app.get("/api/plans/{plan_id}")
def plans_get(plan_id: str):
    plan = plan_service.get_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return {"plan": plan}


# ---- Reminders & learning sessions ----

@app.get("/api/reminders/settings", response_model=ReminderSettingsResponse)
def reminders_get(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    plan_service.require_feature(db, user, "reminder_features")
    settings = reminder_service.initialize_for_user(db, user.id)
    return reminder_service.settings_to_dict(settings)


@app.put("/api/reminders/settings", response_model=ReminderSettingsResponse)
def reminders_put(
    body: ReminderSettingsRequest,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    plan_service.require_feature(db, user, "reminder_features")
    try:
        settings = reminder_service.update_settings(
            db,
            user.id,
            enabled=body.enabled,
            preferred_time=body.preferred_time,
            timezone=body.timezone,
            frequency=body.frequency,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return reminder_service.settings_to_dict(settings)


@app.get("/api/reminders/status", response_model=LearningStatusResponse)
def reminders_status(user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    return reminder_service.learning_status(db, user.id)


@app.post("/api/reminders/sessions/start", response_model=SessionResponse)
def sessions_start(
    body: Optional[StartSessionRequest] = None,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    session = reminder_service.start_session(db, user.id, from_reminder=bool(body and body.from_reminder))
    return reminder_service.session_to_dict(session)


@app.put("/api/reminders/sessions/{session_id}", response_model=SessionResponse)
def sessions_update(
    session_id: int,
    body: UpdateSessionRequest,
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    try:
        session = reminder_service.update_session(
            db, user.id, session_id, words_reviewed=body.words_reviewed, quiz_completed=body.quiz_completed,
        )
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")
    return reminder_service.session_to_dict(session)


@app.post("/api/reminders/sessions/{session_id}/end", response_model=SessionResponse)
def sessions_end(session_id: int, user: User = Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    try:
        session = reminder_service.end_session(db, user.id, session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")
    return reminder_service.session_to_dict(session)


@app.get("/api/reminders/sessions")
def sessions_list(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    sessions = reminder_service.recent_sessions(db, user.id, limit)
    return {"sessions": [reminder_service.session_to_dict(s) for s in sessions]}
