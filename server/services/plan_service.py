"""Subscription plans: catalog, subscription lifecycle and feature gating."""

import calendar
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session as DBSession

from server.db.models import LessonCompletion, Subscription, User
from server.services.errors import FeatureNotAvailableError, QuotaExceededError

logger = logging.getLogger("learnbuddy.plan")

UNLIMITED = -1

# Prices in JPY
PLANS: Dict[str, Dict[str, Any]] = {
    "free": {
        "id": "free",
        "name": "Free",
        "price": 0,
        "yearly_price": 0,
        "features": ["5 questions per day", "Basic lessons", "Quizzes", "Ads shown"],
        "limits": {
            "daily_questions": 5,
            "lessons_per_month": 10,
            "analytics_access": False,
            "curriculum_access": False,
            "reminder_features": False,
            "export_data": False,
            "priority_support": False,
        },
    },
    "premium": {
        "id": "premium",
        "name": "Premium",
        "price": 980,
        "yearly_price": 9800,  # two months free
        "features": [
            "Unlimited questions",
            "All lessons",
            "Detailed learning analytics",
            "Adaptive curriculum",
            "Study reminders",
            "Data export",
            "No ads",
        ],
        "limits": {
            "daily_questions": UNLIMITED,
            "lessons_per_month": UNLIMITED,
            "analytics_access": True,
            "curriculum_access": True,
            "reminder_features": True,
            "export_data": True,
            "priority_support": False,
        },
    },
    "education": {
        "id": "education",
        "name": "Education",
        "price": 0,  # quoted on request
        "yearly_price": 0,
        "features": [
            "Everything in Premium",
            "Admin dashboard",
            "Multi-user management",
            "Volume discounts",
            "Priority support",
            "Custom content",
        ],
        "limits": {
            "daily_questions": UNLIMITED,
            "lessons_per_month": UNLIMITED,
            "analytics_access": True,
            "curriculum_access": True,
            "reminder_features": True,
            "export_data": True,
            "priority_support": True,
        },
    },
}

FEATURES = tuple(PLANS["free"]["limits"].keys())


def list_plans() -> List[Dict[str, Any]]:
    return list(PLANS.values())


def get_plan(plan_id: str) -> Optional[Dict[str, Any]]:
    return PLANS.get(plan_id)


def get_plan_limits(plan_id: str) -> Optional[Dict[str, Any]]:
    plan = PLANS.get(plan_id)
    return plan["limits"] if plan else None


def _add_month(dt: datetime) -> datetime:
    """Same day next month, clamped to the month's last day."""
    year = dt.year + dt.month // 12
    month = dt.month % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def subscription_to_dict(sub: Subscription) -> Dict[str, Any]:
    return {
        "id": sub.id,
        "user_id": sub.user_id,
        "plan": sub.plan,
        "status": sub.status,
        "current_period_start": sub.current_period_start.isoformat(),
        "current_period_end": sub.current_period_end.isoformat(),
        "cancel_at_period_end": bool(sub.cancel_at_period_end),
        "created_at": sub.created_at.isoformat() if sub.created_at else None,
        "updated_at": sub.updated_at.isoformat() if sub.updated_at else None,
    }


def get_subscription(db: DBSession, user_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def _require_subscription(db: DBSession, user_id: str) -> Subscription:
    sub = get_subscription(db, user_id)
    if sub is None:
        raise KeyError(f"No subscription for user {user_id}")
    return sub


def _set_user_plan(db: DBSession, user_id: str, plan: str) -> None:
    user = db.get(User, user_id)
    if user is not None:
        user.plan = plan


def create_subscription(
    db: DBSession,
    user_id: str,
    plan: str = "free",
    now: Optional[datetime] = None,
) -> Subscription:
    """Start a one-month subscription period on `plan`."""
    if plan not in PLANS:
        raise ValueError(f"Unknown plan: {plan}")
    if now is None:
        now = datetime.utcnow()
    sub = Subscription(
        user_id=user_id,
        plan=plan,
        status="active",
        current_period_start=now,
        current_period_end=_add_month(now),
        cancel_at_period_end=False,
        created_at=now,
        updated_at=now,
    )
    db.add(sub)
    _set_user_plan(db, user_id, plan)
    db.flush()
    return sub


def upgrade_plan(
    db: DBSession,
    user_id: str,
    new_plan: str,
    now: Optional[datetime] = None,
) -> Subscription:
    """Switch to `new_plan` with a fresh period; creates the subscription if missing."""
    if new_plan not in PLANS:
        raise ValueError(f"Unknown plan: {new_plan}")
    if now is None:
        now = datetime.utcnow()
    sub = get_subscription(db, user_id)
    if sub is None:
        return create_subscription(db, user_id, new_plan, now=now)

    previous = sub.plan
    sub.plan = new_plan
    sub.status = "active"
    sub.current_period_start = now
    sub.current_period_end = _add_month(now)
    sub.cancel_at_period_end = False
    sub.updated_at = now
    _set_user_plan(db, user_id, new_plan)
    db.flush()
    logger.info("User %s changed plan %s -> %s", user_id, previous, new_plan)
    return sub


def schedule_cancellation(db: DBSession, user_id: str, now: Optional[datetime] = None) -> Subscription:
    """Downgrade to free when the current period ends."""
    sub = _require_subscription(db, user_id)
    sub.cancel_at_period_end = True
    sub.updated_at = now or datetime.utcnow()
    db.flush()
    return sub


def undo_cancellation(db: DBSession, user_id: str, now: Optional[datetime] = None) -> Subscription:
    sub = _require_subscription(db, user_id)
    sub.cancel_at_period_end = False
    sub.updated_at = now or datetime.utcnow()
    db.flush()
    return sub


def cancel_immediately(db: DBSession, user_id: str, now: Optional[datetime] = None) -> Subscription:
    """Drop to free right away. Refunds are handled outside this service."""
    sub = _require_subscription(db, user_id)
    sub.plan = "free"
    sub.status = "cancelled"
    sub.cancel_at_period_end = False
    sub.updated_at = now or datetime.utcnow()
    _set_user_plan(db, user_id, "free")
    db.flush()
    logger.info("User %s cancelled subscription", user_id)
    return sub


def process_expired_subscriptions(db: DBSession, now: Optional[datetime] = None) -> int:
    """
    Expire active subscriptions whose cancellation was scheduled and whose
    period has ended. Returns the number of subscriptions changed.
    """
    if now is None:
        now = datetime.utcnow()
    expiring = (
        db.query(Subscription)
        .filter(
            Subscription.cancel_at_period_end.is_(True),
            Subscription.current_period_end < now,
            Subscription.status == "active",
        )
        .all()
    )
    for sub in expiring:
        sub.plan = "free"
        sub.status = "expired"
        sub.updated_at = now
        _set_user_plan(db, sub.user_id, "free")
    db.flush()
    if expiring:
        logger.info("Expired %d subscriptions", len(expiring))
    return len(expiring)


# ---- Feature gating ----

def plans_with_feature(feature: str) -> List[str]:
    allowed = []
    for plan_id, plan in PLANS.items():
        value = plan["limits"].get(feature)
        if value is True or (not isinstance(value, bool) and isinstance(value, int) and value != 0):
            allowed.append(plan_id)
    return allowed


def can_access_feature(db: DBSession, user_id: str, feature: str) -> Tuple[bool, Optional[str]]:
    """Return (allowed, reason). Numeric limits only block when they are 0."""
    user = db.get(User, user_id)
    if user is None:
        return False, "User not found"
    limits = get_plan_limits(user.plan)
    if limits is None:
        return False, "Plan not found"
    if feature not in limits:
        raise ValueError(f"Unknown feature: {feature}")
    value = limits[feature]
    if value is False or (not isinstance(value, bool) and value == 0):
        return False, "This feature is available on the Premium plan"
    return True, None


def require_feature(db: DBSession, user: User, feature: str) -> None:
    """Raise FeatureNotAvailableError unless the user's plan includes `feature`."""
    allowed, _ = can_access_feature(db, user.id, feature)
    if not allowed:
        raise FeatureNotAvailableError(feature, user.plan, plans_with_feature(feature))


def daily_question_limit(plan: str, free_daily_questions: Optional[int] = None) -> Optional[int]:
    """Daily question allowance, or None when unlimited."""
    limits = get_plan_limits(plan) or PLANS["free"]["limits"]
    limit = limits["daily_questions"]
    if limit == UNLIMITED:
        return None
    if plan == "free" and free_daily_questions is not None:
        return free_daily_questions
    return limit


def _questions_used_today(user: User, today: str) -> int:
    return (user.daily_questions_used or 0) if user.last_question_date == today else 0


def get_remaining_usage(
    db: DBSession,
    user_id: str,
    free_daily_questions: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Daily question usage. limit and remaining are None for unlimited plans."""
    user = db.get(User, user_id)
    if user is None:
        return {"daily_questions": {"used": 0, "limit": 0, "remaining": 0}}
    if now is None:
        now = datetime.utcnow()
    limit = daily_question_limit(user.plan, free_daily_questions)
    used = _questions_used_today(user, now.date().isoformat())
    return {
        "daily_questions": {
            "used": used,
            "limit": limit,
            "remaining": None if limit is None else max(0, limit - used),
        }
    }


def consume_question(
    db: DBSession,
    user: User,
    free_daily_questions: Optional[int] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Count one question against today's allowance.

    The counter restarts on a new day. Raises QuotaExceededError when the
    allowance is already used up; unlimited plans are never blocked.
    """
    if now is None:
        now = datetime.utcnow()
    today = now.date().isoformat()
    limit = daily_question_limit(user.plan, free_daily_questions)
    used = _questions_used_today(user, today)
    if limit is not None and used >= limit:
        raise QuotaExceededError("daily_questions", limit, used)
    user.daily_questions_used = used + 1
    user.last_question_date = today
    db.flush()


def check_lesson_quota(db: DBSession, user: User, now: Optional[datetime] = None) -> None:
    """Raise QuotaExceededError when this month's lesson completions hit the plan limit."""
    limits = get_plan_limits(user.plan) or PLANS["free"]["limits"]
    limit = limits["lessons_per_month"]
    if limit == UNLIMITED:
        return
    if now is None:
        now = datetime.utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    used = (
        db.query(func.count(LessonCompletion.id))
        .filter(
            LessonCompletion.user_id == user.id,
            LessonCompletion.completed_at >= month_start,
        )
        .scalar()
    ) or 0
    if used >= limit:
        raise QuotaExceededError("lessons_per_month", limit, used)
