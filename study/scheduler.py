"""SM-2 spaced repetition scheduler (simplified, per-word counters)."""

import math
from datetime import date, datetime, timedelta
from typing import Dict, Optional

MIN_EASE = 1.3
DEFAULT_EASE = 2.5
PASSING_QUALITY = 3


def clamp_quality(quality) -> int:
    """Clamp a recall grade into 0..5."""
    return max(0, min(5, int(quality)))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def next_ease(ease_factor: float, quality: int) -> float:
    """
    SM-2 ease adjustment:
        EF' = EF + (0.1 - (5-q) * (0.08 + (5-q) * 0.02)), floored at 1.3
    """
    miss = 5 - quality
    return max(MIN_EASE, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def sm2_schedule(
    quality: int,
    interval_days: int = 1,
    ease_factor: float = DEFAULT_EASE,
    correct_count: int = 0,
    incorrect_count: int = 0,
    is_new: bool = False,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Compute the next review for a word.

    Args:
        quality:         Recall grade, clamped to 0-5 (0=blackout, 5=perfect)
        interval_days:   Interval used at the previous review
        ease_factor:     Current ease factor
        correct_count:   Correct answers so far
        incorrect_count: Incorrect answers so far
        is_new:          First time the word is seen; counters above are ignored
        now:             Review time (defaults to utcnow)

    Returns:
        Dict with: quality, is_correct, interval_days, ease_factor,
        correct_count, incorrect_count, reviewed_at, next_review
    """
    q = clamp_quality(quality)
    is_correct = q >= PASSING_QUALITY
    if now is None:
        now = datetime.utcnow()

    if is_new:
        new_interval = 1
        new_ease = DEFAULT_EASE
        new_correct = 1 if is_correct else 0
        new_incorrect = 0 if is_correct else 1
    else:
        new_correct = correct_count
        new_incorrect = incorrect_count
        if is_correct:
            # 1 day after the first success, 6 after the second, then grow by ease
            if correct_count == 0:
                new_interval = 1
            elif correct_count == 1:
                new_interval = 6
            else:
                new_interval = max(1, round_half_up(interval_days * ease_factor))
            new_correct += 1
        else:
            new_interval = 1
            new_incorrect += 1
        new_ease = next_ease(ease_factor, q)

    return {
        'quality': q,
        'is_correct': is_correct,
        'interval_days': new_interval,
        'ease_factor': new_ease,
        'correct_count': new_correct,
        'incorrect_count': new_incorrect,
        'reviewed_at': now,
        'next_review': now + timedelta(days=new_interval),
    }


def is_due(next_review: Optional[datetime], today: Optional[date] = None) -> bool:
    """A word with no scheduled review is always due."""
    if next_review is None:
        return True
    if today is None:
        today = date.today()
    return next_review.date() <= today
