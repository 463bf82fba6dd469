"""Tests for study/scheduler.py -- SM-2 spaced repetition."""

import sys
from pathlib import Path
from datetime import date, datetime, timedelta

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from study.scheduler import clamp_quality, is_due, next_ease, round_half_up, sm2_schedule

NOW = datetime(2026, 3, 10, 9, 30)


def test_new_word_correct():
    """First review, correct: interval 1, ease stays 2.5, correct_count 1."""
    result = sm2_schedule(quality=4, is_new=True, now=NOW)
    assert result['interval_days'] == 1
    assert result['ease_factor'] == 2.5
    assert result['correct_count'] == 1
    assert result['incorrect_count'] == 0
    assert result['next_review'] == NOW + timedelta(days=1)


def test_new_word_incorrect_keeps_default_ease():
    """Ease is not adjusted on the very first review, even on a miss."""
    result = sm2_schedule(quality=0, is_new=True, now=NOW)
    assert result['interval_days'] == 1
    assert result['ease_factor'] == 2.5
    assert result['correct_count'] == 0
    assert result['incorrect_count'] == 1


def test_new_word_ignores_passed_counters():
    result = sm2_schedule(quality=5, interval_days=20, ease_factor=1.5,
                          correct_count=9, incorrect_count=9, is_new=True, now=NOW)
    assert result['interval_days'] == 1
    assert result['correct_count'] == 1
    assert result['incorrect_count'] == 0


def test_first_success_interval_1():
    result = sm2_schedule(quality=4, correct_count=0, incorrect_count=1, now=NOW)
    assert result['interval_days'] == 1
    assert result['correct_count'] == 1


def test_second_success_interval_6():
    result = sm2_schedule(quality=4, interval_days=1, correct_count=1, now=NOW)
    assert result['interval_days'] == 6
    assert result['next_review'] == NOW + timedelta(days=6)


def test_third_success_uses_ease():
    """interval = round(prior interval * prior ease)."""
    result = sm2_schedule(quality=4, interval_days=6, ease_factor=2.5, correct_count=2, now=NOW)
    assert result['interval_days'] == 15


def test_interval_rounds_half_up():
    # 5 * 2.5 = 12.5 -> 13
    result = sm2_schedule(quality=5, interval_days=5, ease_factor=2.5, correct_count=3, now=NOW)
    assert result['interval_days'] == 13


def test_uses_prior_ease_for_interval():
    """The interval uses the ease before this review's adjustment."""
    result = sm2_schedule(quality=5, interval_days=10, ease_factor=2.0, correct_count=4, now=NOW)
    assert result['interval_days'] == 20
    assert result['ease_factor'] == pytest.approx(2.1)


def test_incorrect_resets_interval():
    result = sm2_schedule(quality=2, interval_days=15, ease_factor=2.5,
                          correct_count=3, incorrect_count=1, now=NOW)
    assert result['interval_days'] == 1
    assert result['incorrect_count'] == 2
    assert result['correct_count'] == 3
    assert result['is_correct'] is False
    assert result['ease_factor'] == pytest.approx(2.18)


def test_ease_adjustments_by_quality():
    assert next_ease(2.5, 5) == pytest.approx(2.6)
    assert next_ease(2.5, 4) == pytest.approx(2.5)
    assert next_ease(2.5, 3) == pytest.approx(2.36)
    assert next_ease(2.5, 0) == pytest.approx(1.7)


def test_ease_floor_at_1_3():
    result = sm2_schedule(quality=0, interval_days=3, ease_factor=1.4, correct_count=2, now=NOW)
    assert result['ease_factor'] == 1.3


def test_quality_clamped_not_rejected():
    high = sm2_schedule(quality=9, correct_count=2, interval_days=6, now=NOW)
    low = sm2_schedule(quality=-3, correct_count=2, interval_days=6, now=NOW)
    assert high['quality'] == 5
    assert high['is_correct'] is True
    assert low['quality'] == 0
    assert low['is_correct'] is False
    assert clamp_quality(7) == 5
    assert clamp_quality(-1) == 0


def test_quality_3_is_passing():
    assert sm2_schedule(quality=3, now=NOW)['is_correct'] is True
    assert sm2_schedule(quality=2, now=NOW)['is_correct'] is False


def test_counts_never_decrease():
    state = {'interval_days': 1, 'ease_factor': 2.5, 'correct_count': 0, 'incorrect_count': 0}
    for q in [5, 1, 4, 0, 3, 5, 2]:
        result = sm2_schedule(quality=q, now=NOW, **state)
        assert result['correct_count'] >= state['correct_count']
        assert result['incorrect_count'] >= state['incorrect_count']
        assert result['interval_days'] >= 1
        assert result['ease_factor'] >= 1.3
        state = {k: result[k] for k in state}


def test_reviewed_at_is_now():
    result = sm2_schedule(quality=4, now=NOW)
    assert result['reviewed_at'] == NOW


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(2.4) == 2
    assert round_half_up(0.5) == 1


def test_is_due():
    today = date(2026, 3, 10)
    assert is_due(None, today)
    assert is_due(datetime(2026, 3, 10, 23, 59), today)
    assert is_due(datetime(2026, 3, 1), today)
    assert not is_due(datetime(2026, 3, 11, 0, 0), today)
