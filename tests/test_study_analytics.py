"""Tests for study/analytics.py -- mastery, lesson, pattern and weakness analysis."""

import sys
from pathlib import Path
from datetime import date, datetime

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from study.analytics import (
    analyze_learning_pattern,
    analyze_lesson_progress,
    analyze_word_performance,
    calculate_overall_score,
    compute_review_stats,
    detect_weaknesses,
    is_mastered,
    suggest_focus_areas,
    suggested_action,
)
from study.models import LessonAttempt, SessionRecord, WordRecord


def _word(word, correct=0, incorrect=0, ease=2.5, next_review=None):
    return WordRecord(
        word=word,
        correct_count=correct,
        incorrect_count=incorrect,
        ease_factor=ease,
        next_review=next_review,
    )


def _sample_words():
    return [
        _word('a', correct=6, incorrect=0, ease=2.8, next_review=datetime(2026, 3, 20)),
        _word('b', correct=2, incorrect=3, ease=1.9, next_review=datetime(2026, 3, 10, 9)),
        _word('c', correct=3, incorrect=1, ease=2.36),
        _word('d', correct=0, incorrect=0, ease=2.5, next_review=datetime(2026, 3, 9)),
    ]


# ============================================================================
# Review stats
# ============================================================================

def test_review_stats():
    stats = compute_review_stats(_sample_words(), date(2026, 3, 10))
    assert stats['total_words'] == 4
    assert stats['mastered_words'] == 1
    # c has no scheduled review and is not counted
    assert stats['due_today'] == 2
    assert stats['average_ease_factor'] == pytest.approx(2.39)
    assert stats['mastery_percentage'] == 25


def test_review_stats_empty():
    stats = compute_review_stats([], date(2026, 3, 10))
    assert stats == {
        'total_words': 0,
        'mastered_words': 0,
        'due_today': 0,
        'average_ease_factor': 2.5,
        'mastery_percentage': 0,
    }


def test_mastery_needs_both_thresholds():
    assert is_mastered(_word('x', correct=5, ease=2.5))
    assert not is_mastered(_word('x', correct=4, ease=3.0))
    assert not is_mastered(_word('x', correct=10, ease=2.4))


# ============================================================================
# Word performance
# ============================================================================

def test_word_performance_buckets():
    result = analyze_word_performance(_sample_words())
    assert result['total_words'] == 4
    assert result['mastered_count'] == 1
    assert result['learning_count'] == 2
    assert result['struggling_count'] == 1
    assert result['mastery_rate'] == 25
    # 11 correct of 15 attempts
    assert result['average_correct_rate'] == 73
    assert result['average_ease_factor'] == pytest.approx(2.39)
    assert result['words_by_difficulty'] == {
        'easy': ['a'],
        'medium': ['c', 'd'],
        'hard': ['b'],
    }


def test_word_performance_empty():
    result = analyze_word_performance([])
    assert result['total_words'] == 0
    assert result['mastery_rate'] == 0
    assert result['average_correct_rate'] == 0
    assert result['average_ease_factor'] == 2.5


# ============================================================================
# Lesson progress
# ============================================================================

def test_lesson_progress():
    completions = [
        LessonAttempt('L1', 60),
        LessonAttempt('L1', 80),
        LessonAttempt('L2', 50),
        LessonAttempt('L3', None),
        LessonAttempt('L4', 95),
    ]
    result = analyze_lesson_progress(completions)
    assert result['completed_lessons'] == 4
    assert result['average_score'] == 56
    assert result['best_performing_lessons'] == ['L4', 'L1', 'L2']
    assert result['needs_improvement_lessons'] == ['L2', 'L3']
    l1 = result['lesson_scores'][0]
    assert l1 == {'lesson_id': 'L1', 'best_score': 80, 'attempts': 2, 'average_score': 70}


def test_lesson_progress_keeps_lowest_three_needing_work():
    completions = [LessonAttempt(f'L{i}', score) for i, score in enumerate([10, 20, 30, 40, 50])]
    result = analyze_lesson_progress(completions)
    # descending order: 50, 40, 30, 20, 10 -> last three
    assert result['needs_improvement_lessons'] == ['L2', 'L1', 'L0']


def test_lesson_progress_empty():
    result = analyze_lesson_progress([])
    assert result['completed_lessons'] == 0
    assert result['average_score'] == 0
    assert result['lesson_scores'] == []


# ============================================================================
# Learning pattern
# ============================================================================

def test_learning_pattern_window_and_peak():
    now = datetime(2026, 3, 10, 12, 0)
    sessions = [
        SessionRecord(started_at=datetime(2026, 3, 9, 8, 0)),
        SessionRecord(started_at=datetime(2026, 3, 9, 20, 0)),
        SessionRecord(started_at=datetime(2026, 3, 10, 8, 30)),
        SessionRecord(started_at=datetime(2026, 1, 1, 8, 0)),  # outside window
    ]
    result = analyze_learning_pattern(sessions, streak=2, now=now, window_days=30)
    assert result['total_sessions'] == 3
    assert result['active_days'] == 2
    assert result['peak_learning_hour'] == 8
    assert result['consistency_score'] == 7
    assert result['current_streak'] == 2
    assert result['daily_activity'] == [
        {'date': '2026-03-09', 'sessions': 2},
        {'date': '2026-03-10', 'sessions': 1},
    ]


def test_learning_pattern_tie_goes_to_earliest_hour():
    now = datetime(2026, 3, 10, 23, 0)
    sessions = [
        SessionRecord(started_at=datetime(2026, 3, 10, 21, 0)),
        SessionRecord(started_at=datetime(2026, 3, 10, 7, 0)),
    ]
    assert analyze_learning_pattern(sessions, now=now)['peak_learning_hour'] == 7


def test_learning_pattern_no_sessions():
    result = analyze_learning_pattern([], now=datetime(2026, 3, 10))
    assert result['total_sessions'] == 0
    assert result['peak_learning_hour'] == 0
    assert result['consistency_score'] == 0
    assert result['daily_activity'] == []


# ============================================================================
# Weakness detection
# ============================================================================

def test_detect_weaknesses():
    result = detect_weaknesses(_sample_words())
    assert result['weak_words_count'] == 2
    assert result['weakness_level'] == 'low'
    assert [w['word'] for w in result['weak_words']] == ['d', 'b']
    assert result['weak_words'][1]['correct_rate'] == 40
    assert result['suggested_focus_areas'] == ['Back to basics: d']


def test_low_ease_alone_is_weak():
    result = detect_weaknesses([_word('x', correct=9, incorrect=1, ease=1.8)])
    assert result['weak_words_count'] == 1


@pytest.mark.parametrize('count,level', [
    (0, 'none'), (1, 'low'), (3, 'low'), (4, 'medium'), (7, 'medium'), (8, 'high'),
])
def test_weakness_levels(count, level):
    words = [_word(f'w{i}') for i in range(count)]
    assert detect_weaknesses(words)['weakness_level'] == level


def test_weak_words_capped_at_ten():
    words = [_word(f'w{i}', correct=1, incorrect=i + 1) for i in range(12)]
    result = detect_weaknesses(words)
    assert result['weak_words_count'] == 12
    assert len(result['weak_words']) == 10
    rates = [w['correct_rate'] for w in result['weak_words']]
    assert rates == sorted(rates)


def test_suggested_actions():
    assert suggested_action(0.2, 0).startswith('Relearn')
    assert suggested_action(0.4, 0).startswith('Add more repetition')
    assert suggested_action(0.55, 6).startswith('This word may be easy to confuse')
    assert suggested_action(0.55, 2).startswith('Almost there')


def test_focus_areas():
    weak = [{'word': 'x', 'correct_rate': 50, 'incorrect_count': 4}]
    assert suggest_focus_areas(weak) == ['Strengthen repetition practice']
    assert suggest_focus_areas([]) == ['Keep up your current learning pace']


def test_back_to_basics_lists_weakest_words_first():
    words = [
        _word('w20', correct=1, incorrect=4),
        _word('w25', correct=1, incorrect=3),
        _word('w10', correct=1, incorrect=9),
        _word('w0', correct=0, incorrect=2),
    ]
    result = detect_weaknesses(words)
    assert [w['word'] for w in result['weak_words']] == ['w0', 'w10', 'w20', 'w25']
    assert result['suggested_focus_areas'][0] == 'Back to basics: w0, w10, w20'


# ============================================================================
# Overall score
# ============================================================================

def test_overall_score():
    words = analyze_word_performance(_sample_words())
    lessons = {'average_score': 56}
    # 25*0.4 + 73*0.3 + 56*0.3 = 48.7
    assert calculate_overall_score(words, lessons) == 49
