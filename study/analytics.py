"""Word mastery analytics and weakness detection for the study engine."""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from study.models import LessonAttempt, SessionRecord, WeaknessLevel, WordRecord
from study.scheduler import DEFAULT_EASE, round_half_up

MASTERY_MIN_CORRECT = 5
EASY_EASE = 2.7
HARD_EASE = 2.0
WEAK_CORRECT_RATE = 0.6
LESSON_PASS_SCORE = 70
MAX_WEAK_WORDS = 10


def _percent(part: float, whole: float) -> int:
    return round_half_up(part / whole * 100) if whole > 0 else 0


def is_mastered(word: WordRecord) -> bool:
    return word.correct_count >= MASTERY_MIN_CORRECT and word.ease_factor >= DEFAULT_EASE


def compute_review_stats(words: List[WordRecord], today: Optional[date] = None) -> Dict:
    """
    Summary counters for the review screen.

    Only words with a scheduled review count towards due_today.
    """
    if today is None:
        today = date.today()
    total = len(words)
    mastered = sum(1 for w in words if is_mastered(w))
    due_today = sum(
        1 for w in words
        if w.next_review is not None and w.next_review.date() <= today
    )
    avg_ease = sum(w.ease_factor for w in words) / total if total else DEFAULT_EASE
    return {
        'total_words': total,
        'mastered_words': mastered,
        'due_today': due_today,
        'average_ease_factor': avg_ease,
        'mastery_percentage': _percent(mastered, total),
    }


def analyze_word_performance(words: List[WordRecord]) -> Dict:
    """
    Bucket words by mastery and by difficulty.

    Mastery buckets (first match wins):
        mastered:   correct >= 5 and ease >= 2.5
        struggling: incorrect > correct
        learning:   everything else
    Difficulty buckets by ease: easy >= 2.7, medium >= 2.0, hard below.
    """
    mastered: List[str] = []
    learning: List[str] = []
    struggling: List[str] = []
    by_difficulty: Dict[str, List[str]] = {'easy': [], 'medium': [], 'hard': []}

    if not words:
        return {
            'total_words': 0,
            'mastered_count': 0,
            'learning_count': 0,
            'struggling_count': 0,
            'mastery_rate': 0,
            'average_correct_rate': 0,
            'average_ease_factor': DEFAULT_EASE,
            'words_by_difficulty': by_difficulty,
        }

    total_correct = 0
    total_attempts = 0
    total_ease = 0.0

    for w in words:
        total_correct += w.correct_count
        total_attempts += w.total_attempts
        total_ease += w.ease_factor

        if is_mastered(w):
            mastered.append(w.word)
        elif w.incorrect_count > w.correct_count:
            struggling.append(w.word)
        else:
            learning.append(w.word)

        if w.ease_factor >= EASY_EASE:
            by_difficulty['easy'].append(w.word)
        elif w.ease_factor >= HARD_EASE:
            by_difficulty['medium'].append(w.word)
        else:
            by_difficulty['hard'].append(w.word)

    return {
        'total_words': len(words),
        'mastered_count': len(mastered),
        'learning_count': len(learning),
        'struggling_count': len(struggling),
        'mastery_rate': _percent(len(mastered), len(words)),
        'average_correct_rate': _percent(total_correct, total_attempts),
        'average_ease_factor': total_ease / len(words),
        'words_by_difficulty': by_difficulty,
    }


def analyze_lesson_progress(completions: List[LessonAttempt]) -> Dict:
    """
    Aggregate lesson completions per lesson.

    Returns:
        {
            completed_lessons: distinct lessons completed,
            average_score:     mean of per-lesson best scores (rounded),
            best_performing_lessons:  top 3 lesson ids by best score,
            needs_improvement_lessons: up to 3 lowest lessons with best < 70,
            lesson_scores: [{lesson_id, best_score, attempts, average_score}, ...],
        }
    """
    if not completions:
        return {
            'completed_lessons': 0,
            'average_score': 0,
            'best_performing_lessons': [],
            'needs_improvement_lessons': [],
            'lesson_scores': [],
        }

    grouped: Dict[str, List[LessonAttempt]] = {}
    for c in completions:
        grouped.setdefault(c.lesson_id, []).append(c)

    lesson_scores = []
    for lesson_id in sorted(grouped):
        attempts = grouped[lesson_id]
        scores = [a.score for a in attempts if a.score is not None]
        lesson_scores.append({
            'lesson_id': lesson_id,
            'best_score': max(scores) if scores else 0,
            'attempts': len(attempts),
            'average_score': sum(scores) / len(scores) if scores else 0,
        })

    ranked = sorted(lesson_scores, key=lambda l: l['best_score'], reverse=True)
    best_performing = [l['lesson_id'] for l in ranked[:3]]
    needs_improvement = [
        l['lesson_id'] for l in ranked if l['best_score'] < LESSON_PASS_SCORE
    ][-3:]

    total_best = sum(l['best_score'] for l in lesson_scores)

    return {
        'completed_lessons': len(lesson_scores),
        'average_score': round_half_up(total_best / len(lesson_scores)),
        'best_performing_lessons': best_performing,
        'needs_improvement_lessons': needs_improvement,
        'lesson_scores': lesson_scores,
    }


def analyze_learning_pattern(
    sessions: List[SessionRecord],
    streak: int = 0,
    now: Optional[datetime] = None,
    window_days: int = 30,
) -> Dict:
    """
    Activity pattern over the last `window_days`.

    consistency_score is the share of days in the window with any session.
    peak_learning_hour is the hour with the most session starts; ties go to
    the earliest hour, and it is 0 when there is no activity.
    """
    if now is None:
        now = datetime.utcnow()
    since = now - timedelta(days=window_days)
    recent = sorted(
        (s for s in sessions if s.started_at >= since),
        key=lambda s: s.started_at,
    )

    daily: Dict[str, int] = {}
    hourly: Dict[int, int] = {}
    for s in recent:
        day = s.started_at.date().isoformat()
        daily[day] = daily.get(day, 0) + 1
        hourly[s.started_at.hour] = hourly.get(s.started_at.hour, 0) + 1

    peak_hour = 0
    peak_count = 0
    for hour in sorted(hourly):
        if hourly[hour] > peak_count:
            peak_count = hourly[hour]
            peak_hour = hour

    return {
        'total_sessions': len(recent),
        'active_days': len(daily),
        'window_days': window_days,
        'current_streak': streak or 0,
        'peak_learning_hour': peak_hour,
        'consistency_score': _percent(len(daily), window_days),
        'daily_activity': [{'date': d, 'sessions': n} for d, n in daily.items()],
    }


def suggested_action(correct_rate: float, incorrect_count: int) -> str:
    """Study advice for a single weak word."""
    if correct_rate < 0.3:
        return 'Relearn from the basics: check the definition and example sentence.'
    if correct_rate < 0.5:
        return 'Add more repetition. Reviewing every day is recommended.'
    if incorrect_count > 5:
        return 'This word may be easy to confuse. Compare it with similar words.'
    return 'Almost there. Keep reviewing regularly.'


def suggest_focus_areas(weak_words: List[Dict]) -> List[str]:
    areas = []
    very_weak = [w['word'] for w in weak_words if w['correct_rate'] < 30]
    if very_weak:
        areas.append(f"Back to basics: {', '.join(very_weak[:3])}")
    if any(w['incorrect_count'] > 3 for w in weak_words):
        areas.append('Strengthen repetition practice')
    if not areas:
        areas.append('Keep up your current learning pace')
    return areas


def _weakness_level(count: int) -> WeaknessLevel:
    if count == 0:
        return WeaknessLevel.NONE
    if count <= 3:
        return WeaknessLevel.LOW
    if count <= 7:
        return WeaknessLevel.MEDIUM
    return WeaknessLevel.HIGH


def detect_weaknesses(words: List[WordRecord]) -> Dict:
    """
    Flag words answered correctly less than 60% of the time, or with ease < 2.0.

    weak_words holds at most 10 entries, weakest first; weak_words_count and
    the weakness level are computed over every flagged word.
    """
    weak: List[Dict] = []
    for w in words:
        rate = w.correct_rate
        if rate < WEAK_CORRECT_RATE or w.ease_factor < HARD_EASE:
            weak.append({
                'word': w.word,
                'correct_rate': round_half_up(rate * 100),
                'incorrect_count': w.incorrect_count,
                'ease_factor': w.ease_factor,
                'last_reviewed': w.last_reviewed.isoformat() if w.last_reviewed else None,
                'suggested_action': suggested_action(rate, w.incorrect_count),
            })

    weak.sort(key=lambda w: w['correct_rate'])
    return {
        'weakness_level': _weakness_level(len(weak)).value,
        'weak_words_count': len(weak),
        'weak_words': weak[:MAX_WEAK_WORDS],
        'suggested_focus_areas': suggest_focus_areas(weak),
    }


def calculate_overall_score(word_analysis: Dict, lesson_analysis: Dict) -> int:
    """Weighted score: mastery 40%, correct rate 30%, lesson average 30%."""
    overall = (
        word_analysis['mastery_rate'] * 0.4
        + word_analysis['average_correct_rate'] * 0.3
        + lesson_analysis['average_score'] * 0.3
    )
    return round_half_up(overall)
