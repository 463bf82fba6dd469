"""Recommendations, weekly goals and the adaptive daily curriculum."""

from datetime import datetime
from typing import Dict, List, Optional

from study.analytics import (
    analyze_learning_pattern,
    analyze_lesson_progress,
    analyze_word_performance,
    calculate_overall_score,
    detect_weaknesses,
)
from study.models import LessonAttempt, SessionRecord, WeaknessLevel, WordRecord

PRIORITY_ORDER = {'high': 0, 'medium': 1, 'low': 2}


def generate_recommendations(
    word_analysis: Dict,
    lesson_analysis: Dict,
    weaknesses: Dict,
) -> List[Dict]:
    """Ordered high -> low priority; always at least one entry."""
    recs = []

    if weaknesses['weakness_level'] == WeaknessLevel.HIGH.value:
        recs.append({
            'type': 'focus',
            'priority': 'high',
            'title': 'Focused review of weak words',
            'description': f"You have {weaknesses['weak_words_count']} weak words. Review them intensively.",
            'action': 'review_weak_words',
        })

    if word_analysis['mastery_rate'] < 30 and word_analysis['total_words'] > 5:
        recs.append({
            'type': 'improvement',
            'priority': 'medium',
            'title': 'Review more often',
            'description': 'Your mastery rate is low. Daily reviews will help words stick.',
            'action': 'increase_review_frequency',
        })

    needs_improvement = lesson_analysis['needs_improvement_lessons']
    if needs_improvement:
        recs.append({
            'type': 'lesson',
            'priority': 'medium',
            'title': 'Revisit lessons',
            'description': f'{len(needs_improvement)} lessons need another pass.',
            'action': 'review_lessons',
        })

    if word_analysis['mastery_rate'] >= 70:
        recs.append({
            'type': 'praise',
            'priority': 'low',
            'title': 'Great progress!',
            'description': 'Your mastery rate is high. Keep this pace.',
            'action': 'maintain_pace',
        })

    if not recs:
        recs.append({
            'type': 'general',
            'priority': 'low',
            'title': 'Keep learning',
            'description': 'A little study every day goes a long way.',
            'action': 'continue_learning',
        })

    return sorted(recs, key=lambda r: PRIORITY_ORDER[r['priority']])


def new_words_target(mastery_rate: int) -> int:
    return 5 if mastery_rate >= 50 else 3


def determine_level(overall_score: int) -> str:
    if overall_score >= 80:
        return 'advanced'
    if overall_score >= 50:
        return 'intermediate'
    if overall_score >= 20:
        return 'beginner'
    return 'starter'


def build_comprehensive_analysis(
    user_id: str,
    words: List[WordRecord],
    completions: List[LessonAttempt],
    sessions: List[SessionRecord],
    streak: int = 0,
    now: Optional[datetime] = None,
    window_days: int = 30,
) -> Dict:
    """Run every analysis over one learner's records and score the result."""
    if now is None:
        now = datetime.utcnow()
    word_analysis = analyze_word_performance(words)
    lesson_analysis = analyze_lesson_progress(completions)
    pattern = analyze_learning_pattern(sessions, streak, now=now, window_days=window_days)
    weaknesses = detect_weaknesses(words)

    return {
        'user_id': user_id,
        'analyzed_at': now.isoformat(),
        'overall_score': calculate_overall_score(word_analysis, lesson_analysis),
        'word_analysis': word_analysis,
        'lesson_analysis': lesson_analysis,
        'learning_pattern': pattern,
        'weaknesses': weaknesses,
        'recommendations': generate_recommendations(word_analysis, lesson_analysis, weaknesses),
    }


def generate_weekly_goals(analysis: Dict) -> List[Dict]:
    words = analysis['word_analysis']
    mastery = words['mastery_rate']
    target_words = 20 if mastery < 50 else 30
    # Only a coarse signal: more than a week of activity in the window counts as on track
    on_track = analysis['learning_pattern']['active_days'] > 7

    return [
        {
            'type': 'words',
            'target': target_words,
            'current': words['total_words'],
            'description': f'Learn {target_words} words',
        },
        {
            'type': 'mastery',
            'target': min(mastery + 10, 100),
            'current': mastery,
            'description': 'Raise your mastery rate by 10%',
        },
        {
            'type': 'consistency',
            'target': 5,
            'current': 5 if on_track else 0,
            'description': 'Study 5 days a week',
        },
    ]


def build_adaptive_curriculum(analysis: Dict, now: Optional[datetime] = None) -> Dict:
    """
    Today's task list derived from a comprehensive analysis.

    Tasks:
        review -- up to 5 weak words (only when any are flagged)
        learn  -- 5 new words at >= 50% mastery, otherwise 3
        quiz   -- once at least 10 words are being studied
    """
    if now is None:
        now = datetime.utcnow()
    weaknesses = analysis['weaknesses']
    words = analysis['word_analysis']
    tasks = []

    if weaknesses['weak_words_count'] > 0:
        review_words = [w['word'] for w in weaknesses['weak_words'][:5]]
        tasks.append({
            'type': 'review',
            'title': 'Review weak words',
            'description': f"Review {min(5, weaknesses['weak_words_count'])} weak words",
            'estimated_minutes': 10,
            'words': review_words,
        })

    new_words = new_words_target(words['mastery_rate'])
    tasks.append({
        'type': 'learn',
        'title': 'Learn new words',
        'description': f'Learn {new_words} new words',
        'estimated_minutes': 15,
        'words': [],
    })

    if words['total_words'] >= 10:
        tasks.append({
            'type': 'quiz',
            'title': 'Check yourself with a quiz',
            'description': 'Take a quiz on the words you have learned',
            'estimated_minutes': 5,
            'words': None,
        })

    return {
        'user_id': analysis['user_id'],
        'generated_at': now.isoformat(),
        'current_level': determine_level(analysis['overall_score']),
        'todays_tasks': tasks,
        'weekly_goals': generate_weekly_goals(analysis),
        'estimated_total_minutes': sum(t['estimated_minutes'] for t in tasks),
    }
