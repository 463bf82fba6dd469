"""Multiple-choice quiz grading and validation of generated questions."""

import re
from typing import Any, Dict, List, Optional

from study.models import QuizQuestion
from study.scheduler import round_half_up

DIFFICULTIES = ('easy', 'medium', 'hard')


def quiz_id_for(topic: str, difficulty: str) -> str:
    """Stable quiz id; the same topic and difficulty share one cached quiz."""
    return f'{topic.strip()}-{difficulty.strip()}'


def sample_quiz(topic: str) -> List[QuizQuestion]:
    """Placeholder quiz used when no language model is configured."""
    return [
        QuizQuestion(
            question=f'Sample question about {topic}. This is development-mode placeholder data.',
            options=['Option A', 'Option B', 'Option C', 'Option D'],
            correct_index=0,
            explanation='This is a placeholder explanation.',
        ),
    ]


def _coerce_question(raw: Any) -> Optional[QuizQuestion]:
    if not isinstance(raw, dict):
        return None
    text = raw.get('question')
    options = raw.get('options')
    # Accept both camelCase (prompt schema) and snake_case keys
    idx = raw.get('correctIndex', raw.get('correct_index'))
    if not isinstance(text, str) or not text.strip():
        return None
    if not isinstance(options, list) or len(options) < 2:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    if isinstance(idx, bool) or not isinstance(idx, int):
        return None
    if not (0 <= idx < len(options)):
        return None
    explanation = raw.get('explanation') or ''
    return QuizQuestion(
        question=text.strip(),
        options=[o.strip() for o in options],
        correct_index=idx,
        explanation=explanation.strip() if isinstance(explanation, str) else '',
    )


def parse_quiz_questions(obj: Any) -> List[QuizQuestion]:
    """
    Validate model output into QuizQuestion objects.

    Accepts a bare list or {"questions": [...]}. Malformed entries are dropped.
    Raises ValueError when nothing usable remains.
    """
    if isinstance(obj, dict):
        obj = obj.get('questions')
    if not isinstance(obj, list):
        raise ValueError('quiz output is not a list of questions')
    questions = [q for q in (_coerce_question(item) for item in obj) if q is not None]
    if not questions:
        raise ValueError('quiz output has no valid questions')
    return questions


def grade_quiz(questions: List[QuizQuestion], answers: List[Optional[int]]) -> Dict:
    """
    Grade submitted option indexes against the answer key.

    Missing answers (short list or None) count as wrong.

    Returns:
        Dict with 'score', 'total', 'percentage' and per-question 'details'
    """
    details = []
    for i, q in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        details.append({
            'question_index': i,
            'correct': answer == q.correct_index,
            'user_answer': answer,
            'correct_answer': q.correct_index,
            'explanation': q.explanation,
        })

    score = sum(1 for d in details if d['correct'])
    total = len(questions)
    return {
        'score': score,
        'total': total,
        'percentage': round_half_up(score / total * 100) if total else 0,
        'details': details,
    }


def normalize_topic(topic: str) -> str:
    """Collapse whitespace; topics are user-typed path segments."""
    return re.sub(r'\s+', ' ', topic).strip()
