"""Vocabulary lesson content: catalog, word lists and word of the day."""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from study.models import Lesson, LessonType, VocabularyWord

logger = logging.getLogger("learnbuddy.content")

BASIC_ENGLISH = 'vocab-basic-english'
WORD_OF_THE_DAY = 'word-of-the-day'

LESSONS: List[Lesson] = [
    Lesson(
        id=BASIC_ENGLISH,
        title='Basic English Vocabulary',
        description='Core English words for business and everyday conversation',
        type=LessonType.VOCABULARY.value,
        level='beginner',
        estimated_minutes=15,
    ),
    Lesson(
        id=WORD_OF_THE_DAY,
        title='Word of the Day',
        description='Learn one new word a day together with an example sentence',
        type=LessonType.VOCABULARY.value,
        level='all',
        estimated_minutes=5,
    ),
]

# Every lesson currently draws from the same word list
_LESSON_FILES: Dict[str, str] = {
    BASIC_ENGLISH: 'basic_english.json',
    WORD_OF_THE_DAY: 'basic_english.json',
}


def all_lessons() -> List[Lesson]:
    return list(LESSONS)


def get_lesson(lesson_id: str) -> Optional[Lesson]:
    for lesson in LESSONS:
        if lesson.id == lesson_id:
            return lesson
    return None


def load_vocabulary(content_dir, lesson_id: str = BASIC_ENGLISH) -> List[VocabularyWord]:
    """
    Load the word list for a lesson from <content_dir>/vocabulary/.

    A missing or malformed file is logged and yields an empty list.
    """
    filename = _LESSON_FILES.get(lesson_id, _LESSON_FILES[BASIC_ENGLISH])
    path = Path(content_dir) / 'vocabulary' / filename
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError):
        logger.exception("Failed to load vocabulary from %s", path)
        return []
    entries = data.get('words') if isinstance(data, dict) else None
    if not isinstance(entries, list):
        logger.warning("Vocabulary file %s has no word list", path)
        return []
    return [VocabularyWord.from_dict(w) for w in entries if isinstance(w, dict) and w.get('word')]


def word_of_the_day(words: List[VocabularyWord], today: Optional[date] = None) -> Optional[VocabularyWord]:
    """Rotate through the list by day of year so each day shows a different word."""
    if not words:
        return None
    if today is None:
        today = date.today()
    return words[today.timetuple().tm_yday % len(words)]
