"""Data models for the study engine: word history, lessons, sessions and quizzes."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from study.scheduler import DEFAULT_EASE


class LessonType(str, Enum):
    """Kinds of lesson content."""
    VOCABULARY = "vocabulary"
    GRAMMAR = "grammar"
    READING = "reading"


class WeaknessLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _parse_dt(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class WordRecord:
    """
    Spaced-repetition state for one word of one learner.

    Mirrors a word_history row; analytics only ever read these.
    """
    word: str
    correct_count: int = 0
    incorrect_count: int = 0
    ease_factor: float = DEFAULT_EASE
    interval_days: int = 1
    last_reviewed: Optional[datetime] = None
    next_review: Optional[datetime] = None

    @property
    def total_attempts(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def correct_rate(self) -> float:
        """Fraction of correct answers; 0.0 when never attempted."""
        total = self.total_attempts
        return self.correct_count / total if total > 0 else 0.0

    def to_dict(self) -> Dict:
        return {
            'word': self.word,
            'correct_count': self.correct_count,
            'incorrect_count': self.incorrect_count,
            'ease_factor': self.ease_factor,
            'interval_days': self.interval_days,
            'last_reviewed': self.last_reviewed.isoformat() if self.last_reviewed else None,
            'next_review': self.next_review.isoformat() if self.next_review else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'WordRecord':
        known = cls.__dataclass_fields__
        data = {k: v for k, v in data.items() if k in known}
        data['last_reviewed'] = _parse_dt(data.get('last_reviewed'))
        data['next_review'] = _parse_dt(data.get('next_review'))
        return cls(**data)


@dataclass
class LessonAttempt:
    """One completion of a lesson (score may be missing)."""
    lesson_id: str
    score: Optional[int] = None
    completed_at: Optional[datetime] = None


@dataclass
class SessionRecord:
    """A learning session as used by pattern analysis."""
    started_at: datetime
    ended_at: Optional[datetime] = None
    words_reviewed: int = 0
    quiz_completed: int = 0
    from_reminder: bool = False


@dataclass
class VocabularyWord:
    word: str
    pronunciation: str = ''
    part_of_speech: str = ''
    definition: str = ''
    definition_ja: str = ''
    example: str = ''
    example_ja: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'VocabularyWord':
        # Content files use camelCase keys
        aliases = {
            'partOfSpeech': 'part_of_speech',
            'definitionJa': 'definition_ja',
            'exampleJa': 'example_ja',
        }
        data = {aliases.get(k, k): v for k, v in data.items()}
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Lesson:
    id: str
    title: str
    description: str
    type: str = LessonType.VOCABULARY.value
    level: str = 'all'
    estimated_minutes: int = 10

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class QuizQuestion:
    question: str
    options: List[str] = field(default_factory=list)
    correct_index: int = 0
    explanation: str = ''

    def to_dict(self) -> Dict:
        return asdict(self)

    def public_dict(self) -> Dict:
        """Question as shown to the learner (no answer, no explanation)."""
        return {'question': self.question, 'options': list(self.options)}
