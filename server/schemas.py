"""Pydantic request/response schemas for the LearnBuddy API."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ---- Users ----

class CreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=255)


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    plan: str


class ProgressResponse(BaseModel):
    total_lessons_completed: int
    total_questions_asked: int
    words_learned: int
    streak: int
    last_active_date: Optional[str] = None


# ---- Review (spaced repetition) ----

class ReviewWord(BaseModel):
    word: str
    correct_count: int
    incorrect_count: int
    ease_factor: float
    interval_days: int
    last_reviewed: Optional[str] = None
    next_review: Optional[str] = None
    definition: str = ""
    definition_ja: str = ""
    example: str = ""
    example_ja: str = ""
    pronunciation: str = ""


class DueWordsResponse(BaseModel):
    words_to_review: List[ReviewWord]
    count: int


class ReviewRequest(BaseModel):
    word: str = Field(..., min_length=1, max_length=128)
    # Out-of-range grades are clamped to 0-5 by the scheduler
    quality: int


class ReviewResult(BaseModel):
    word: str
    quality: int
    is_correct: bool
    next_review: str
    interval_days: int
    ease_factor: float
    correct_count: int
    incorrect_count: int


class ReviewResponse(BaseModel):
    success: bool = True
    result: ReviewResult


class ReviewStats(BaseModel):
    total_words: int
    mastered_words: int
    due_today: int
    average_ease_factor: float
    mastery_percentage: int


class StatsResponse(BaseModel):
    stats: ReviewStats


class StartWordRequest(BaseModel):
    word: str = Field(..., min_length=1, max_length=128)


# ---- Lessons ----

class CompleteLessonRequest(BaseModel):
    score: Optional[int] = Field(default=None, ge=0, le=100)


# ---- Quiz ----

class QuizSubmitRequest(BaseModel):
    quiz_id: str = Field(..., min_length=1)
    answers: List[Optional[int]]


class QuizQuestionPublic(BaseModel):
    question: str
    options: List[str]


class QuizResponse(BaseModel):
    quiz_id: str
    topic: str
    difficulty: str
    questions: List[QuizQuestionPublic]


class QuizDetail(BaseModel):
    question_index: int
    correct: bool
    user_answer: Optional[int] = None
    correct_answer: int
    explanation: str


class QuizResultResponse(BaseModel):
    score: int
    total: int
    percentage: int
    details: List[QuizDetail]


# ---- Ask ----

class AskRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000)
    context: Optional[str] = Field(default=None, max_length=4000)


class AskResponse(BaseModel):
    answer: str
    sources: List[str] = Field(default_factory=list)
    usage: Dict[str, Any]


# ---- Plans ----

class UpgradeRequest(BaseModel):
    plan: str


class SubscriptionResponse(BaseModel):
    subscription: Dict[str, Any]
    plan: Optional[Dict[str, Any]] = None


# ---- Reminders & sessions ----

class ReminderSettingsRequest(BaseModel):
    enabled: Optional[bool] = None
    preferred_time: Optional[str] = None
    timezone: Optional[str] = Field(default=None, max_length=64)
    frequency: Optional[str] = None


class ReminderSettingsResponse(BaseModel):
    user_id: str
    enabled: bool
    preferred_time: str
    timezone: str
    frequency: str
    last_reminder_sent: Optional[str] = None


class StartSessionRequest(BaseModel):
    from_reminder: bool = False


class UpdateSessionRequest(BaseModel):
    words_reviewed: Optional[int] = Field(default=None, ge=0)
    quiz_completed: Optional[int] = Field(default=None, ge=0)


class SessionResponse(BaseModel):
    id: int
    user_id: str
    started_at: str
    ended_at: Optional[str] = None
    words_reviewed: int
    quiz_completed: int
    from_reminder: bool


class LearningStatusResponse(BaseModel):
    due_words_count: int
    total_words_learned: int
    mastered_words_count: int
    mastery_percentage: int
    weekly_session_count: int
    current_streak: int
    words_preview: List[str]
