from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import date, datetime


class TopicResponse(BaseModel):
    """Schema for a topic and its scheduling state"""
    id: int
    user_id: int
    title: str
    category: Optional[str] = None
    ease_factor: float
    review_interval_days: int
    review_count: int
    next_review_date: datetime
    last_reviewed_at: Optional[datetime] = None
    mastery_level: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewItem(BaseModel):
    """Schema for one topic + question pair in a review queue"""
    topic_id: int
    topic_name: str
    topic_description: Optional[str] = None
    mastery_level: str
    question_id: int
    question_text: str
    correct_answer: Optional[str] = None
    difficulty: Optional[str] = None
    video_title: Optional[str] = None
    video_thumbnail: Optional[str] = None
    channel_name: Optional[str] = None


class ReviewQueue(BaseModel):
    """Schema for today's quick review"""
    items: List[ReviewItem] = []
    total_questions: int = 0
    estimated_minutes: int = 0
    max_daily_reviews: int
    today_reviews: int
    limit_reached: bool = False


class SessionSummary(BaseModel):
    """Telemetry delivered when a session completes"""
    completed_at: datetime
    questions_answered: int = 0
    questions_correct: int = 0
    time_spent_seconds: int = 0


class PatternResponse(BaseModel):
    """Schema for one learning pattern row"""
    id: int
    pattern_type: str
    pattern_data: Dict[str, Any]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignalView(BaseModel):
    """Effective signal toggles (defaults merged with the user's overrides)"""
    time_of_day: bool = True
    session_duration: bool = True
    difficulty: bool = True
    pacing: bool = True
    device: bool = True


class LearningModelView(BaseModel):
    """Schema for a user's learning model, or has_data=False when none exists"""
    has_data: bool
    message: Optional[str] = None
    optimal_time: Optional[str] = None
    avg_session_duration: Optional[float] = None
    difficulty_sweet_spot: Optional[float] = None
    preferred_pacing: Optional[str] = None
    preferred_device: Optional[str] = None
    sessions_analyzed: int = 0
    confidence_score: float = 0.0
    last_updated: Optional[datetime] = None
    patterns: List[PatternResponse] = []
    signals: SignalView = Field(default_factory=SignalView)


class ExportBundle(BaseModel):
    """Read-only data portability snapshot"""
    export_date: datetime
    user: Optional[Dict[str, Any]] = None
    preferences: Dict[str, Any]
    learning_model: LearningModelView
    sessions: int
    topics: int
    reviews: int


class RateLimitResult(BaseModel):
    """Outcome of one admission check against the AI rate limit"""
    allowed: bool
    remaining: int
    reset_at: datetime
    limit: int


class UsageResponse(BaseModel):
    """Schema for the current monthly AI usage"""
    user_id: int
    period_start: date
    period_end: date
    ai_requests_count: int


class AnswerEvaluation(BaseModel):
    """Schema for a three-tier answer evaluation"""
    result: Literal["pass", "fail", "neutral"] = Field(description="pass, fail or neutral")
    feedback: str = Field(description="Constructive feedback explaining the evaluation")
    correct_answer: str = Field(default="", description="What a complete answer should include")
    key_points_hit: List[str] = Field(default_factory=list, description="Concepts the user got right")
    key_points_missed: List[str] = Field(default_factory=list, description="Concepts the user missed")


class TimedAnswerEvaluation(BaseModel):
    """Schema for a quick pass/fail evaluation in a timed session"""
    is_correct: bool = Field(description="True if the answer shows understanding")
    feedback: str = Field(description="Brief encouraging feedback")
