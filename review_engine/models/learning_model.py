from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class LearningModel(Base):
    """Behavioral signals inferred from a user's completed sessions"""
    __tablename__ = "learning_models"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    optimal_time = Column(String)  # morning, afternoon, evening
    avg_session_duration = Column(Float)  # seconds, mean over timed sessions
    difficulty_sweet_spot = Column(Float, nullable=False, default=0.6)  # 0.3-0.9
    preferred_pacing = Column(String)
    preferred_device = Column(String)
    sessions_analyzed = Column(Integer, nullable=False, default=0)
    confidence_score = Column(Float, nullable=False, default=0.0)

    # running aggregates behind optimal_time and avg_session_duration
    morning_sessions = Column(Integer, nullable=False, default=0)
    afternoon_sessions = Column(Integer, nullable=False, default=0)
    evening_sessions = Column(Integer, nullable=False, default=0)
    # sessions_analyzed at each bucket's latest sample, breaks frequency ties
    morning_last_sample = Column(Integer, nullable=False, default=0)
    afternoon_last_sample = Column(Integer, nullable=False, default=0)
    evening_last_sample = Column(Integer, nullable=False, default=0)
    total_session_seconds = Column(Integer, nullable=False, default=0)
    duration_samples = Column(Integer, nullable=False, default=0)

    # user-controlled signal toggles
    time_of_day_enabled = Column(Boolean, nullable=False, default=True)
    session_duration_enabled = Column(Boolean, nullable=False, default=True)
    difficulty_enabled = Column(Boolean, nullable=False, default=True)
    pacing_enabled = Column(Boolean, nullable=False, default=True)
    device_enabled = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.now)
    last_updated = Column(DateTime, default=datetime.now)

    patterns = relationship(
        "LearningPattern",
        back_populates="learning_model",
        cascade="all, delete-orphan",
        order_by="LearningPattern.id",
    )
