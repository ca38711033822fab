from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base
from review_engine.sm2 import MasteryLevel

class Topic(Base):
    """Reviewable unit of material with SM-2 scheduling state"""
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("learning_sessions.id"))
    title = Column(String, nullable=False)
    description = Column(String)
    category = Column(String)

    # SM-2 algorithm fields
    ease_factor = Column(Float, nullable=False, default=2.5)  # never below 1.3
    review_interval_days = Column(Integer, nullable=False, default=1)
    review_count = Column(Integer, nullable=False, default=0)  # only ever increases
    next_review_date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    last_reviewed_at = Column(DateTime)
    mastery_level = Column(String, nullable=False, default=MasteryLevel.NEW.value)

    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User", back_populates="topics")
    session = relationship("LearningSession", back_populates="topics")
    questions = relationship("Question", back_populates="topic", cascade="all, delete-orphan")
    review_events = relationship("ReviewEvent", back_populates="topic", cascade="all, delete-orphan")
