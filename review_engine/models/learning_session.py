from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class LearningSession(Base):
    """A question/answer session built around one video"""
    __tablename__ = "learning_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # display context copied onto review items
    video_title = Column(String, nullable=False)
    video_thumbnail = Column(String)
    channel_name = Column(String)

    status = Column(String, nullable=False, default="ACTIVE")  # ACTIVE, COMPLETED
    questions_answered = Column(Integer, nullable=False, default=0)
    questions_correct = Column(Integer, nullable=False, default=0)
    time_spent_seconds = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.now)
    completed_at = Column(DateTime)

    user = relationship("User", back_populates="sessions")
    topics = relationship("Topic", back_populates="session")
