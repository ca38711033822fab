from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class User(Base):
    """Learner account as seen by the review engine"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    display_name = Column(String)
    tier = Column(String, nullable=False, default="FREE")  # FREE, PRO
    created_at = Column(DateTime, default=datetime.now)

    preferences = relationship("UserPreferences", back_populates="user", uselist=False)
    sessions = relationship("LearningSession", back_populates="user")
    topics = relationship("Topic", back_populates="user")
