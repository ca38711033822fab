from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class Question(Base):
    """Question generated for a topic"""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    correct_answer = Column(Text)
    difficulty = Column(String)  # EASY, MEDIUM, HARD
    created_at = Column(DateTime, default=datetime.now)

    topic = relationship("Topic", back_populates="questions")
