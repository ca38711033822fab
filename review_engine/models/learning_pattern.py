from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class LearningPattern(Base):
    """Append-only raw observation behind a learning model"""
    __tablename__ = "learning_patterns"

    id = Column(Integer, primary_key=True, index=True)
    learning_model_id = Column(
        Integer, ForeignKey("learning_models.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pattern_type = Column(String, nullable=False)  # e.g. "session_time"
    pattern_data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    learning_model = relationship("LearningModel", back_populates="patterns")
