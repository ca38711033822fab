from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.orm import relationship
from review_engine.database import Base

class UserPreferences(Base):
    """Per-user review settings"""
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    max_daily_reviews = Column(Integer, nullable=True)  # null: deployment default

    user = relationship("User", back_populates="preferences")
