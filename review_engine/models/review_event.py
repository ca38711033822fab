from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from review_engine.database import Base

class ReviewEvent(Base):
    """One applied review; the idempotency key makes a resubmission a no-op"""
    __tablename__ = "review_events"
    __table_args__ = (
        UniqueConstraint("topic_id", "idempotency_key", name="uq_review_event_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False, index=True)
    idempotency_key = Column(String)  # nullable: unkeyed reviews are always applied
    quality = Column(Integer, nullable=False)
    review_count_before = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    topic = relationship("Topic", back_populates="review_events")
