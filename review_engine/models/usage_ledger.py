from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime
from review_engine.database import Base

class UsageLedger(Base):
    """Monthly AI request count per user"""
    __tablename__ = "usage_ledger"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_user_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)  # first day of the month
    period_end = Column(Date, nullable=False)  # last day of the month
    ai_requests_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
