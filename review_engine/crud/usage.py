from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loguru import logger
from calendar import monthrange
from datetime import date, datetime
from typing import Optional, Tuple

from review_engine.models import UsageLedger
from review_engine.schemas import UsageResponse


def billing_period(now: Optional[datetime] = None) -> Tuple[date, date]:
    """First and last day of the calendar month containing ``now``"""
    today = (now or datetime.now()).date()
    last_day = monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def record_ai_usage(db: Session, user_id: int, now: Optional[datetime] = None) -> UsageLedger:
    """Count one admitted AI request against the user's monthly ledger"""
    period_start, period_end = billing_period(now)

    for _ in range(2):
        updated = db.query(UsageLedger).filter(
            UsageLedger.user_id == user_id,
            UsageLedger.period_start == period_start
        ).update(
            {UsageLedger.ai_requests_count: UsageLedger.ai_requests_count + 1},
            synchronize_session=False
        )
        if updated == 0:
            db.add(UsageLedger(
                user_id=user_id,
                period_start=period_start,
                period_end=period_end,
                ai_requests_count=1
            ))
        try:
            db.commit()
            break
        except IntegrityError:
            # another request opened this month's row first
            db.rollback()
            logger.debug(f"Usage row for user {user_id} created concurrently, retrying as update")
    else:
        raise RuntimeError(f"Could not record AI usage for user {user_id}")

    return db.query(UsageLedger).filter(
        UsageLedger.user_id == user_id,
        UsageLedger.period_start == period_start
    ).one()


def get_current_usage(db: Session, user_id: int, now: Optional[datetime] = None) -> UsageResponse:
    """AI usage for the current calendar month"""
    period_start, period_end = billing_period(now)
    row = db.query(UsageLedger).filter(
        UsageLedger.user_id == user_id,
        UsageLedger.period_start == period_start
    ).first()
    return UsageResponse(
        user_id=user_id,
        period_start=period_start,
        period_end=period_end,
        ai_requests_count=row.ai_requests_count if row else 0
    )
