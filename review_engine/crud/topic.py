from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from loguru import logger
from datetime import datetime
from typing import List, Optional
import random
import time

from review_engine.config import settings
from review_engine.errors import ConcurrentUpdateError, TopicNotFound
from review_engine.models import ReviewEvent, Topic
from review_engine.sm2 import SM2Algorithm


def get_topic(db: Session, user_id: int, topic_id: int) -> Topic:
    """Get a topic owned by the user"""
    topic = db.query(Topic).filter(Topic.id == topic_id, Topic.user_id == user_id).first()
    if not topic:
        raise TopicNotFound(f"Topic {topic_id} not found")
    return topic


def list_topics(db: Session, user_id: int, category: Optional[str] = None) -> List[Topic]:
    """Get all topics for user, newest first"""
    query = db.query(Topic).filter(Topic.user_id == user_id)
    if category:
        query = query.filter(Topic.category == category)
    return query.order_by(Topic.created_at.desc(), Topic.id.desc()).all()


def get_due_topics(db: Session, user_id: int, now: Optional[datetime] = None) -> List[Topic]:
    """Get all topics due for review, most overdue first"""
    return db.query(Topic).filter(
        Topic.user_id == user_id,
        Topic.next_review_date <= (now or datetime.now())
    ).order_by(Topic.next_review_date.asc(), Topic.id.asc()).all()


def review_topic(
    db: Session,
    user_id: int,
    topic_id: int,
    quality: int,
    idempotency_key: Optional[str] = None,
    now: Optional[datetime] = None
) -> Topic:
    """
    Apply one SM-2 review to a topic.

    The topic row is read ``FOR UPDATE`` where the backend supports row locks,
    and the write is a compare-and-swap on ``review_count``. When another
    review lands between our read and our write, nothing is written and the
    update is recomputed from a fresh read after a short jittered pause.
    Every failed swap means a competing review was applied, so the loop ends
    once the competition drains; ``review_update_retries`` caps it when set.
    A repeated ``idempotency_key`` returns the topic as it is without
    reviewing again.
    """
    SM2Algorithm.validate_quality(quality)

    attempt = 0
    while True:
        attempt += 1
        topic = _lock_topic(db, user_id, topic_id)

        if idempotency_key and _already_applied(db, topic.id, idempotency_key):
            db.rollback()
            logger.info(f"Review {idempotency_key!r} for topic {topic_id} already applied")
            return get_topic(db, user_id, topic_id)

        result = SM2Algorithm.calculate_next_review(
            topic.ease_factor,
            topic.review_interval_days,
            topic.review_count,
            quality,
            mastery_level=topic.mastery_level,
            reference_time=now
        )
        reviewed_at = now or datetime.now()

        updated = db.query(Topic).filter(
            Topic.id == topic.id,
            Topic.review_count == topic.review_count
        ).update({
            Topic.ease_factor: result.ease_factor,
            Topic.review_interval_days: result.interval,
            Topic.review_count: result.review_count,
            Topic.next_review_date: result.next_review_date,
            Topic.last_reviewed_at: reviewed_at,
            Topic.mastery_level: result.mastery_level,
        }, synchronize_session=False)

        if updated == 0:
            db.rollback()
            retries = settings.review_update_retries
            if retries is not None and attempt >= retries:
                raise ConcurrentUpdateError(f"Topic {topic_id} kept changing, review not applied")
            logger.debug(f"Topic {topic_id} changed during review (attempt {attempt}), retrying")
            _backoff(attempt)
            continue

        db.add(ReviewEvent(
            topic_id=topic.id,
            idempotency_key=idempotency_key,
            quality=quality,
            review_count_before=result.review_count - 1,
            created_at=reviewed_at
        ))
        try:
            db.commit()
        except IntegrityError:
            # same key submitted concurrently and the other submission won
            db.rollback()
            logger.info(f"Review {idempotency_key!r} for topic {topic_id} applied concurrently")
            return get_topic(db, user_id, topic_id)

        logger.debug(
            f"Topic {topic_id} reviewed q={quality}: interval={result.interval}d "
            f"ef={result.ease_factor:.2f} mastery={result.mastery_level}"
        )
        return get_topic(db, user_id, topic_id)


def _lock_topic(db: Session, user_id: int, topic_id: int) -> Topic:
    # FOR UPDATE renders as nothing on SQLite, which serializes writers itself
    topic = db.query(Topic).filter(
        Topic.id == topic_id, Topic.user_id == user_id
    ).with_for_update().populate_existing().first()
    if not topic:
        db.rollback()
        raise TopicNotFound(f"Topic {topic_id} not found")
    return topic


def _backoff(attempt: int) -> None:
    ceiling = min(settings.review_retry_backoff_max, settings.review_retry_backoff * 2 ** min(attempt, 8))
    time.sleep(random.uniform(0, ceiling))


def _already_applied(db: Session, topic_id: int, idempotency_key: str) -> bool:
    return db.query(ReviewEvent.id).filter(
        ReviewEvent.topic_id == topic_id,
        ReviewEvent.idempotency_key == idempotency_key
    ).first() is not None
