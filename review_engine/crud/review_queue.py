from sqlalchemy.orm import Session
from loguru import logger
from datetime import datetime
from math import ceil
from typing import Optional

from review_engine.config import settings
from review_engine.crud.user import get_max_daily_reviews
from review_engine.models import Question, Topic
from review_engine.schemas import ReviewItem, ReviewQueue


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def count_reviews_today(db: Session, user_id: int, now: Optional[datetime] = None) -> int:
    """Topics reviewed since local midnight"""
    return db.query(Topic).filter(
        Topic.user_id == user_id,
        Topic.last_reviewed_at >= start_of_day(now or datetime.now())
    ).count()


def estimate_minutes(item_count: int) -> int:
    """~30 seconds per item, capped so a quick review stays quick"""
    return min(
        settings.max_review_minutes,
        ceil(item_count * settings.seconds_per_review_item / 60)
    )


def build_review_queue(db: Session, user_id: int, now: Optional[datetime] = None) -> ReviewQueue:
    """
    Select today's review items under the user's daily cap.

    Due topics are taken most overdue first, each contributing its newest
    questions, and the flattened list is cut to what the cap still allows.
    """
    now = now or datetime.now()
    max_daily_reviews = get_max_daily_reviews(db, user_id)
    today_reviews = count_reviews_today(db, user_id, now)
    remaining = max(0, max_daily_reviews - today_reviews)

    if remaining == 0:
        logger.info(f"User {user_id} reached the daily review cap ({max_daily_reviews})")
        return ReviewQueue(
            max_daily_reviews=max_daily_reviews,
            today_reviews=today_reviews,
            limit_reached=True
        )

    topics = db.query(Topic).filter(
        Topic.user_id == user_id,
        Topic.next_review_date <= now
    ).order_by(
        Topic.next_review_date.asc(), Topic.id.asc()
    ).limit(min(settings.max_queue_topics, remaining)).all()

    items = []
    for topic in topics:
        questions = db.query(Question).filter(
            Question.topic_id == topic.id
        ).order_by(
            Question.created_at.desc(), Question.id.desc()
        ).limit(settings.questions_per_topic).all()

        session = topic.session
        for question in questions:
            items.append(ReviewItem(
                topic_id=topic.id,
                topic_name=topic.title,
                topic_description=topic.description,
                mastery_level=topic.mastery_level,
                question_id=question.id,
                question_text=question.question_text,
                correct_answer=question.correct_answer,
                difficulty=question.difficulty,
                video_title=session.video_title if session else None,
                video_thumbnail=session.video_thumbnail if session else None,
                channel_name=session.channel_name if session else None
            ))

    items = items[:min(settings.max_queue_items, remaining)]

    return ReviewQueue(
        items=items,
        total_questions=len(items),
        estimated_minutes=estimate_minutes(len(items)),
        max_daily_reviews=max_daily_reviews,
        today_reviews=today_reviews,
        limit_reached=False
    )
