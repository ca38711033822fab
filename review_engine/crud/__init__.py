from review_engine.crud.user import (
    get_user,
    get_user_tier,
    get_or_create_preferences,
    get_max_daily_reviews,
    set_max_daily_reviews
)
from review_engine.crud.topic import get_topic, list_topics, get_due_topics, review_topic
from review_engine.crud.review_queue import build_review_queue, count_reviews_today
from review_engine.crud.learning_model import (
    record_session_completion,
    get_learning_model,
    set_learning_signal,
    reset_learning_model,
    export_learning_data
)
from review_engine.crud.session import get_session, complete_session
from review_engine.crud.usage import record_ai_usage, get_current_usage

__all__ = [
    "get_user",
    "get_user_tier",
    "get_or_create_preferences",
    "get_max_daily_reviews",
    "set_max_daily_reviews",
    "get_topic",
    "list_topics",
    "get_due_topics",
    "review_topic",
    "build_review_queue",
    "count_reviews_today",
    "record_session_completion",
    "get_learning_model",
    "set_learning_signal",
    "reset_learning_model",
    "export_learning_data",
    "get_session",
    "complete_session",
    "record_ai_usage",
    "get_current_usage",
]
