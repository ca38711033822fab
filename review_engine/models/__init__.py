from review_engine.models.user import User
from review_engine.models.user_preferences import UserPreferences
from review_engine.models.learning_session import LearningSession
from review_engine.models.topic import Topic
from review_engine.models.question import Question
from review_engine.models.review_event import ReviewEvent
from review_engine.models.learning_model import LearningModel
from review_engine.models.learning_pattern import LearningPattern
from review_engine.models.usage_ledger import UsageLedger

__all__ = [
    "User",
    "UserPreferences",
    "LearningSession",
    "Topic",
    "Question",
    "ReviewEvent",
    "LearningModel",
    "LearningPattern",
    "UsageLedger",
]
