from datetime import datetime, timedelta
from enum import Enum
from math import floor
from typing import NamedTuple, Optional, Tuple

from review_engine.config import settings
from review_engine.errors import InvalidQuality


class MasteryLevel(str, Enum):
    NEW = "NEW"
    DEVELOPING = "DEVELOPING"
    FAMILIAR = "FAMILIAR"
    MASTERED = "MASTERED"


class ReviewResult(NamedTuple):
    ease_factor: float
    interval: int
    review_count: int
    next_review_date: datetime
    mastery_level: str


def _round_half_up(value: float) -> int:
    return int(floor(value + 0.5))


class SM2Algorithm:
    """
    SM-2 spaced repetition algorithm for calculating review intervals.
    Based on SuperMemo 2 algorithm by Piotr Wozniak.

    Unlike textbook SM-2, a failed recall does not reset the review count
    and does not touch the ease factor; it only shortens the interval.
    """

    @staticmethod
    def validate_quality(quality) -> int:
        """Reject anything that is not an integer rating in [0, 5]"""
        if isinstance(quality, bool) or not isinstance(quality, int):
            raise InvalidQuality(f"Quality must be an integer between 0 and 5, got {quality!r}")
        if quality < 0 or quality > 5:
            raise InvalidQuality(f"Quality must be an integer between 0 and 5, got {quality}")
        return quality

    @staticmethod
    def adjust_ease_factor(easiness_factor: float, quality: int) -> float:
        """EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))"""
        miss = 5 - quality
        return easiness_factor + (
            settings.ease_bonus
            - miss * (settings.ease_linear_penalty + miss * settings.ease_quadratic_penalty)
        )

    @staticmethod
    def classify_mastery(review_count: int, quality: int, current_level: str) -> str:
        """
        Mastery from the review count *before* this review, most permissive first.
        Recomputed on every review, so a level can drop as well as rise.
        """
        if review_count >= 5 and quality >= 4:
            return MasteryLevel.MASTERED.value
        if review_count >= 3 and quality >= 3:
            return MasteryLevel.FAMILIAR.value
        if review_count >= 1:
            return MasteryLevel.DEVELOPING.value
        return current_level

    @staticmethod
    def calculate_next_review(
        easiness_factor: float,
        interval: int,
        review_count: int,
        quality: int,
        mastery_level: str = MasteryLevel.NEW.value,
        reference_time: Optional[datetime] = None  # Optional: use custom time instead of now
    ) -> ReviewResult:
        """
        Calculate next review date and update SM-2 parameters.

        Args:
            easiness_factor: Current EF, never below the floor
            interval: Current interval in days, never above max_interval_days
            review_count: Reviews applied so far (successful or not)
            quality: Response quality (0-5). 0=total blackout, 5=perfect
            mastery_level: Current mastery level, kept when no rule applies
            reference_time: Optional reference time (defaults to now)

        Returns:
            ReviewResult(ease_factor, interval, review_count, next_review_date, mastery_level)
        """
        quality = SM2Algorithm.validate_quality(quality)
        new_ef = easiness_factor

        if quality >= 3:
            if review_count == 0:
                new_interval = settings.first_interval_days
            elif review_count == 1:
                new_interval = settings.second_interval_days
            else:
                # grows by the ease factor held before this review
                new_interval = _round_half_up(interval * easiness_factor)
            new_ef = SM2Algorithm.adjust_ease_factor(easiness_factor, quality)
        else:
            new_interval = settings.first_interval_days

        new_ef = max(settings.ease_factor_floor, new_ef)
        new_interval = min(settings.max_interval_days, max(1, new_interval))

        base_time = reference_time if reference_time else datetime.now()
        next_review_date = base_time + timedelta(days=new_interval)

        return ReviewResult(
            ease_factor=new_ef,
            interval=new_interval,
            review_count=review_count + 1,
            next_review_date=next_review_date,
            mastery_level=SM2Algorithm.classify_mastery(review_count, quality, mastery_level),
        )

    @staticmethod
    def initialize_topic(reference_time: Optional[datetime] = None) -> Tuple[float, int, int, datetime]:
        """
        Initialize SM-2 parameters for a new topic.

        Returns:
            (initial_ef, initial_interval, initial_count, next_review_date)
        """
        base_time = reference_time if reference_time else datetime.now()
        return (
            settings.initial_ease_factor,
            settings.first_interval_days,
            0,
            base_time + timedelta(days=settings.first_interval_days),
        )

    @staticmethod
    def is_due_for_review(next_review_date: datetime, reference_time: Optional[datetime] = None) -> bool:
        """Check if a topic is due for review"""
        return (reference_time or datetime.now()) >= next_review_date

    @staticmethod
    def get_days_overdue(next_review_date: datetime, reference_time: Optional[datetime] = None) -> int:
        """Calculate how many days overdue a review is"""
        now = reference_time or datetime.now()
        if now < next_review_date:
            return 0
        return (now - next_review_date).days
