"""
Learning model aggregation.

Folds session-completion telemetry into one behavioral model per user and
keeps the raw samples as an append-only pattern log. Counters are updated
with SQL-side expressions so completions arriving from several devices at
once are all counted.
"""
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from loguru import logger
from datetime import datetime
from typing import Dict, Optional

from review_engine.config import settings
from review_engine.crud.user import get_max_daily_reviews, get_user
from review_engine.errors import InvalidSignal
from review_engine.models import LearningModel, LearningPattern, LearningSession, ReviewEvent, Topic
from review_engine.schemas import (
    ExportBundle,
    LearningModelView,
    PatternResponse,
    SessionSummary,
    SignalView,
)

# Signals are on until the user turns them off.
DEFAULT_SIGNALS: Dict[str, bool] = {
    "time_of_day": True,
    "session_duration": True,
    "difficulty": True,
    "pacing": True,
    "device": True,
}

SIGNAL_COLUMNS = {
    "time_of_day": "time_of_day_enabled",
    "session_duration": "session_duration_enabled",
    "difficulty": "difficulty_enabled",
    "pacing": "pacing_enabled",
    "device": "device_enabled",
}

# names used by API clients
SIGNAL_ALIASES = {
    "timeOfDay": "time_of_day",
    "sessionDuration": "session_duration",
}

TIME_BUCKETS = {
    "morning": LearningModel.morning_sessions,
    "afternoon": LearningModel.afternoon_sessions,
    "evening": LearningModel.evening_sessions,
}

TIME_BUCKET_LAST_SAMPLE = {
    "morning": LearningModel.morning_last_sample,
    "afternoon": LearningModel.afternoon_last_sample,
    "evening": LearningModel.evening_last_sample,
}

SWEET_SPOT_MIN = 0.3
SWEET_SPOT_MAX = 0.9

NO_DATA_MESSAGE = "No learning data yet. Complete more sessions to build your profile."


def time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def difficulty_sweet_spot(accuracy: float) -> float:
    """Map accuracy onto target difficulty; 75% accuracy lands on 0.75"""
    return min(SWEET_SPOT_MAX, max(SWEET_SPOT_MIN, accuracy * 0.6 + 0.3))


def resolve_signals(model: Optional[LearningModel]) -> Dict[str, bool]:
    """Default signal configuration overlaid with the user's stored toggles"""
    signals = dict(DEFAULT_SIGNALS)
    if model is not None:
        for name, column in SIGNAL_COLUMNS.items():
            value = getattr(model, column)
            if value is not None:
                signals[name] = value
    return signals


def normalize_signal(name: str) -> str:
    name = SIGNAL_ALIASES.get(name, name)
    if name not in SIGNAL_COLUMNS:
        raise InvalidSignal(f"Invalid signal: {name}")
    return name


def _get_model(db: Session, user_id: int) -> Optional[LearningModel]:
    return db.query(LearningModel).filter(LearningModel.user_id == user_id).first()


def _optimal_time_expression(bucket: str):
    """
    Most frequent bucket after counting this sample. Ties go to the bucket
    sampled most recently: this sample first, then whichever of the other two
    has the later ``*_last_sample``.
    """
    current = TIME_BUCKETS[bucket] + 1
    first, second = [name for name in TIME_BUCKETS if name != bucket]
    return case(
        ((current >= TIME_BUCKETS[first]) & (current >= TIME_BUCKETS[second]), bucket),
        (TIME_BUCKETS[first] > TIME_BUCKETS[second], first),
        (TIME_BUCKETS[second] > TIME_BUCKETS[first], second),
        (TIME_BUCKET_LAST_SAMPLE[first] > TIME_BUCKET_LAST_SAMPLE[second], first),
        else_=second,
    )


def _confidence_expression():
    raised = LearningModel.confidence_score + settings.confidence_increment
    if settings.confidence_ceiling is None:
        return raised
    return case((raised > settings.confidence_ceiling, settings.confidence_ceiling), else_=raised)


def _fold_into_existing(db: Session, user_id: int, bucket: str, duration: Optional[int],
                        sweet_spot: Optional[float], now: datetime) -> int:
    values = {
        LearningModel.sessions_analyzed: LearningModel.sessions_analyzed + 1,
        LearningModel.confidence_score: _confidence_expression(),
        TIME_BUCKETS[bucket]: TIME_BUCKETS[bucket] + 1,
        TIME_BUCKET_LAST_SAMPLE[bucket]: LearningModel.sessions_analyzed + 1,
        LearningModel.optimal_time: _optimal_time_expression(bucket),
        LearningModel.last_updated: now,
    }
    if duration is not None:
        values[LearningModel.total_session_seconds] = LearningModel.total_session_seconds + duration
        values[LearningModel.duration_samples] = LearningModel.duration_samples + 1
        values[LearningModel.avg_session_duration] = (
            (LearningModel.total_session_seconds + duration) * 1.0
            / (LearningModel.duration_samples + 1)
        )
    if sweet_spot is not None:
        values[LearningModel.difficulty_sweet_spot] = sweet_spot

    return db.query(LearningModel).filter(
        LearningModel.user_id == user_id
    ).update(values, synchronize_session=False)


def _create_model(db: Session, user_id: int, bucket: str, duration: Optional[int],
                  sweet_spot: Optional[float], now: datetime) -> None:
    model = LearningModel(
        user_id=user_id,
        sessions_analyzed=1,
        confidence_score=min(settings.confidence_increment, settings.confidence_ceiling or float("inf")),
        optimal_time=bucket,
        morning_sessions=0,
        afternoon_sessions=0,
        evening_sessions=0,
        total_session_seconds=duration or 0,
        duration_samples=1 if duration is not None else 0,
        avg_session_duration=float(duration) if duration is not None else None,
        created_at=now,
        last_updated=now,
    )
    setattr(model, TIME_BUCKETS[bucket].key, 1)
    setattr(model, TIME_BUCKET_LAST_SAMPLE[bucket].key, 1)
    if sweet_spot is not None:
        model.difficulty_sweet_spot = sweet_spot
    db.add(model)


def _upsert_model(db: Session, user_id: int, bucket: str, duration: Optional[int],
                  sweet_spot: Optional[float], now: datetime) -> LearningModel:
    for _ in range(2):
        if _fold_into_existing(db, user_id, bucket, duration, sweet_spot, now) == 0:
            _create_model(db, user_id, bucket, duration, sweet_spot, now)
        try:
            db.commit()
            break
        except IntegrityError:
            # first completion arrived from two places at once
            db.rollback()
            logger.debug(f"Learning model for user {user_id} created concurrently, retrying as update")
    else:
        raise RuntimeError(f"Could not update learning model for user {user_id}")
    return _get_model(db, user_id)


def append_pattern(db: Session, model: LearningModel, pattern_type: str, pattern_data: dict,
                   now: Optional[datetime] = None) -> Optional[LearningPattern]:
    """
    Append a pattern row, then trim the log to the retention window.
    Best-effort: a failed write is logged and swallowed.
    """
    try:
        pattern = LearningPattern(
            learning_model_id=model.id,
            pattern_type=pattern_type,
            pattern_data=pattern_data,
            created_at=now or datetime.now(),
        )
        db.add(pattern)
        db.flush()

        if settings.pattern_retention:
            stale_ids = [
                row.id for row in db.query(LearningPattern.id).filter(
                    LearningPattern.learning_model_id == model.id
                ).order_by(LearningPattern.id.desc()).offset(settings.pattern_retention).all()
            ]
            if stale_ids:
                db.query(LearningPattern).filter(
                    LearningPattern.id.in_(stale_ids)
                ).delete(synchronize_session=False)

        db.commit()
        return pattern
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"Could not append {pattern_type} pattern for model {model.id}: {exc}")
        return None


def record_session_completion(db: Session, user_id: int, summary: SessionSummary) -> Optional[LearningModel]:
    """
    Fold one completed session into the user's learning model.

    Fire-and-forget: nothing raised here reaches the caller completing the
    session. Returns the updated model, or None when collection is switched
    off or the update failed.
    """
    try:
        signals = resolve_signals(_get_model(db, user_id))
        if not signals["time_of_day"]:
            logger.debug(f"Time-of-day signal off for user {user_id}, session not analyzed")
            return None

        completed_at = summary.completed_at
        hour = completed_at.hour
        bucket = time_of_day(hour)

        sweet_spot = None
        if signals["difficulty"] and summary.questions_answered > 0:
            sweet_spot = difficulty_sweet_spot(summary.questions_correct / summary.questions_answered)

        duration = None
        if signals["session_duration"] and summary.time_spent_seconds > 0:
            duration = summary.time_spent_seconds

        model = _upsert_model(db, user_id, bucket, duration, sweet_spot, datetime.now())
        logger.debug(
            f"Learning model for user {user_id}: {model.sessions_analyzed} sessions, "
            f"optimal={model.optimal_time}, confidence={model.confidence_score:.2f}"
        )

        append_pattern(db, model, "session_time", {
            "hour": hour,
            "timeOfDay": bucket,
            "completedAt": completed_at.isoformat(),
            "questionsAnswered": summary.questions_answered,
            "questionsCorrect": summary.questions_correct,
        }, now=completed_at)
        return model
    except Exception:
        db.rollback()
        logger.exception(f"Failed to update learning model for user {user_id}")
        return None


def _model_view(model: Optional[LearningModel]) -> LearningModelView:
    if model is None:
        return LearningModelView(has_data=False, message=NO_DATA_MESSAGE)
    return LearningModelView(
        has_data=True,
        optimal_time=model.optimal_time,
        avg_session_duration=model.avg_session_duration,
        difficulty_sweet_spot=model.difficulty_sweet_spot,
        preferred_pacing=model.preferred_pacing,
        preferred_device=model.preferred_device,
        sessions_analyzed=model.sessions_analyzed,
        confidence_score=model.confidence_score,
        last_updated=model.last_updated,
        patterns=[PatternResponse.model_validate(p) for p in model.patterns],
        signals=SignalView(**resolve_signals(model)),
    )


def get_learning_model(db: Session, user_id: int) -> LearningModelView:
    """Model, patterns and effective signals, or has_data=False"""
    return _model_view(_get_model(db, user_id))


def set_learning_signal(db: Session, user_id: int, signal: str, enabled: bool) -> SignalView:
    """Toggle one signal, creating the model row to hold the override if needed"""
    name = normalize_signal(signal)
    column = getattr(LearningModel, SIGNAL_COLUMNS[name])

    if db.query(LearningModel).filter(
        LearningModel.user_id == user_id
    ).update({column: enabled}, synchronize_session=False) == 0:
        db.add(LearningModel(user_id=user_id, **{SIGNAL_COLUMNS[name]: enabled}))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        db.query(LearningModel).filter(
            LearningModel.user_id == user_id
        ).update({column: enabled}, synchronize_session=False)
        db.commit()

    logger.info(f"User {user_id} turned signal {name} {'on' if enabled else 'off'}")
    return SignalView(**resolve_signals(_get_model(db, user_id)))


def reset_learning_model(db: Session, user_id: int) -> bool:
    """Delete the model and its patterns; True when something was deleted"""
    model = _get_model(db, user_id)
    if model is None:
        return False
    db.delete(model)
    db.commit()
    logger.info(f"Learning model for user {user_id} reset")
    return True


def export_learning_data(db: Session, user_id: int, now: Optional[datetime] = None) -> ExportBundle:
    """Snapshot of everything the engine learned about a user"""
    user = get_user(db, user_id)
    user_data = None
    if user:
        user_data = {
            "email": user.email,
            "display_name": user.display_name,
            "tier": user.tier,
            "created_at": user.created_at,
        }

    return ExportBundle(
        export_date=now or datetime.now(),
        user=user_data,
        preferences={"max_daily_reviews": get_max_daily_reviews(db, user_id)},
        learning_model=get_learning_model(db, user_id),
        sessions=db.query(LearningSession).filter(LearningSession.user_id == user_id).count(),
        topics=db.query(Topic).filter(Topic.user_id == user_id).count(),
        reviews=db.query(ReviewEvent).join(Topic).filter(Topic.user_id == user_id).count(),
    )
