from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from review_engine.crud.learning_model import record_session_completion
from review_engine.errors import SessionNotFound
from review_engine.models import LearningSession
from review_engine.schemas import SessionSummary


def get_session(db: Session, user_id: int, session_id: int) -> LearningSession:
    """Get a session owned by the user"""
    session = db.query(LearningSession).filter(
        LearningSession.id == session_id,
        LearningSession.user_id == user_id
    ).first()
    if not session:
        raise SessionNotFound(f"Session {session_id} not found")
    return session


def complete_session(
    db: Session,
    user_id: int,
    session_id: int,
    now: Optional[datetime] = None
) -> LearningSession:
    """
    Mark a session completed and feed it to the learning model.

    Only the first completion counts; repeating the call returns the session
    unchanged. The learning model update never fails the completion.
    """
    session = get_session(db, user_id, session_id)
    if session.status == "COMPLETED":
        return session

    completed_at = now or datetime.now()
    updated = db.query(LearningSession).filter(
        LearningSession.id == session.id,
        LearningSession.status != "COMPLETED"
    ).update({
        LearningSession.status: "COMPLETED",
        LearningSession.completed_at: completed_at,
    }, synchronize_session=False)
    db.commit()

    if updated:
        record_session_completion(db, user_id, SessionSummary(
            completed_at=completed_at,
            questions_answered=session.questions_answered,
            questions_correct=session.questions_correct,
            time_spent_seconds=session.time_spent_seconds
        ))

    db.refresh(session)
    return session
