from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from review_engine.config import settings
from review_engine.models import User, UserPreferences

def get_user(db: Session, user_id: int) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()

def get_user_tier(db: Session, user_id: int) -> str:
    """Subscription tier, default tier when the user is unknown"""
    user = get_user(db, user_id)
    return user.tier if user and user.tier else settings.default_tier

def get_or_create_preferences(db: Session, user_id: int) -> UserPreferences:
    """Get the user's preferences row, creating an empty one on first use"""
    prefs = db.query(UserPreferences).filter(UserPreferences.user_id == user_id).first()
    if prefs:
        return prefs
    prefs = UserPreferences(user_id=user_id)
    db.add(prefs)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return db.query(UserPreferences).filter(UserPreferences.user_id == user_id).one()
    db.refresh(prefs)
    return prefs

def get_max_daily_reviews(db: Session, user_id: int) -> int:
    """Daily review cap from preferences, falling back to the deployment default"""
    prefs = db.query(UserPreferences).filter(UserPreferences.user_id == user_id).first()
    if prefs and prefs.max_daily_reviews is not None:
        return prefs.max_daily_reviews
    return settings.default_max_daily_reviews

def set_max_daily_reviews(db: Session, user_id: int, max_daily_reviews: int) -> UserPreferences:
    """Update the daily review cap (1-100)"""
    if max_daily_reviews < 1 or max_daily_reviews > 100:
        raise ValueError("max_daily_reviews must be between 1 and 100")
    prefs = get_or_create_preferences(db, user_id)
    prefs.max_daily_reviews = max_daily_reviews
    db.commit()
    db.refresh(prefs)
    return prefs
