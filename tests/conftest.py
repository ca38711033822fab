"""
Pytest Configuration and Fixtures.

Every test gets a fresh in-memory SQLite database; tests that need real
concurrent connections use a file-backed database instead.
"""
import pytest
import sys
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from review_engine.database import init_db, make_engine  # noqa: E402
from review_engine.models import (  # noqa: E402
    LearningSession,
    Question,
    Topic,
    User,
    UserPreferences,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a SQLite file, one connection per session"""
    engine = make_engine(f"sqlite:///{tmp_path / 'concurrency.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _create_user(db, email="learner@example.com", tier="FREE", max_daily_reviews=None):
    user = User(email=email, display_name="Learner", tier=tier)
    db.add(user)
    db.flush()
    if max_daily_reviews is not None:
        db.add(UserPreferences(user_id=user.id, max_daily_reviews=max_daily_reviews))
    db.commit()
    db.refresh(user)
    return user


def _create_session(db, user, **fields):
    values = dict(
        user_id=user.id,
        video_title="Intro to Graphs",
        video_thumbnail="https://img.example.com/graphs.jpg",
        channel_name="CS Explained",
        questions_answered=4,
        questions_correct=3,
        time_spent_seconds=600,
    )
    values.update(fields)
    session = LearningSession(**values)
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def _create_topic(db, user, title="Breadth-first search", session=None, **fields):
    values = dict(
        user_id=user.id,
        session_id=session.id if session else None,
        title=title,
        description=f"About {title}",
        category="algorithms",
        next_review_date=NOW - timedelta(days=1),
        created_at=NOW - timedelta(days=7),
    )
    values.update(fields)
    topic = Topic(**values)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic


def _create_question(db, topic, text="What does BFS use?", created_at=None):
    question = Question(
        topic_id=topic.id,
        question_text=text,
        correct_answer="A queue",
        difficulty="MEDIUM",
        created_at=created_at or NOW - timedelta(days=7),
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@pytest.fixture
def make_user(db):
    return lambda **kwargs: _create_user(db, **kwargs)


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def make_session(db):
    return lambda user, **kwargs: _create_session(db, user, **kwargs)


@pytest.fixture
def make_topic(db):
    return lambda user, **kwargs: _create_topic(db, user, **kwargs)


@pytest.fixture
def make_question(db):
    return lambda topic, **kwargs: _create_question(db, topic, **kwargs)
