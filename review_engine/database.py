from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from review_engine.config import settings


def make_engine(database_url: str):
    """Create an engine; SQLite connections are shared across request threads"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, connect_args=connect_args)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables"""
    import review_engine.models  # noqa: F401  register models on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
