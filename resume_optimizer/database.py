from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from resume_optimizer.core.config import settings

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)
else:
    # SQLite configuration for local development/testing.
    # The generous busy timeout lets concurrent version increments queue instead of failing.
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

SessionScope = Callable[[], ContextManager[Session]]


def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session for work that outlives the request, such as an optimization run
    driving a streaming response.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_scope() -> SessionScope:
    return session_scope


def init_db():
    """
    Registers all domain models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    # Import all models to ensure they are registered with Base.metadata before create_all
    from resume_optimizer.models import (  # noqa: F401
        user, resume, cover_letter, optimization_step, version_counter
    )
    Base.metadata.create_all(bind=engine)
