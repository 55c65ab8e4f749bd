"""Database session management

The engine and session factory are created lazily, once per process, so a
cold start never connects at import time and warm invocations reuse the pool.
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from mailflow.models.base import Base
from mailflow.core.config import settings

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Get or create the SQLAlchemy engine (lazy initialization)"""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.DATABASE_URL,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_timeout=settings.DATABASE_POOL_TIMEOUT
        )
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory bound to the engine"""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def SessionLocal():
    """Open a new database session"""
    return get_session_factory()()


def get_db():
    """Dependency for FastAPI endpoints"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database (create all tables)"""
    import mailflow.models  # noqa: F401 - registers models with Base.metadata
    Base.metadata.create_all(bind=get_engine())
