"""
Database Configuration
SQLAlchemy engine and session management.
SQLite for local development, PostgreSQL in production.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from forgecraft.core.config import settings

logger = logging.getLogger(__name__)


def engine_options(url: str) -> dict:
    """create_engine() keyword arguments for the given database URL."""
    if url.startswith("sqlite"):
        # RQ workers and the API thread pool share connections
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind=None):
    """Create any missing tables."""
    from forgecraft import models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.debug(f"Database ready: {len(Base.metadata.tables)} tables on {bind.url.render_as_string(hide_password=True)}")
