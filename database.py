"""SQLAlchemy database engine, session, and base model."""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

from config import DATABASE_URL

logger = logging.getLogger(__name__)


def _build_engine(db_url: str):
    """Build a SQLAlchemy engine.  SQLite connections are shared across the
    threads FastAPI runs sync dependencies on, so thread checks are off."""

    if "sqlite" in db_url:
        return create_engine(db_url, connect_args={"check_same_thread": False}, pool_pre_ping=True)

    # postgresql:// URLs are served by psycopg2
    return create_engine(db_url, pool_pre_ping=True)


engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables."""
    import models  # noqa: F401 – registers models with Base
    Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
    """Run ``SELECT 1`` and log the (password-masked) URL on success."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except Exception as e:
        logger.error("Database connection FAILED: %s", e)
        return False
    masked = engine.url.render_as_string(hide_password=True)
    logger.info("Database connected successfully  |  %s", masked)
    return True
