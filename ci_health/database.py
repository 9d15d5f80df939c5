"""
Database engine and session management.

Provides the SQLAlchemy engine, the session factory, the FastAPI session
dependency and a context manager for scheduled tasks and scripts.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from ci_health.config import get_settings

settings = get_settings()


def _engine_options(database_url: str) -> dict:
    """Pool options for the configured backend."""
    if database_url.startswith("sqlite"):
        # Report builds run in FastAPI's threadpool
        return {'connect_args': {"check_same_thread": False}}
    return {
        'pool_size': 10,
        'max_overflow': 20,
        'pool_pre_ping': True,
        'pool_recycle': 3600,
    }


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    prefix = "sqlite:///"
    if not database_url.startswith(prefix):
        return
    path = database_url[len(prefix):]
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_directory(settings.DATABASE_URL)

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    The session is rolled back if the request handler raises and is always
    closed afterwards. Report endpoints are read-only, so nothing is
    committed here; write endpoints commit explicitly.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context():
    """
    Transactional session for scheduled tasks and scripts.

    Commits on success and rolls back on error.

    Usage:
        with get_db_context() as db:
            import_job_runs(db, payload)

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """
    Create all tables defined in the models.

    Note: In production, use Alembic migrations instead.
    """
    from ci_health.models.db_models import Base
    Base.metadata.create_all(bind=engine)
