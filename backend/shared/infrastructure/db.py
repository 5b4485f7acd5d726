"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns with a synchronous engine.
"""

import os
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.orm import Session, sessionmaker

from shared.config.settings import DATABASE_URL
from shared.utils.exceptions import ConcurrentUpdateError, DependencyError


def _calculate_pool_size() -> int:
    """(2 * CPU cores) + 1, capped at 20."""
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": _calculate_pool_size(),
        "max_overflow": 15,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/orders/{order_id}")
        def get_order(order_id: int, db: Session = Depends(get_db)):
            ...

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session, operation: str = "commit", **log_context) -> None:
    """
    Commit with automatic rollback on failure.

    Store failures are translated into the error taxonomy:
    an optimistic version conflict becomes ConcurrentUpdateError (409),
    anything else from SQLAlchemy becomes DependencyError (503).
    """
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentUpdateError(
            log_context.pop("entity", "Order"),
            log_context.pop("entity_id", None),
            operation=operation,
            error=str(exc),
            **log_context,
        ) from exc
    except OperationalError as exc:
        db.rollback()
        raise DependencyError(operation, retry_after=1, error=str(exc), **log_context) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise DependencyError(operation, error=str(exc), **log_context) from exc
