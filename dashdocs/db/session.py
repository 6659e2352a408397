"""
DashDocs Database Session Management.

Provides the single entry point for database initialisation plus the
transaction scope every engine operation runs in.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from dashdocs.db.base import Base, create_db_engine
from dashdocs.engine.config import DatabaseConfig
from dashdocs.engine.errors import ConcurrencyConflictError, DependencyUnavailableError

logger = logging.getLogger("dashdocs.db.session")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def init_db(config: DatabaseConfig, create_tables: Optional[bool] = None) -> sessionmaker:
    """
    Single entry point for database initialisation.

    1. Creates the engine from DatabaseConfig.
    2. Optionally runs Base.metadata.create_all() (dev / tests / ``dashdocs init-db``).
    3. Stores the session factory as the module-level singleton.

    Returns:
        A sessionmaker bound to the engine. Pass it to DocumentService.
    """
    global _engine, _session_factory

    engine = create_db_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=config.pool_pre_ping,
    )

    if create_tables if create_tables is not None else config.create_tables:
        Base.metadata.create_all(engine)
        logger.info("Created document store tables")

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return _session_factory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _engine


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for one unit of work with auto-commit/rollback.

    Store failures are translated into the engine's error taxonomy:
    StaleDataError → ConcurrencyConflictError, connection-level DBAPI
    errors → DependencyUnavailableError. Anything raised by the body
    (validation, cancellation, ...) rolls back and propagates unchanged.

    Usage:
        with session_scope(factory) as session:
            repo = DocumentRepository(session)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except StaleDataError as e:
        session.rollback()
        raise ConcurrencyConflictError(
            "Document was modified by a concurrent operation",
            cause=str(e),
        ) from e
    except DBAPIError as e:
        session.rollback()
        if e.connection_invalidated or isinstance(e, OperationalError):
            raise DependencyUnavailableError(
                "Document store unavailable",
                dependency="database",
                cause=str(e),
            ) from e
        raise
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


def ping(engine: Engine) -> bool:
    """Check if the engine can connect."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.debug(f"Database ping failed: {e}")
        return False


def close_db() -> None:
    """Dispose the engine. Used during shutdown and between tests."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
