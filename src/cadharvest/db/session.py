"""
Database Session Management

Provides the engine, session factory and transactional session scope.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, exc, make_url
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.database_echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Pipeline worker threads share the engine
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))


@event.listens_for(engine, "connect")
def receive_connect(dbapi_conn, connection_record):
    logger.debug("database_connection_established")


SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Get database session with automatic commit, rollback and cleanup.

    Usage:
        with get_db_session() as session:
            repo.upsert(session, ...)

    Yields:
        Database session

    Raises:
        Exception: Re-raises any exception after rollback
    """
    session = SessionLocal()
    try:
        logger.debug("database_session_created")
        yield session
        session.commit()
        logger.debug("database_session_committed")
    except exc.SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    except Exception as e:
        session.rollback()
        logger.error(
            "database_session_error",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        session.close()
        logger.debug("database_session_closed")


def create_all_tables():
    """
    Create all database tables defined in models.
    """
    from src.cadharvest.db.base import Base, import_all_models

    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    logger.info("creating_database_tables")
    import_all_models()
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_created")


def close_connections():
    """
    Dispose of the engine's connection pool.
    """
    logger.info("closing_database_connections")
    engine.dispose()
    logger.info("database_connections_closed")
