import logging
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def _serialize_sqlite_writers(engine) -> None:
    """
    Start every SQLite transaction with BEGIN IMMEDIATE so concurrent writers
    queue on the busy timeout instead of deadlocking on a lock upgrade.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str, **kwargs):
    """Create an async engine; SQLite URLs get a connect timeout so concurrent writers wait instead of failing."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
        engine = create_async_engine(url, **kwargs)
        _serialize_sqlite_writers(engine)
        return engine
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("pool_recycle", 3600)
    return create_async_engine(url, **kwargs)


def make_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


SQLALCHEMY_DATABASE_URL = settings.sqlalchemy_database_url

# Log the connection string (mask password for safety)
masked_url = SQLALCHEMY_DATABASE_URL.replace(
    settings.db_password.get_secret_value(), "*****"
) if settings.db_password.get_secret_value() else SQLALCHEMY_DATABASE_URL
logger.info(f"SQLAlchemy DB URL: {masked_url}")

engine = make_engine(SQLALCHEMY_DATABASE_URL)

AsyncSessionLocal = make_session_factory(engine)


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker):
    """One session per unit of work: commit on success, roll back on error, always close."""
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        logger.debug("Database session rolled back due to error")
        raise
    finally:
        await session.close()

