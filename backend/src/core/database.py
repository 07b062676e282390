"""
Database configuration and session management for PostgreSQL.

Every request borrows one pooled connection through ``get_db`` and holds it
for all of its statements; the session is closed on every exit path.
"""

from typing import AsyncGenerator
from urllib.parse import parse_qs, urlparse, urlunparse

from sqlalchemy import create_engine, event, pool, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from backend.src.core.config import settings
from backend.src.core.logging import get_logger

logger = get_logger(__name__)

# Base class for ORM models
Base = declarative_base()

# Synchronous engine for migrations
sync_engine = create_engine(
    settings.DATABASE_URL.replace("postgresql://", "postgresql+psycopg2://"),
    poolclass=pool.QueuePool,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=settings.DEBUG,
)

# asyncpg does not understand libpq's sslmode, translate it
parsed = urlparse(settings.DATABASE_URL)
query_params = parse_qs(parsed.query)

connect_args = {}
if "sslmode" in query_params:
    sslmode = query_params["sslmode"][0]
    if sslmode in ("require", "prefer", "allow"):
        connect_args["ssl"] = True
    elif sslmode == "disable":
        connect_args["ssl"] = False

clean_url = urlunparse(parsed._replace(query="")).replace("postgresql://", "postgresql+asyncpg://")

# Asynchronous engine for API operations
async_engine = create_async_engine(
    clean_url,
    poolclass=pool.AsyncAdaptedQueuePool,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=settings.DEBUG,
    connect_args=connect_args,
)

# Session maker
AsyncSessionLocal = async_sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@event.listens_for(sync_engine, "connect")
def set_statement_timeout(dbapi_conn, connection_record):
    """Bound how long a single statement may run."""
    cursor = dbapi_conn.cursor()
    cursor.execute(f"SET statement_timeout = {int(settings.DB_STATEMENT_TIMEOUT_MS)}")
    cursor.close()


async def check_database_connection() -> bool:
    """
    Verify that a pooled connection can be acquired and used.

    Returns:
        True if the database answered
    """
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "Database connection check failed",
            extra={"error": str(e)},
            exc_info=True,
        )
        return False


async def close_db() -> None:
    """Close database connections."""
    await async_engine.dispose()
