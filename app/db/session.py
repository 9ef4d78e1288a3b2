"""
Database engine and sessions.

One async engine per process. API requests get a session per request
(app.db.deps.get_db); Celery tasks open their own from AsyncSessionLocal
and dispose the engine when their event loop ends.

The same module drives PostgreSQL (asyncpg) in deployments and SQLite
(aiosqlite) in tests.

Learning Resources:
- SQLAlchemy Engine: https://docs.sqlalchemy.org/en/20/core/engines.html
- Async Sessions: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


# ================================
# Database Engine Configuration
# ================================

def get_engine_config() -> dict[str, Any]:
    """
    Configure the database engine based on environment.

    Pool Types:
    -----------
    1. AsyncAdaptedQueuePool (development / production):
       - Maintains pool_size connections open
       - Can create max_overflow extra connections if needed
    2. NullPool (staging / test):
       - New connection per checkout, closed immediately after use

    Our Configuration:
    ------------------
    - pool_size=20, max_overflow=10 (from settings)
    - pool_pre_ping=True: Test connection before using (detect dead connections)
    - pool_recycle=3600: Recycle connections after 1 hour

    The asyncpg-only `server_settings` connect arg is skipped for non-Postgres
    URLs so the same module works with SQLite in tests.
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }

    if settings.uses_postgres:
        config["connect_args"] = {
            "server_settings": {
                "application_name": settings.APP_NAME,
            }
        }

    if settings.uses_postgres and (settings.is_development or settings.is_production):
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": 30,
            "pool_recycle": 7200 if settings.is_production else 3600,
        })
    else:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )
        config["poolclass"] = NullPool

    return config


def create_engine() -> AsyncEngine:
    """
    Create the async database engine.

    Engine creation is lazy: no connection is opened until the first query,
    so importing this module never touches the network.
    """
    engine_config = get_engine_config()

    engine = create_async_engine(
        settings.DATABASE_URL,
        **engine_config
    )

    logger.info(
        "database_engine_created",
        driver=engine.dialect.driver,
        pool_size=engine_config.get("pool_size", "NullPool"),
    )

    return engine


# ================================
# Global Engine Instance
# ================================
engine: AsyncEngine = create_engine()


# ================================
# Session Factory
# ================================
# expire_on_commit=False: objects stay usable after commit. The record store
# commits after every write, and the orchestrator keeps using the returned rows.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single request, rolled back if the request fails.

    The record store commits its own writes, so nothing is committed here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(
                "database_session_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            await session.rollback()
            raise


# ================================
# Database Initialization
# ================================

async def init_db() -> None:
    """
    Initialize the database.

    1. Verify database connection
    2. Create tables when DB_CREATE_TABLES is set (local development)

    Production schemas are managed by Alembic migrations.

    Called from: app.main.lifespan() startup event
    """
    logger.info("initializing_database")

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("database_connection_successful")

        if settings.DB_CREATE_TABLES and not settings.is_production:
            from app.db.base import Base
            import app.models  # noqa: F401  (register tables)

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("database_tables_created")

    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def close_db() -> None:
    """Dispose the engine. Called from the lifespan shutdown."""
    logger.info("closing_database_connections")
    await engine.dispose()
    logger.info("database_connections_closed")


# ================================
# Database Health Check
# ================================

async def check_db_health() -> bool:
    """SELECT 1 against the engine. Never raises."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
