import asyncio
import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the async engine and the session factory for one process"""

    def __init__(self, settings: Settings):
        self.settings = settings

        engine_options = {
            "echo": settings.sql_echo,
            "pool_pre_ping": True,
        }
        if not settings.is_sqlite:
            engine_options.update(
                pool_size=5,
                max_overflow=10,
                pool_timeout=20,
                pool_recycle=300,
                connect_args={"server_settings": {"application_name": "tasktracker"}},
            )

        self.engine = create_async_engine(settings.database_url, **engine_options)
        if settings.is_sqlite:
            # SQLite only honours ON DELETE CASCADE with this pragma
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init(self) -> None:
        """Create all tables, retrying while the database comes up"""
        attempts = max(1, self.settings.db_connect_retries)

        for attempt in range(attempts):
            try:
                logger.info("Database connection attempt %d/%d", attempt + 1, attempts)
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                logger.info("Database tables created")
                return
            except Exception as e:
                logger.warning("Database connection attempt %d failed: %s", attempt + 1, e)
                if attempt < attempts - 1:
                    logger.info("Retrying in %s seconds", self.settings.db_retry_delay)
                    await asyncio.sleep(self.settings.db_retry_delay)
                else:
                    logger.error("All database connection attempts failed")
                    raise

    async def close(self) -> None:
        """Close database connections"""
        await self.engine.dispose()
        logger.info("Database connections closed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session for the current request"""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        yield session
