# insegnami/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import text
import logging

from .config import Settings

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the API engine; pool tuning only applies to server databases"""
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=False)

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=60,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=(settings.environment == 'development'),
        connect_args={
            "command_timeout": 60,
            "server_settings": {
                "jit": "off",
                "application_name": "insegnami_api",
                "idle_in_transaction_session_timeout": "60s",
                "lock_timeout": "30s",  # bounds waits on class capacity row locks
            }
        }
    )


class Database:
    """Engine plus session factory, owned by the application lifespan."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(build_engine(settings))

    async def health_check(self) -> bool:
        """Fast health check"""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def dispose(self):
        await self.engine.dispose()
        logger.info("Database connections closed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
