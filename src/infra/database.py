"""
SQL database connection with SQLAlchemy ORM
"""

from typing import Optional
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine

from src.infra.config.settings import get_settings
from src.infra.models import Base
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()


class DatabaseManager:
    """SQLAlchemy async database manager"""

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    def _safe_url(self) -> str:
        """Connection URL with the password masked, for logging"""
        return make_url(self._database_url).render_as_string(hide_password=True)

    def _engine_options(self) -> dict:
        if self._database_url.startswith("sqlite"):
            return {}
        return {
            "pool_pre_ping": True,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": 3600,
        }

    async def connect(self) -> AsyncEngine:
        """Initialize database engine and session factory, creating tables if needed"""
        if self._engine is not None:
            return self._engine

        try:
            self._engine = create_async_engine(
                self._database_url,
                echo=settings.DB_LOGGING_ENABLED,
                **self._engine_options()
            )

            # Create session factory
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False
            )

            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)

            logger.info(
                "Connected to database with SQLAlchemy successfully",
                extra={"database_url": self._safe_url()}
            )
            return self._engine

        except Exception as e:
            logger.error(
                "Failed to connect to database",
                extra={
                    "database_url": self._safe_url(),
                    "error": str(e)
                }
            )
            raise

    async def ping(self) -> bool:
        if self._engine is None:
            return False
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def close(self):
        """Close database engine"""
        if self._engine is not None:
            try:
                await self._engine.dispose()
                logger.info("Database engine closed")
            except Exception as e:
                logger.error(f"Error closing database engine: {e}")
            finally:
                self._engine = None
                self._session_factory = None

    def get_engine(self) -> Optional[AsyncEngine]:
        """Get the current engine"""
        return self._engine

    def get_session_factory(self) -> Optional[async_sessionmaker]:
        """Get the session factory"""
        return self._session_factory

