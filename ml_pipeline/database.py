"""Database configuration and connection management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ml_pipeline.config import settings
from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Database connection manager with SQLite."""

    def __init__(self, database_url: Optional[str] = None):
        """
        Args:
            database_url: SQLAlchemy async URL (default: settings.database_url)
        """
        self._database_url = database_url
        self._connected: bool = False
        self._engine = None
        self._session_factory = None

    @property
    def database_url(self) -> str:
        return self._database_url or settings.database_url

    async def connect(self) -> None:
        """Establish database connection and initialize tables."""
        if self._connected:
            return

        url = self.database_url
        logger.info("Connecting to database...")
        logger.info(f"Database URL: {url}")

        if not url.startswith("sqlite+aiosqlite:///"):
            error_msg = (
                f"Invalid database URL format. Expected 'sqlite+aiosqlite:///' but got: {url}\n"
                f"Please set DATABASE_URL environment variable or update config.py"
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

        try:
            self._engine = create_async_engine(url, echo=False, future=True)
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            from ml_pipeline.models import Base

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            table_names = sorted(Base.metadata.tables.keys())
            logger.info(f"Database tables initialized successfully: {', '.join(table_names)}")
        except Exception as e:
            logger.error(f"Database connection failed: {str(e)}")
            if self._engine is not None:
                await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            raise

        self._connected = True
        logger.info(f"✓ Database connected successfully: {url}")

    async def disconnect(self) -> None:
        """Close database connection and cleanup all sessions."""
        if self._connected:
            try:
                logger.info("Disconnecting from database...")
                if self._engine:
                    await self._engine.dispose()
                logger.info("Database disconnected successfully")
            except Exception as e:
                logger.error(f"Error during database disconnection: {str(e)}")
            finally:
                self._connected = False
                self._engine = None
                self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Transactional session scope.

        Commits when the block exits normally, rolls back on any exception.

        Yields:
            AsyncSession: Database session
        """
        if not self._session_factory:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get database session.

        Yields:
            AsyncSession: Database session
        """
        async with self.session() as session:
            yield session

    async def ping(self) -> bool:
        """Run a trivial query; True when the database answers."""
        if not self._connected:
            return False
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {str(e)}")
            return False

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._connected


# Global database instance
db = Database()
