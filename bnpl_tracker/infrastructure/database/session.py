"""Async database session management for the local store"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bnpl_tracker.domain.exceptions import StorageError

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Owns the async engine; every transaction() commits or rolls back as a unit"""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(database_url, pool_pre_ping=True)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Rows are mapped to entities after commit
        )

    @asynccontextmanager
    async def transaction(self, operation: str = "unknown") -> AsyncGenerator[AsyncSession, None]:
        """Session committed on exit, rolled back and mapped to StorageError on failure"""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise StorageError("Integrity constraint violated", operation) from e
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise StorageError("Connection or operational error", operation) from e
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise StorageError("Database driver error", operation) from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise StorageError("Database operation failed", operation) from e
        finally:
            await session.close()

    async def dispose(self) -> None:
        await self.engine.dispose()
