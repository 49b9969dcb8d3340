"""Async database service with SQLModel and SQLAlchemy 2.0."""

import time
from typing import Dict, Iterable
from sqlmodel import SQLModel, select
from sqlalchemy import delete as sa_delete
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager

from core.config import Settings
from core.logging import get_logger
from models.storage import ActorStorageEntry

logger = get_logger(__name__)


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            self.engine = create_async_engine(
                self.settings.database_url,
                echo=self.settings.database_echo,
                future=True
            )

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", url=self.settings.database_url)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.async_session = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ============================================================================
    # Actor Storage (one row per key)
    # ============================================================================

    async def load_actor_entries(self, namespace: str, partition: str) -> Dict[str, str]:
        """Load every serialized value stored for one actor partition."""
        async with self.get_session() as session:
            stmt = select(ActorStorageEntry).where(
                ActorStorageEntry.namespace == namespace,
                ActorStorageEntry.partition == partition,
            )
            result = await session.execute(stmt)
            return {entry.key: entry.value for entry in result.scalars().all()}

    async def put_actor_entry(self, namespace: str, partition: str, key: str, value: str) -> None:
        """Insert or replace a single key."""
        async with self.get_session() as session:
            stmt = select(ActorStorageEntry).where(
                ActorStorageEntry.namespace == namespace,
                ActorStorageEntry.partition == partition,
                ActorStorageEntry.key == key,
            )
            result = await session.execute(stmt)
            existing = result.scalar_one_or_none()

            if existing:
                existing.value = value
                existing.updated_at = time.time()
            else:
                session.add(ActorStorageEntry(
                    namespace=namespace,
                    partition=partition,
                    key=key,
                    value=value,
                ))

            await session.commit()

    async def delete_actor_entries(self, namespace: str, partition: str, keys: Iterable[str]) -> int:
        """Delete the given keys. Returns the number of rows removed."""
        keys = list(keys)
        if not keys:
            return 0
        async with self.get_session() as session:
            stmt = sa_delete(ActorStorageEntry).where(
                ActorStorageEntry.namespace == namespace,
                ActorStorageEntry.partition == partition,
                ActorStorageEntry.key.in_(keys),
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0
