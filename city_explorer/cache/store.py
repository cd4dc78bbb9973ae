"""
Async row store over the SQLAlchemy resource tables.

Each operation runs in a worker thread with its own session, so callers can
await many lookups concurrently against the shared engine pool.
"""
import asyncio
import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from city_explorer import crud
from city_explorer.db import create_db_engine, init_db, make_session_factory
from .core import CachedRow, CacheKey, ResourcePolicy
from .errors import KeyKindMismatch, StoreReadError, StoreWriteError

logger = logging.getLogger("cache.store")


def _check_key(policy: ResourcePolicy, key: CacheKey) -> None:
    if key.kind is not policy.key_kind:
        raise KeyKindMismatch(
            f"{policy.resource_type} is keyed by {policy.key_kind.value}, "
            f"got {key.kind.value}"
        )


class RowStore:
    """
    Persistence for cached rows, one table per resource type.

    Lifecycle:
        store = RowStore("sqlite:///./city_explorer.db")
        await store.open()
        ...
        await store.close()

    or `async with RowStore(url) as store: ...`
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    async def open(self) -> "RowStore":
        """Create the engine and make sure all tables exist."""
        if self._engine is None:
            engine = create_db_engine(self.database_url, echo=self._echo)
            await asyncio.to_thread(init_db, engine)
            self._engine = engine
            self._session_factory = make_session_factory(engine)
            logger.info("Row store opened")
        return self

    async def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        if self._engine is not None:
            engine = self._engine
            self._engine = None
            self._session_factory = None
            await asyncio.to_thread(engine.dispose)
            logger.info("Row store closed")

    async def __aenter__(self) -> "RowStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def _sessions(self) -> sessionmaker:
        if self._session_factory is None:
            raise RuntimeError("RowStore is not open")
        return self._session_factory

    async def find_by_key(self, policy: ResourcePolicy, key: CacheKey) -> List[CachedRow]:
        """
        Get all rows for a key, ordered by id.

        Raises:
            StoreReadError: If the query fails
        """
        _check_key(policy, key)
        session_factory = self._sessions()

        def run() -> List[CachedRow]:
            with session_factory() as db:
                return crud.find_rows(db, policy, key.value)

        try:
            return await asyncio.to_thread(run)
        except SQLAlchemyError as e:
            logger.error(f"Lookup failed for {policy.resource_type} [{key}]: {e}")
            raise StoreReadError(f"Lookup failed for {policy.resource_type}: {e}") from e

    async def insert(
        self,
        policy: ResourcePolicy,
        fields: Mapping[str, Any],
        key: CacheKey,
        created_at: int,
    ) -> CachedRow:
        """
        Persist one normalized record under a key.

        Raises:
            StoreWriteError: On constraint violation, unregistered fields,
                or connectivity failure
        """
        _check_key(policy, key)
        session_factory = self._sessions()

        def run() -> CachedRow:
            with session_factory() as db:
                return crud.insert_row(db, policy, fields, key.value, created_at)

        try:
            return await asyncio.to_thread(run)
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Insert failed for {policy.resource_type} [{key}]: {e}")
            raise StoreWriteError(f"Insert failed for {policy.resource_type}: {e}") from e

    async def delete_by_key(self, policy: ResourcePolicy, key: CacheKey) -> int:
        """
        Delete all rows for a key. Deleting an absent key is a no-op.

        Returns:
            Number of rows removed

        Raises:
            StoreWriteError: If the delete fails
        """
        _check_key(policy, key)
        session_factory = self._sessions()

        def run() -> int:
            with session_factory() as db:
                return crud.delete_rows(db, policy, key.value)

        try:
            deleted = await asyncio.to_thread(run)
        except SQLAlchemyError as e:
            logger.error(f"Delete failed for {policy.resource_type} [{key}]: {e}")
            raise StoreWriteError(f"Delete failed for {policy.resource_type}: {e}") from e

        if deleted:
            logger.debug(f"Deleted {deleted} {policy.resource_type} rows for {key}")
        return deleted
