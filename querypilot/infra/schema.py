"""
Schema snapshot provider with a per-tenant TTL cache
"""

import asyncio
import time
from typing import Dict, Optional, Protocol, Tuple

from loguru import logger

from querypilot.infra.connections import ConnectionManager
from querypilot.models import SchemaSnapshot


class SchemaProvider(Protocol):
    async def get_schema(self, tenant_id: str) -> SchemaSnapshot:
        ...


class SQLAlchemySchemaProvider:
    """
    Loads table/column names by SQLAlchemy inspection over a leased connection.

    Snapshots are cached for ``ttl_seconds``; concurrent misses for the same
    tenant share one inspection.
    """

    def __init__(self, connections: ConnectionManager, ttl_seconds: float = 300.0):
        self.connections = connections
        self.ttl_seconds = ttl_seconds
        self._cache: Dict[str, Tuple[float, SchemaSnapshot]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _cached(self, tenant_id: str) -> Optional[SchemaSnapshot]:
        entry = self._cache.get(tenant_id)
        if entry and time.monotonic() - entry[0] < self.ttl_seconds:
            return entry[1]
        return None

    async def get_schema(self, tenant_id: str) -> SchemaSnapshot:
        snapshot = self._cached(tenant_id)
        if snapshot is not None:
            return snapshot

        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            snapshot = self._cached(tenant_id)
            if snapshot is not None:
                return snapshot

            async with self.connections.lease(tenant_id) as handle:
                snapshot = await handle.connection.inspect_schema()

            self._cache[tenant_id] = (time.monotonic(), snapshot)
            logger.info(f"Loaded schema for tenant '{tenant_id}': {len(snapshot.tables)} tables")
            return snapshot

    def invalidate(self, tenant_id: Optional[str] = None) -> None:
        if tenant_id is None:
            self._cache.clear()
        else:
            self._cache.pop(tenant_id, None)
