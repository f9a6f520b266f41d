"""
Connection lifecycle management.

``ConnectionManager`` is the only place connections are opened and closed.
Every successful acquire is matched by exactly one effective release, and
``release`` is safe to call with anything a failed or finished attempt may
hold (None, an already released handle, a connection whose close fails).
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Tuple, Union

from loguru import logger
from sqlalchemy import inspect
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from querypilot.config.settings import DatabaseKind
from querypilot.infra.tenants import TenantRegistry
from querypilot.models import ExecutionResult, SchemaSnapshot
from querypilot.utils.errors import DatabaseConnectionError, SQLExecutionError


class Connection(Protocol):
    async def execute(self, sql: str) -> ExecutionResult:
        ...

    async def close(self) -> None:
        ...


class ConnectionProvider(Protocol):
    async def open(self, tenant_id: str) -> Connection:
        ...


class ConnectionHandle:
    """A leased connection plus the bookkeeping needed to release it once."""

    def __init__(self, tenant_id: str, connection: Connection):
        self.tenant_id = tenant_id
        self.connection = connection
        self.released = False

    async def execute(self, sql: str) -> ExecutionResult:
        if self.released:
            raise DatabaseConnectionError("Connection was already released")
        return await self.connection.execute(sql)

    def __repr__(self) -> str:
        state = "released" if self.released else "open"
        return f"ConnectionHandle(tenant={self.tenant_id!r}, {state})"


class ConnectionManager:
    """
    Acquire/release connections with a per-tenant concurrency bound.

    Usage:
        async with manager.lease("clinic_a") as handle:
            result = await handle.execute("SELECT 1;")
    """

    def __init__(self, provider: ConnectionProvider, max_connections_per_tenant: int = 5):
        self.provider = provider
        self.max_connections_per_tenant = max_connections_per_tenant
        self._semaphores: Dict[str, asyncio.Semaphore] = {}
        self.acquired = 0
        self.released = 0

    def _semaphore(self, tenant_id: str) -> asyncio.Semaphore:
        semaphore = self._semaphores.get(tenant_id)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.max_connections_per_tenant)
            self._semaphores[tenant_id] = semaphore
        return semaphore

    @property
    def outstanding(self) -> int:
        return self.acquired - self.released

    async def acquire(self, tenant_id: str) -> ConnectionHandle:
        """
        Open a connection for ``tenant_id``.

        Raises:
            DatabaseConnectionError: the provider could not open a connection
        """
        semaphore = self._semaphore(tenant_id)
        await semaphore.acquire()
        try:
            connection = await self.provider.open(tenant_id)
        except DatabaseConnectionError:
            semaphore.release()
            raise
        except Exception as e:
            semaphore.release()
            logger.error(f"Failed to open connection for tenant '{tenant_id}': {e}")
            raise DatabaseConnectionError(f"Could not connect to the database for tenant '{tenant_id}': {e}") from e
        except BaseException:
            # Cancelled or timed out while opening
            semaphore.release()
            logger.warning(f"Connection open for tenant '{tenant_id}' was interrupted")
            raise

        self.acquired += 1
        logger.debug(f"Acquired connection for tenant '{tenant_id}' (outstanding={self.outstanding})")
        return ConnectionHandle(tenant_id, connection)

    async def release(self, handle: Optional[ConnectionHandle]) -> None:
        """Close a leased connection. No-op for None or an already released handle."""
        if handle is None or handle.released:
            return
        handle.released = True
        self.released += 1
        try:
            await handle.connection.close()
        except Exception as e:
            logger.warning(f"Error closing connection for tenant '{handle.tenant_id}': {e}")
        finally:
            self._semaphore(handle.tenant_id).release()
            logger.debug(f"Released connection for tenant '{handle.tenant_id}' (outstanding={self.outstanding})")

    @asynccontextmanager
    async def lease(self, tenant_id: str) -> AsyncIterator[ConnectionHandle]:
        handle = None
        try:
            handle = await self.acquire(tenant_id)
            yield handle
        finally:
            await self.release(handle)


# ============================================================================
# SQLAlchemy implementation
# ============================================================================


def describe_dbapi_error(error: DBAPIError) -> Tuple[str, Optional[Union[int, str]]]:
    """
    Pull the driver's own message and error code out of a wrapped DBAPI error.

    MySQL drivers report ``(code, message)`` args; PostgreSQL drivers expose a
    SQLSTATE; SQLite has neither.
    """
    orig = error.orig
    args = getattr(orig, "args", ()) or ()
    if len(args) >= 2 and isinstance(args[0], int):
        return str(args[1]), args[0]
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return str(orig) if orig is not None else str(error), code


class SQLAlchemyConnection:
    """Adapts an ``AsyncConnection`` to the pipeline's connection interface."""

    def __init__(self, connection: AsyncConnection, kind: DatabaseKind):
        self._connection = connection
        self.kind = kind

    async def execute(self, sql: str) -> ExecutionResult:
        start = time.perf_counter()
        try:
            # no_parameters: '%' and ':name' inside literals are not bind markers
            result = await self._connection.exec_driver_sql(sql, execution_options={"no_parameters": True})
            if result.returns_rows:
                columns = list(result.keys())
                rows = [dict(row._mapping) for row in result.fetchall()]
            else:
                columns, rows = [], []
        except DBAPIError as e:
            await self._reset()
            message, code = describe_dbapi_error(e)
            if e.connection_invalidated:
                raise DatabaseConnectionError(message, code) from e
            raise SQLExecutionError(message, code) from e
        except SQLAlchemyError as e:
            await self._reset()
            raise SQLExecutionError(str(e)) from e

        duration_ms = (time.perf_counter() - start) * 1000
        return ExecutionResult(rows=rows, columns=columns, duration_ms=duration_ms)

    async def _reset(self) -> None:
        # A failed statement leaves PostgreSQL's transaction aborted
        try:
            await self._connection.rollback()
        except Exception as e:
            logger.warning(f"Rollback after failed statement did not succeed: {e}")

    async def inspect_schema(self) -> SchemaSnapshot:
        def _inspect(sync_connection) -> Dict[str, Any]:
            inspector = inspect(sync_connection)
            return {
                table: [column["name"] for column in inspector.get_columns(table)]
                for table in inspector.get_table_names()
            }

        mapping = await self._connection.run_sync(_inspect)
        return SchemaSnapshot.from_mapping(mapping)

    async def close(self) -> None:
        await self._connection.close()


class SQLAlchemyConnectionProvider:
    """Opens connections from one cached ``AsyncEngine`` per tenant."""

    def __init__(self, registry: TenantRegistry):
        self.registry = registry
        self._engines: Dict[str, AsyncEngine] = {}

    def engine_for(self, tenant_id: str) -> AsyncEngine:
        engine = self._engines.get(tenant_id)
        if engine is None:
            config = self.registry.get_config(tenant_id)
            logger.info(f"Creating engine for tenant '{tenant_id}': {config.describe()}")
            engine = create_async_engine(config.get_connection_url(), **config.engine_options())
            self._engines[tenant_id] = engine
        return engine

    def kind_for(self, tenant_id: str) -> DatabaseKind:
        return self.registry.get_config(tenant_id).kind

    async def open(self, tenant_id: str) -> SQLAlchemyConnection:
        engine = self.engine_for(tenant_id)
        try:
            connection = await engine.connect()
        except DBAPIError as e:
            message, code = describe_dbapi_error(e)
            raise DatabaseConnectionError(message, code) from e
        except (SQLAlchemyError, OSError) as e:
            raise DatabaseConnectionError(str(e)) from e
        return SQLAlchemyConnection(connection, self.kind_for(tenant_id))

    async def dispose(self) -> None:
        for tenant_id, engine in list(self._engines.items()):
            await engine.dispose()
            logger.debug(f"Disposed engine for tenant '{tenant_id}'")
        self._engines.clear()
