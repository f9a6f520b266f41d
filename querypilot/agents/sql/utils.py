"""
Attempt workflow utilities
"""

import functools
import time
import uuid

from loguru import logger


def trace_step(step_name: str):
    """Decorator for tracing async workflow step execution."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(state, ctx, *args, **kwargs):
            state = dict(state)
            request_id = state.get("request_id") or str(uuid.uuid4())
            state["request_id"] = request_id
            attempt = state.get("attempt_number")
            start = time.time()
            logger.info(f"[TRACE] step_start: {step_name} | request_id={request_id} | attempt={attempt}")
            try:
                result = await func(state, ctx, *args, **kwargs)
                duration = time.time() - start
                logger.info(
                    f"[TRACE] step_end: {step_name} | request_id={request_id} | attempt={attempt} | "
                    f"duration_ms={int(duration * 1000)}"
                )
                return result
            except Exception as e:
                logger.error(
                    f"[TRACE] step_error: {step_name} | request_id={request_id} | attempt={attempt} | error={e}"
                )
                raise

        return wrapper

    return decorator


def truncate_sql(sql: str, limit: int) -> str:
    if not sql or len(sql) <= limit:
        return sql or ""
    return sql[:limit] + "..."


async def load_schema_snapshot(schema_provider, tenant_id: str):
    """Snapshot for ``tenant_id``, or None when there is no provider or loading fails."""
    if schema_provider is None:
        return None
    try:
        return await schema_provider.get_schema(tenant_id)
    except Exception as e:
        logger.warning(f"Schema snapshot unavailable for tenant '{tenant_id}': {e}")
        return None
