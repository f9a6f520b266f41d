"""
SQL execution node
"""

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.correction import fix_syntax, is_syntax_error, record_fix
from querypilot.agents.sql.progress import ProgressStage
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import trace_step
from querypilot.infra.connections import ConnectionHandle
from querypilot.models import AttemptOutcome, AttemptPhase, ExecutionResult
from querypilot.utils.errors import DatabaseConnectionError, SQLExecutionError


async def _execute_with_recovery(handle: ConnectionHandle, sql: str, ctx: AttemptContext):
    """
    Run ``sql``; after a syntax-style error, retry once with balanced
    parentheses on the same connection.

    Returns the result and the statement that produced it.
    """
    try:
        return await handle.execute(sql), sql
    except DatabaseConnectionError:
        raise
    except SQLExecutionError as e:
        if not ctx.syntax_autofix_enabled or not is_syntax_error(e.message):
            raise
        fixed = fix_syntax(sql)
        if not fixed or fixed == sql:
            raise
        logger.info(f"Retrying with repaired syntax: {fixed[:200]}")
        try:
            result = await handle.execute(fixed)
        except SQLExecutionError as retry_error:
            logger.warning(f"Syntax repair did not help: {retry_error.message}")
            raise e from retry_error
        record_fix("syntax")
        return result, fixed


@trace_step("execute_sql")
async def execute_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    """
    Execute the attempt's statement on a leased connection.

    The connection is released before this node returns, whatever happens.
    """
    state = dict(state)
    state["phase"] = AttemptPhase.EXECUTING
    sql = state["sql"]
    tenant_id = state["tenant_id"]

    try:
        async with ctx.connections.lease(tenant_id) as handle:
            result, executed_sql = await _execute_with_recovery(handle, sql, ctx)
    except DatabaseConnectionError as e:
        logger.error(f"Connection error on attempt {state['attempt_number']}: {e.message}")
        state["outcome"] = AttemptOutcome.CONNECTION_ERROR
        state["error_message"] = e.message
        state["error_code"] = e.code
    except SQLExecutionError as e:
        logger.warning(f"SQL execution failed on attempt {state['attempt_number']}: {e.message}")
        state["outcome"] = AttemptOutcome.EXECUTION_ERROR
        state["error_message"] = e.message
        state["error_code"] = e.code
    except Exception as e:
        logger.exception(f"Unexpected error executing SQL on attempt {state['attempt_number']}")
        state["outcome"] = AttemptOutcome.EXECUTION_ERROR
        state["error_message"] = str(e)
        state["error_code"] = None
    else:
        state["sql"] = executed_sql
        state["execution"] = result or ExecutionResult()
        state["outcome"] = AttemptOutcome.ZERO_ROWS if state["execution"].is_empty else AttemptOutcome.SUCCESS
        logger.info(
            f"Attempt {state['attempt_number']} returned {state['execution'].row_count} row(s) "
            f"in {state['execution'].duration_ms:.1f}ms"
        )

    await ctx.notifier.notify(
        ProgressStage.EXECUTION_COMPLETE,
        state["request_id"],
        state["attempt_number"],
        outcome=state["outcome"].value,
        row_count=state["execution"].row_count if state.get("execution") else 0,
    )
    return state
