"""
Attempt workflow - graph construction
"""

from langgraph.graph import END, StateGraph
from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.nodes import (
    close_attempt_node,
    execute_node,
    extract_sql_node,
    finalize_node,
    generate_sql_node,
    retry_node,
    validate_sql_node,
)
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.models import AttemptOutcome

# generate, extract, validate, execute, close_attempt, retry
STEPS_PER_ATTEMPT = 6


def _route_after_extract(state: AttemptGraphState) -> str:
    if state.get("outcome") == AttemptOutcome.EXTRACTION_FAILURE:
        return "close_attempt"
    return "validate_sql"


def route_after_attempt(state: AttemptGraphState, ctx: AttemptContext) -> str:
    """Decide between another attempt and finishing the request."""
    outcome = state["outcome"]
    if outcome == AttemptOutcome.SUCCESS:
        return "finalize"

    if outcome == AttemptOutcome.ZERO_ROWS and not ctx.retry_on_zero_rows:
        return "finalize"

    if state["attempt_number"] < state["max_attempts"]:
        logger.info(f"Attempt {state['attempt_number']} ended with {outcome.value}, routing to retry")
        return "retry"

    logger.warning(f"Max attempts ({state['max_attempts']}) reached, last outcome {outcome.value}")
    return "finalize"


def _bind(node, ctx: AttemptContext):
    async def _run(state: AttemptGraphState):
        return await node(state, ctx)

    _run.__name__ = node.__name__
    return _run


def build_attempt_workflow(ctx: AttemptContext):
    """
    Build the attempt workflow graph with context bound to nodes.
    """
    g = StateGraph(AttemptGraphState)

    g.add_node("generate_sql", _bind(generate_sql_node, ctx))
    g.add_node("extract_sql", _bind(extract_sql_node, ctx))
    g.add_node("validate_sql", _bind(validate_sql_node, ctx))
    g.add_node("execute", _bind(execute_node, ctx))
    g.add_node("close_attempt", _bind(close_attempt_node, ctx))
    g.add_node("retry", _bind(retry_node, ctx))
    g.add_node("finalize", _bind(finalize_node, ctx))

    g.set_entry_point("generate_sql")
    g.add_edge("generate_sql", "extract_sql")
    g.add_conditional_edges(
        "extract_sql",
        _route_after_extract,
        {
            "validate_sql": "validate_sql",
            "close_attempt": "close_attempt",
        },
    )
    g.add_edge("validate_sql", "execute")
    g.add_edge("execute", "close_attempt")
    g.add_conditional_edges(
        "close_attempt",
        lambda s: route_after_attempt(s, ctx),
        {
            "retry": "retry",
            "finalize": "finalize",
        },
    )
    g.add_edge("retry", "generate_sql")
    g.add_edge("finalize", END)
    return g.compile()
