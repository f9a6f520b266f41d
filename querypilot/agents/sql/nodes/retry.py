"""
Retry node - turns the closed attempt into feedback for the next generation
"""

import time
from typing import Optional

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.progress import ProgressStage
from querypilot.agents.sql.state import PER_ATTEMPT_KEYS, AttemptGraphState
from querypilot.agents.sql.utils import trace_step, truncate_sql
from querypilot.models import Attempt, AttemptOutcome


def build_feedback(attempt: Attempt, max_sql_length: int = 500) -> str:
    """
    Plain-text feedback describing how ``attempt`` went wrong.

    Example:
        >>> build_feedback(Attempt(1, "SELECT x FROM t;", AttemptOutcome.ZERO_ROWS))
        'Attempt 1 returned zero records. The query may have incorrect conditions, wrong table selection, or overly restrictive filters. Previous SQL: SELECT x FROM t;'
    """
    n = attempt.attempt_number
    if attempt.outcome == AttemptOutcome.ZERO_ROWS:
        parts = [
            f"Attempt {n} returned zero records. The query may have incorrect conditions, "
            f"wrong table selection, or overly restrictive filters."
        ]
    elif attempt.outcome == AttemptOutcome.CONNECTION_ERROR:
        parts = [f"Attempt {n} could not reach the database: {attempt.error_message}"]
    elif attempt.outcome == AttemptOutcome.EXTRACTION_FAILURE:
        parts = [f"Attempt {n} did not produce a usable SQL statement."]
    else:
        parts = [f"SQL execution failed on attempt {n}: {attempt.error_message}"]

    suggestion: Optional[str] = attempt.diagnosis.human_suggestion if attempt.diagnosis else None
    if suggestion:
        parts.append(f"Suggestion: {suggestion}")
    if attempt.generated_sql:
        parts.append(f"Previous SQL: {truncate_sql(attempt.generated_sql, max_sql_length)}")
    return " ".join(parts)


@trace_step("retry")
async def retry_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    state = dict(state)
    last = state["attempts"][-1]
    feedback = build_feedback(last, ctx.max_sql_history_length)
    state["feedback"] = list(state.get("feedback") or []) + [feedback]

    logger.info(f"Retrying after attempt {last.attempt_number} ({last.outcome.value})")
    await ctx.notifier.notify(
        ProgressStage.RETRY_TRIGGERED,
        state["request_id"],
        last.attempt_number,
        outcome=last.outcome.value,
        feedback=feedback,
    )

    for key in PER_ATTEMPT_KEYS:
        state[key] = None
    state["sql"] = ""
    state["attempt_number"] = last.attempt_number + 1
    state["attempt_started_at"] = time.perf_counter()
    return state
