"""
Finalize node - builds the request's QueryResult
"""

import time
from typing import List, Optional

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.correction import record_request
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import trace_step
from querypilot.models import Attempt, AttemptOutcome, AttemptPhase, ErrorDiagnosis, QueryResult


def best_diagnosis(attempts: List[Attempt]) -> Optional[ErrorDiagnosis]:
    """Latest diagnosis carrying a suggested identifier, else the latest diagnosis."""
    diagnosed = [a.diagnosis for a in attempts if a.diagnosis is not None]
    for diagnosis in reversed(diagnosed):
        if diagnosis.has_suggestion:
            return diagnosis
    return diagnosed[-1] if diagnosed else None


@trace_step("finalize")
async def finalize_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    state = dict(state)
    attempts: List[Attempt] = state.get("attempts") or []
    last = attempts[-1] if attempts else None
    # Zero rows on the last allowed attempt is a valid, empty answer
    success = last is not None and last.outcome in (AttemptOutcome.SUCCESS, AttemptOutcome.ZERO_ROWS)

    execution = state.get("execution")
    result = QueryResult.from_attempts(
        success=success,
        attempts=attempts,
        rows=execution.rows if (success and execution) else None,
        columns=execution.columns if (success and execution) else None,
        diagnosis=None if success else best_diagnosis(attempts),
        processing_time_ms=(time.perf_counter() - state["started_at"]) * 1000,
        corrections=state.get("corrections"),
    )

    state["phase"] = AttemptPhase.SUCCEEDED if success else AttemptPhase.EXHAUSTED
    state["result"] = result
    record_request(success)
    if success:
        logger.info(f"Request resolved after {result.attempt_count} attempt(s) with {len(result.rows or [])} row(s)")
    else:
        logger.error(f"Request exhausted after {result.attempt_count} attempt(s)")
    return state
