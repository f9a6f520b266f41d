"""
Attempt closing node - diagnoses a failed attempt and records it
"""

import time

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.correction import record_attempt, record_diagnosis
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import load_schema_snapshot, trace_step
from querypilot.models import (
    Attempt,
    AttemptOutcome,
    AttemptPhase,
    DiagnosisKind,
    ErrorDiagnosis,
)

_PHASE_BY_OUTCOME = {
    AttemptOutcome.SUCCESS: AttemptPhase.SUCCEEDED,
    AttemptOutcome.ZERO_ROWS: AttemptPhase.ZERO_ROWS,
}


async def diagnose_failure(state: AttemptGraphState, ctx: AttemptContext) -> ErrorDiagnosis:
    outcome = state["outcome"]
    message = state.get("error_message") or ""

    if outcome == AttemptOutcome.CONNECTION_ERROR:
        return ctx.classifier.connection_failure(message, state.get("error_code"))

    if outcome == AttemptOutcome.EXTRACTION_FAILURE:
        return ErrorDiagnosis(
            kind=DiagnosisKind.GENERIC_SQL_ERROR,
            human_suggestion="Return a single SELECT statement in a ```sql block.",
            raw_message=message,
        )

    snapshot = await load_schema_snapshot(ctx.schema_provider, state["tenant_id"])
    return ctx.classifier.classify(
        message,
        state.get("sql") or "",
        snapshot,
        state.get("database_kind"),
        state.get("error_code"),
    )


@trace_step("close_attempt")
async def close_attempt_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    """Freeze the current attempt into an Attempt record."""
    state = dict(state)
    outcome = state["outcome"]

    diagnosis = None
    if outcome.is_failure:
        diagnosis = await diagnose_failure(state, ctx)
        record_diagnosis(diagnosis.kind)
    state["diagnosis"] = diagnosis
    state["phase"] = _PHASE_BY_OUTCOME.get(outcome, AttemptPhase.FAILED)

    extraction = state.get("extraction")
    execution = state.get("execution")
    attempt = Attempt(
        attempt_number=state["attempt_number"],
        generated_sql=state.get("sql") or "",
        outcome=outcome,
        diagnosis=diagnosis,
        source=extraction.source if extraction else None,
        row_count=execution.row_count if execution else 0,
        error_message=state.get("error_message"),
        duration_ms=(time.perf_counter() - state["attempt_started_at"]) * 1000,
    )
    state["attempts"] = list(state.get("attempts") or []) + [attempt]
    record_attempt(outcome, attempt.source)
    return state
