"""
SQL extraction node - picks the statement to run from the agent's output
"""

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.progress import ProgressStage
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import trace_step
from querypilot.models import AttemptOutcome, AttemptPhase
from querypilot.utils.errors import ExtractionFailedError


@trace_step("extract_sql")
async def extract_sql_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    state = dict(state)
    state["phase"] = AttemptPhase.EXTRACTING

    try:
        extraction = ctx.extractor.extract(state.get("generation"), state["question"])
    except ExtractionFailedError as e:
        logger.error(f"Extraction failed on attempt {state['attempt_number']}: {e}")
        state["extraction"] = None
        state["sql"] = ""
        state["outcome"] = AttemptOutcome.EXTRACTION_FAILURE
        state["error_message"] = str(e)
        return state

    state["extraction"] = extraction
    state["sql"] = extraction.sql
    await ctx.notifier.notify(
        ProgressStage.EXTRACTION_COMPLETE,
        state["request_id"],
        state["attempt_number"],
        sql=extraction.sql,
        source=extraction.source.value,
    )
    return state
