"""
SQL generation node - asks the generation agent for this attempt's SQL
"""

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import trace_step
from querypilot.models import AttemptPhase, GenerationResult, PromptContext


def build_prompt_context(state: AttemptGraphState) -> PromptContext:
    feedback = []
    if state.get("prior_feedback"):
        feedback.append(state["prior_feedback"])
    feedback.extend(state.get("feedback") or [])
    return PromptContext(
        question=state["question"],
        tenant_id=state["tenant_id"],
        attempt_number=state["attempt_number"],
        conversation_context=state.get("conversation_context"),
        feedback=feedback,
    )


@trace_step("generate_sql")
async def generate_sql_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    """
    Call the generation agent. An agent failure is not fatal: the attempt
    continues with an empty generation and the extractor's fallback.
    """
    state = dict(state)
    state["phase"] = AttemptPhase.PENDING
    prompt = build_prompt_context(state)

    try:
        generation = await ctx.agent.generate(prompt)
    except Exception as e:
        logger.error(f"Generation agent failed on attempt {state['attempt_number']}: {e}")
        generation = None

    state["generation"] = generation or GenerationResult.empty()
    return state
