"""
Attempt controller - runs one request through the bounded retry workflow
"""

import time
import uuid
from typing import Optional

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.workflow import STEPS_PER_ATTEMPT, build_attempt_workflow
from querypilot.config.settings import DatabaseKind
from querypilot.models import AttemptPhase, QueryRequest, QueryResult


class AttemptController:
    """
    Drives generate -> extract -> validate -> execute -> diagnose -> retry
    until an attempt succeeds or ``max_attempts`` is spent.

    Failures never escape ``run``: they become feedback for the next attempt
    and, at the end, the diagnosis of the returned QueryResult.
    """

    def __init__(self, ctx: AttemptContext):
        self.ctx = ctx
        self.workflow = build_attempt_workflow(ctx)

    def _database_kind(self, tenant_id: str) -> Optional[DatabaseKind]:
        if self.ctx.kind_resolver is None:
            return None
        try:
            return self.ctx.kind_resolver(tenant_id)
        except Exception as e:
            logger.warning(f"Could not resolve database type for tenant '{tenant_id}': {e}")
            return None

    def initial_state(self, request: QueryRequest, request_id: Optional[str] = None) -> AttemptGraphState:
        now = time.perf_counter()
        return {
            "request_id": request_id or str(uuid.uuid4()),
            "question": request.question,
            "tenant_id": request.tenant_id,
            "conversation_context": request.conversation_context,
            "prior_feedback": request.prior_feedback,
            "database_kind": self._database_kind(request.tenant_id),
            "started_at": now,
            "attempt_number": 1,
            "max_attempts": max(1, self.ctx.max_attempts),
            "phase": AttemptPhase.PENDING,
            "attempt_started_at": now,
            "sql": "",
            "attempts": [],
            "feedback": [],
            "corrections": [],
            "result": None,
        }

    async def run(self, request: QueryRequest, request_id: Optional[str] = None) -> QueryResult:
        state = self.initial_state(request, request_id)
        logger.info(
            f"Processing question for tenant '{request.tenant_id}' "
            f"(request_id={state['request_id']}, max_attempts={state['max_attempts']})"
        )
        recursion_limit = STEPS_PER_ATTEMPT * state["max_attempts"] + 10
        final_state = await self.workflow.ainvoke(state, config={"recursion_limit": recursion_limit})
        return final_state["result"]
