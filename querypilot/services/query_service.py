"""
Query service - wires the attempt pipeline to real infrastructure.

One instance is shared by every request of a process: engines, schema cache
and session history live here; per-request state lives in the workflow.
"""

import asyncio
from typing import Any, Optional

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.controller import AttemptController
from querypilot.agents.sql.correction import ErrorClassifier
from querypilot.agents.sql.extraction import SqlCandidateExtractor
from querypilot.agents.sql.progress import ProgressNotifier
from querypilot.config.settings import Settings, settings
from querypilot.infra.connections import ConnectionManager, SQLAlchemyConnectionProvider
from querypilot.infra.schema import SQLAlchemySchemaProvider
from querypilot.infra.tenants import TenantRegistry, load_tenant_registry
from querypilot.memory import (
    ConversationTurn,
    InMemorySessionStore,
    SessionStore,
    format_conversation_context,
    run_session_sweeper,
)
from querypilot.models import QueryRequest, QueryResult


class QueryService:
    """
    Answer questions against tenant databases.

    Usage:
        service = QueryService.from_settings()
        result = await service.answer(QueryRequest(question="...", tenant_id="default"))
        print(result.to_response())
        await service.close()
    """

    def __init__(
        self,
        registry: TenantRegistry,
        agent: Optional[Any] = None,
        session_store: Optional[SessionStore] = None,
        notifier: Optional[ProgressNotifier] = None,
        app_settings: Settings = settings,
    ):
        self.settings = app_settings
        self.registry = registry
        self.provider = SQLAlchemyConnectionProvider(registry)
        self.connections = ConnectionManager(self.provider, app_settings.max_connections_per_tenant)
        self.schema_provider = SQLAlchemySchemaProvider(self.connections, app_settings.schema_cache_ttl_seconds)
        self.session_store = session_store or InMemorySessionStore(
            ttl_seconds=app_settings.session_ttl_seconds,
            max_turns=app_settings.max_conversation_turns,
        )
        self._sweeper_task: Optional[asyncio.Task] = None
        self._sweeper_stop: Optional[asyncio.Event] = None

        if agent is None:
            from querypilot.llm import LLMGenerationAgent, create_llm

            agent = LLMGenerationAgent(
                create_llm(temperature=0),
                schema_loader=self.schema_provider.get_schema,
                dialect_for=lambda tenant_id: self.provider.kind_for(tenant_id).value,
            )
        self.agent = agent

        ctx = AttemptContext(
            agent=agent,
            connections=self.connections,
            schema_provider=self.schema_provider,
            extractor=SqlCandidateExtractor(
                default_table=app_settings.sql_default_table,
                min_candidate_length=app_settings.sql_min_candidate_length,
            ),
            classifier=ErrorClassifier(app_settings.sql_max_columns_in_suggestion),
            notifier=notifier or ProgressNotifier(),
            kind_resolver=self.provider.kind_for,
            max_attempts=app_settings.sql_max_attempts,
            retry_on_zero_rows=app_settings.sql_retry_on_zero_rows,
            pre_validation_enabled=app_settings.sql_pre_validation_enabled,
            syntax_autofix_enabled=app_settings.sql_syntax_autofix_enabled,
            max_sql_history_length=app_settings.sql_max_sql_history_length,
        )
        self.controller = AttemptController(ctx)
        logger.info(f"QueryService initialized for tenants: {', '.join(registry.tenant_ids()) or '(none)'}")

    @classmethod
    def from_settings(cls, agent: Optional[Any] = None, **kwargs) -> "QueryService":
        return cls(load_tenant_registry(), agent=agent, **kwargs)

    def start_session_sweeper(self) -> None:
        """Expire idle sessions in the background until ``close``. Needs a running loop."""
        interval = self.settings.session_sweep_interval_seconds
        if interval <= 0 or (self._sweeper_task is not None and not self._sweeper_task.done()):
            return
        self._sweeper_stop = asyncio.Event()
        self._sweeper_task = asyncio.create_task(
            run_session_sweeper(self.session_store, interval, self._sweeper_stop)
        )

    async def stop_session_sweeper(self) -> None:
        task, self._sweeper_task = self._sweeper_task, None
        if task is None:
            return
        self._sweeper_stop.set()
        try:
            await asyncio.wait_for(task, timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Session sweeper did not stop in time")

    async def answer(self, request: QueryRequest) -> QueryResult:
        """Run one request, seeding and recording session history when a session id is given."""
        self.start_session_sweeper()
        if request.session_id and not request.conversation_context:
            turns = await self.session_store.get(request.session_id)
            context = format_conversation_context(turns)
            if context:
                request = request.model_copy(update={"conversation_context": context})

        result = await self.controller.run(request)

        if request.session_id:
            await self.session_store.put(
                request.session_id,
                ConversationTurn(question=request.question, sql=result.sql_final, success=result.success),
            )
        return result

    async def close(self) -> None:
        await self.stop_session_sweeper()
        await self.provider.dispose()
