"""
Shared fakes for pipeline tests.

The generation agent, connections and schema provider are replaced with
scripted in-memory doubles so attempt behaviour can be asserted exactly.
"""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.correction import reset_metrics
from querypilot.agents.sql.progress import ProgressNotifier
from querypilot.config.settings import DatabaseKind
from querypilot.infra.connections import ConnectionManager
from querypilot.models import (
    ExecutionResult,
    GenerationEvent,
    GenerationEventKind,
    GenerationResult,
    PromptContext,
    SchemaSnapshot,
)

MEDICAL_SCHEMA = {
    "patients": ["patient_id", "full_name", "gender", "dob", "state", "city", "medications"],
    "diagnoses": ["diagnosis_id", "patient_id", "code", "description"],
    "risk_details": ["record_id", "patient_id", "risk_category"],
}


def captured(*statements: str, free_text: str = "") -> GenerationResult:
    """Generation result whose agent emitted ``statements`` as captured SQL."""
    events = [GenerationEvent(GenerationEventKind.SQL_CAPTURED, s) for s in statements]
    return GenerationResult(free_text=free_text, events=events)


class ScriptedAgent:
    """Returns the scripted results in order (the last one repeats) and records prompts."""

    def __init__(self, results: Sequence[Union[GenerationResult, Exception]]):
        self.results = list(results)
        self.prompts: List[PromptContext] = []

    async def generate(self, context: PromptContext) -> GenerationResult:
        self.prompts.append(context)
        result = self.results[min(len(self.prompts), len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


Responder = Callable[[str], ExecutionResult]


class FakeConnection:
    def __init__(self, provider: "FakeConnectionProvider"):
        self.provider = provider
        self.closed = False

    async def execute(self, sql: str) -> ExecutionResult:
        self.provider.executed.append(sql)
        return self.provider.responder(sql)

    async def close(self) -> None:
        self.closed = True
        self.provider.closed += 1
        if self.provider.fail_close:
            raise RuntimeError("close failed")


class FakeConnectionProvider:
    """Hands out FakeConnections; ``responder`` decides each statement's result."""

    def __init__(
        self,
        responder: Optional[Responder] = None,
        fail_open: bool = False,
        fail_close: bool = False,
        open_delay: float = 0.0,
    ):
        self.responder = responder or (lambda sql: rows({"patient_id": 1}))
        self.fail_open = fail_open
        self.fail_close = fail_close
        self.open_delay = open_delay
        self.opened = 0
        self.closed = 0
        self.executed: List[str] = []

    async def open(self, tenant_id: str) -> FakeConnection:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_open:
            raise OSError("connection refused")
        self.opened += 1
        return FakeConnection(self)


class FakeSchemaProvider:
    def __init__(self, mapping: Optional[Dict[str, List[str]]] = None, fail: bool = False):
        self.snapshot = SchemaSnapshot.from_mapping(mapping if mapping is not None else MEDICAL_SCHEMA)
        self.fail = fail
        self.calls = 0

    async def get_schema(self, tenant_id: str) -> SchemaSnapshot:
        self.calls += 1
        if self.fail:
            raise RuntimeError("schema unavailable")
        return self.snapshot


def rows(*records: Dict) -> ExecutionResult:
    columns = list(records[0].keys()) if records else []
    return ExecutionResult(rows=list(records), columns=columns, duration_ms=1.0)


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def snapshot() -> SchemaSnapshot:
    return SchemaSnapshot.from_mapping(MEDICAL_SCHEMA)


@pytest.fixture
def make_context():
    """Build an AttemptContext around the fakes; keyword overrides pass through."""

    def _make(agent, provider=None, schema_provider=None, **overrides) -> AttemptContext:
        provider = provider or FakeConnectionProvider()
        options = dict(
            agent=agent,
            connections=ConnectionManager(provider, max_connections_per_tenant=2),
            schema_provider=schema_provider if schema_provider is not None else FakeSchemaProvider(),
            notifier=ProgressNotifier(),
            kind_resolver=lambda tenant_id: DatabaseKind.MYSQL,
            max_attempts=2,
        )
        options.update(overrides)
        return AttemptContext(**options)

    return _make
