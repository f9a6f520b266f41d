"""
Attempt-scoped value objects shared by the pipeline components.

Everything here lives for one request: the controller creates it, hands it to
the next stage and drops it when the request finishes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class AttemptOutcome(str, Enum):
    """How one pass through the pipeline ended."""

    SUCCESS = "success"
    ZERO_ROWS = "zero_rows"
    EXECUTION_ERROR = "execution_error"
    EXTRACTION_FAILURE = "extraction_failure"
    CONNECTION_ERROR = "connection_error"

    @property
    def is_failure(self) -> bool:
        return self not in (AttemptOutcome.SUCCESS, AttemptOutcome.ZERO_ROWS)


class AttemptPhase(str, Enum):
    """States of the attempt state machine."""

    PENDING = "pending"
    EXTRACTING = "extracting"
    SANITIZING = "sanitizing"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    ZERO_ROWS = "zero_rows"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


class DiagnosisKind(str, Enum):
    """Typed classification of a failed attempt."""

    COLUMN_NOT_FOUND = "column_not_found"
    TABLE_NOT_FOUND = "table_not_found"
    TABLE_AND_COLUMN_NOT_FOUND = "table_and_column_not_found"
    GENERIC_SQL_ERROR = "generic_sql_error"
    CONNECTION_ERROR = "connection_error"


@dataclass(frozen=True)
class ErrorDiagnosis:
    """
    Structured explanation of why an attempt failed.

    Attributes:
        kind: Diagnosis category
        offending_identifier: Table or column the database rejected
        suggested_identifier: Closest valid name from the schema snapshot
        human_suggestion: Short actionable hint fed into the next attempt
        raw_message: Original database error text
        error_code: Driver error code when one was reported

    Example:
        >>> d = ErrorDiagnosis(
        ...     kind=DiagnosisKind.COLUMN_NOT_FOUND,
        ...     offending_identifier="fullname",
        ...     suggested_identifier="patients.full_name",
        ...     human_suggestion="Use `patients.full_name` instead of `fullname`.",
        ... )
        >>> d.has_suggestion
        True
    """

    kind: DiagnosisKind
    offending_identifier: Optional[str] = None
    suggested_identifier: Optional[str] = None
    human_suggestion: Optional[str] = None
    raw_message: Optional[str] = None
    error_code: Optional[Union[int, str]] = None

    @property
    def has_suggestion(self) -> bool:
        return self.suggested_identifier is not None


@dataclass(frozen=True)
class SchemaSnapshot:
    """
    Cached table/column inventory for one tenant database.

    ``columns`` keeps the database's column order; ``tables`` keeps the
    inspection order, which makes name matching deterministic.
    """

    tables: List[str]
    columns: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Dict[str, List[str]]) -> "SchemaSnapshot":
        return cls(tables=list(mapping.keys()), columns={t: list(c) for t, c in mapping.items()})

    def find_table(self, name: str) -> Optional[str]:
        """Return the snapshot's spelling of ``name`` (case-insensitive), if present."""
        if not name:
            return None
        lowered = name.lower()
        for table in self.tables:
            if table.lower() == lowered:
                return table
        return None

    def columns_for(self, table: str) -> List[str]:
        actual = self.find_table(table)
        if actual is None:
            return []
        return self.columns.get(actual, [])

    def is_empty(self) -> bool:
        return not self.tables


@dataclass(frozen=True)
class ExecutionResult:
    """Rows returned by one statement. ``rows`` is always a list."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows


class GenerationEventKind(str, Enum):
    SQL_CAPTURED = "sql_captured"
    FINAL_OUTPUT = "final_output"


@dataclass(frozen=True)
class GenerationEvent:
    """One observable step of the generation agent, in emission order."""

    kind: GenerationEventKind
    content: str


@dataclass(frozen=True)
class GenerationResult:
    """
    What the generation agent produced for one attempt.

    ``sql`` is set when an alternate generation path already produced a
    statement; ``events`` is the finite trace of the agent's work.
    """

    free_text: str = ""
    sql: Optional[str] = None
    events: List[GenerationEvent] = field(default_factory=list)

    @property
    def captured_statements(self) -> List[str]:
        return [e.content for e in self.events if e.kind == GenerationEventKind.SQL_CAPTURED]

    @classmethod
    def empty(cls) -> "GenerationResult":
        return cls()


@dataclass(frozen=True)
class PromptContext:
    """Everything the generation agent receives for one attempt."""

    question: str
    tenant_id: str
    attempt_number: int = 1
    conversation_context: Optional[str] = None
    feedback: List[str] = field(default_factory=list)

    def to_prompt(self) -> str:
        """Render the request as plain text for prompt-based agents."""
        parts = [f"Question: {self.question}"]
        if self.conversation_context:
            parts.append(f"Previous conversation:\n{self.conversation_context}")
        if self.feedback:
            lines = "\n".join(f"- {item}" for item in self.feedback)
            parts.append(
                "Feedback from previous attempts (adjust the SQL accordingly):\n" + lines
            )
        return "\n\n".join(parts)


class ExtractionSource(str, Enum):
    CHAIN = "chain"
    CAPTURED = "captured"
    FREE_TEXT = "free_text"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ExtractionOutcome:
    """The statement chosen by the extractor and where it came from."""

    sql: str
    source: ExtractionSource
    repaired: bool = False
    fallback_rule: Optional[str] = None


@dataclass(frozen=True)
class Attempt:
    """A closed pass through the pipeline. Never mutated after creation."""

    attempt_number: int
    generated_sql: str
    outcome: AttemptOutcome
    diagnosis: Optional[ErrorDiagnosis] = None
    source: Optional[ExtractionSource] = None
    row_count: int = 0
    error_message: Optional[str] = None
    duration_ms: float = 0.0
