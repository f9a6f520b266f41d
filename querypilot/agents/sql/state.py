"""
Attempt workflow state
"""

from typing import Any, List, Optional, TypedDict

from querypilot.config.settings import DatabaseKind
from querypilot.models import (
    Attempt,
    AttemptOutcome,
    AttemptPhase,
    ErrorDiagnosis,
    ExecutionResult,
    ExtractionOutcome,
    GenerationResult,
    QueryResult,
)


class AttemptGraphState(TypedDict, total=False):
    """State for the attempt workflow. Per-attempt keys are reset on retry."""
    # Request
    request_id: str
    question: str
    tenant_id: str
    conversation_context: Optional[str]
    prior_feedback: Optional[str]
    database_kind: Optional[DatabaseKind]
    started_at: float

    # Attempt bookkeeping
    attempt_number: int
    max_attempts: int
    phase: AttemptPhase
    attempt_started_at: float

    # Current attempt
    generation: Optional[GenerationResult]
    extraction: Optional[ExtractionOutcome]
    sql: str
    execution: Optional[ExecutionResult]
    outcome: Optional[AttemptOutcome]
    error_message: Optional[str]
    error_code: Optional[Any]
    diagnosis: Optional[ErrorDiagnosis]

    # Accumulated across attempts
    attempts: List[Attempt]
    feedback: List[str]
    corrections: List[str]

    # Output
    result: Optional[QueryResult]


PER_ATTEMPT_KEYS = (
    "generation",
    "extraction",
    "sql",
    "execution",
    "outcome",
    "error_message",
    "error_code",
    "diagnosis",
)
