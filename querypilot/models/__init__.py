"""
Data models - pipeline value objects and request/response shapes
"""

from querypilot.models.pipeline import (
    Attempt,
    AttemptOutcome,
    AttemptPhase,
    DiagnosisKind,
    ErrorDiagnosis,
    ExecutionResult,
    ExtractionOutcome,
    ExtractionSource,
    GenerationEvent,
    GenerationEventKind,
    GenerationResult,
    PromptContext,
    SchemaSnapshot,
)
from querypilot.models.api import DiagnosisPayload, QueryRequest, QueryResult

__all__ = [
    "Attempt",
    "AttemptOutcome",
    "AttemptPhase",
    "DiagnosisKind",
    "ErrorDiagnosis",
    "ExecutionResult",
    "ExtractionOutcome",
    "ExtractionSource",
    "GenerationEvent",
    "GenerationEventKind",
    "GenerationResult",
    "PromptContext",
    "SchemaSnapshot",
    "DiagnosisPayload",
    "QueryRequest",
    "QueryResult",
]
