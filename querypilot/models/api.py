"""
Request/response models for the query pipeline
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from querypilot.models.pipeline import Attempt, ErrorDiagnosis


class QueryRequest(BaseModel):
    """A natural-language question addressed to one tenant's database."""

    question: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    prior_feedback: Optional[str] = None
    conversation_context: Optional[str] = None
    session_id: Optional[str] = None


class DiagnosisPayload(BaseModel):
    kind: str
    offending_identifier: Optional[str] = None
    suggested_identifier: Optional[str] = None
    human_suggestion: Optional[str] = None

    @classmethod
    def from_diagnosis(cls, diagnosis: ErrorDiagnosis) -> "DiagnosisPayload":
        return cls(
            kind=diagnosis.kind.value,
            offending_identifier=diagnosis.offending_identifier,
            suggested_identifier=diagnosis.suggested_identifier,
            human_suggestion=diagnosis.human_suggestion,
        )


class QueryResult(BaseModel):
    """
    Final outcome of one request.

    ``rows`` is only reported on success and ``diagnosis`` only on failure;
    ``sql_final`` is always the exact statement of the last attempt.
    """

    success: bool
    sql_final: str = ""
    rows: Optional[List[Dict[str, Any]]] = None
    columns: Optional[List[str]] = None
    attempt_count: int = 0
    diagnosis: Optional[DiagnosisPayload] = None
    processing_time_ms: float = 0.0
    corrections: List[str] = Field(default_factory=list)
    attempts: List[Dict[str, Union[int, str, None]]] = Field(default_factory=list)

    @classmethod
    def from_attempts(
        cls,
        success: bool,
        attempts: List[Attempt],
        rows: Optional[List[Dict[str, Any]]] = None,
        columns: Optional[List[str]] = None,
        diagnosis: Optional[ErrorDiagnosis] = None,
        processing_time_ms: float = 0.0,
        corrections: Optional[List[str]] = None,
    ) -> "QueryResult":
        last_sql = attempts[-1].generated_sql if attempts else ""
        return cls(
            success=success,
            sql_final=last_sql,
            rows=(rows or []) if success else None,
            columns=(columns or []) if success else None,
            attempt_count=len(attempts),
            diagnosis=DiagnosisPayload.from_diagnosis(diagnosis) if (diagnosis and not success) else None,
            processing_time_ms=round(processing_time_ms, 2),
            corrections=list(corrections or []),
            attempts=[
                {
                    "attempt_number": a.attempt_number,
                    "outcome": a.outcome.value,
                    "sql": a.generated_sql,
                    "error": a.error_message,
                }
                for a in attempts
            ],
        )

    def to_response(self) -> Dict[str, Any]:
        """Public response shape: rows only on success, diagnosis only on failure."""
        response = self.model_dump(
            include={"success", "sql_final", "rows", "attempt_count", "diagnosis", "processing_time_ms"},
            exclude_none=True,
        )
        if self.success:
            response["rows"] = self.rows or []
        return response
