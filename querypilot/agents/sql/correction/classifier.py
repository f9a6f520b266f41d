"""
Error classifier - turns a failed execution into an ErrorDiagnosis with a
schema-based suggestion.

Pure: the caller supplies the schema snapshot (or None when it could not be
loaded, in which case diagnoses carry no suggested identifier).
"""

from typing import List, Optional, Tuple, Union

from loguru import logger

from querypilot.agents.sql.correction.error_parser import normalize_error
from querypilot.agents.sql.correction.error_types import NormalizedError, SQLErrorType
from querypilot.agents.sql.correction.name_matcher import find_best_match, find_column_match
from querypilot.config.settings import DatabaseKind
from querypilot.models import DiagnosisKind, ErrorDiagnosis, SchemaSnapshot
from querypilot.sql.analysis import build_alias_map, get_referenced_tables

GENERIC_SUGGESTION = "Check SQL syntax, table relationships, or data types."
SNAKE_CASE_HINT = "Try using snake_case format (e.g., 'full_name' instead of 'fullname')."
CONNECTION_SUGGESTION = "The database connection failed; the query was not executed."


def _split_identifier(identifier: str) -> Tuple[Optional[str], str]:
    """
    Example:
        >>> _split_identifier("medical.p.fullname")
        ('p', 'fullname')
    """
    parts = [p.strip("`\"") for p in identifier.split(".") if p]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    return None, parts[0] if parts else identifier


def _format_list(values: List[str], limit: int) -> str:
    shown = ", ".join(values[:limit])
    return f"{shown}, ..." if len(values) > limit else shown


class ErrorClassifier:
    """
    Build ErrorDiagnosis values from raw driver errors.

    Example:
        >>> snapshot = SchemaSnapshot.from_mapping({"patients": ["patient_id", "full_name"]})
        >>> d = ErrorClassifier().classify(
        ...     "Unknown column 'fullname' in 'field list'",
        ...     "SELECT fullname FROM patients;",
        ...     snapshot,
        ... )
        >>> d.human_suggestion
        'Use `patients.full_name` instead of `fullname`.'
    """

    def __init__(self, max_columns_in_suggestion: int = 10):
        self.max_columns_in_suggestion = max_columns_in_suggestion

    def classify(
        self,
        error_message: str,
        sql: str,
        snapshot: Optional[SchemaSnapshot],
        kind: Optional[DatabaseKind] = None,
        code: Optional[Union[int, str]] = None,
    ) -> ErrorDiagnosis:
        normalized = normalize_error(error_message, kind, code)
        if snapshot is not None and snapshot.is_empty():
            snapshot = None
        dialect = kind.sqlglot_dialect if kind else "mysql"

        if normalized.error_type == SQLErrorType.UNKNOWN_COLUMN:
            diagnosis = self._diagnose_column(normalized, sql, snapshot, dialect)
        elif normalized.error_type == SQLErrorType.UNKNOWN_TABLE:
            diagnosis = self._diagnose_table(normalized, snapshot)
        elif normalized.error_type == SQLErrorType.AMBIGUOUS_COLUMN:
            diagnosis = self._diagnose_ambiguous(normalized, sql, dialect)
        else:
            diagnosis = self._generic(normalized)

        logger.info(
            f"Classified error as {diagnosis.kind.value}"
            f" (offending={diagnosis.offending_identifier}, suggested={diagnosis.suggested_identifier})"
        )
        return diagnosis

    def connection_failure(self, error_message: str, code: Optional[Union[int, str]] = None) -> ErrorDiagnosis:
        return ErrorDiagnosis(
            kind=DiagnosisKind.CONNECTION_ERROR,
            human_suggestion=CONNECTION_SUGGESTION,
            raw_message=error_message,
            error_code=code,
        )

    # ------------------------------------------------------------------
    # Per-type diagnosis
    # ------------------------------------------------------------------

    def _generic(self, normalized: NormalizedError, suggestion: str = GENERIC_SUGGESTION) -> ErrorDiagnosis:
        return ErrorDiagnosis(
            kind=DiagnosisKind.GENERIC_SQL_ERROR,
            offending_identifier=normalized.get_detail("identifier"),
            human_suggestion=suggestion,
            raw_message=normalized.raw_message,
            error_code=normalized.code,
        )

    def _diagnose_column(
        self,
        normalized: NormalizedError,
        sql: str,
        snapshot: Optional[SchemaSnapshot],
        dialect: str,
    ) -> ErrorDiagnosis:
        identifier = normalized.get_detail("identifier")
        if not identifier:
            return self._generic(normalized)

        qualifier, column = _split_identifier(identifier)

        def _diagnosis(**kwargs) -> ErrorDiagnosis:
            return ErrorDiagnosis(
                offending_identifier=identifier,
                raw_message=normalized.raw_message,
                error_code=normalized.code,
                **kwargs,
            )

        if snapshot is None:
            return _diagnosis(kind=DiagnosisKind.COLUMN_NOT_FOUND, human_suggestion=SNAKE_CASE_HINT)

        alias_map = build_alias_map(sql or "", dialect)
        referenced = [t for t in (snapshot.find_table(t) for t in get_referenced_tables(sql or "", dialect)) if t]

        qualified_table = None
        if qualifier:
            base = alias_map.get(qualifier, qualifier)
            qualified_table = snapshot.find_table(base)
            if qualified_table is None:
                return self._diagnose_table_and_column(identifier, base, column, snapshot, _diagnosis)

        search_order: List[str] = []
        for table in ([qualified_table] if qualified_table else []) + referenced + list(snapshot.tables):
            if table not in search_order:
                search_order.append(table)

        found = find_column_match(column, search_order, snapshot.columns_for)
        if found:
            table, match = found
            suggested = f"{table}.{match}"
            return _diagnosis(
                kind=DiagnosisKind.COLUMN_NOT_FOUND,
                suggested_identifier=suggested,
                human_suggestion=f"Use `{suggested}` instead of `{identifier}`.",
            )

        target = qualified_table or (referenced[0] if referenced else None)
        if target:
            available = _format_list(snapshot.columns_for(target), self.max_columns_in_suggestion)
            suggestion = (
                f"The column `{column}` does not exist in table `{target}`. "
                f"Available columns: {available}."
            )
        else:
            suggestion = SNAKE_CASE_HINT
        return _diagnosis(kind=DiagnosisKind.COLUMN_NOT_FOUND, human_suggestion=suggestion)

    def _diagnose_table_and_column(self, identifier, table, column, snapshot, make) -> ErrorDiagnosis:
        table_match = find_best_match(table, snapshot.tables, allow_inflections=True)
        if table_match is None:
            return make(
                kind=DiagnosisKind.TABLE_AND_COLUMN_NOT_FOUND,
                human_suggestion=(
                    f"Both table `{table}` and column `{column}` have issues. "
                    f"Available tables: {_format_list(snapshot.tables, self.max_columns_in_suggestion)}."
                ),
            )

        column_match = find_best_match(column, snapshot.columns_for(table_match)) or column
        suggested = f"{table_match}.{column_match}"
        return make(
            kind=DiagnosisKind.TABLE_AND_COLUMN_NOT_FOUND,
            suggested_identifier=suggested,
            human_suggestion=(
                f"Both table `{table}` and column `{column}` have issues. "
                f"Try using table `{table_match}` instead: `{suggested}`."
            ),
        )

    def _diagnose_table(self, normalized: NormalizedError, snapshot: Optional[SchemaSnapshot]) -> ErrorDiagnosis:
        identifier = normalized.get_detail("identifier")
        if not identifier:
            return self._generic(normalized)

        _, table = _split_identifier(identifier)
        base = dict(
            kind=DiagnosisKind.TABLE_NOT_FOUND,
            offending_identifier=table,
            raw_message=normalized.raw_message,
            error_code=normalized.code,
        )
        if snapshot is None:
            return ErrorDiagnosis(**base, human_suggestion=f"Table `{table}` does not exist. Check the table name.")

        match = find_best_match(table, snapshot.tables, allow_inflections=True)
        if match:
            return ErrorDiagnosis(
                **base,
                suggested_identifier=match,
                human_suggestion=f"Use table `{match}` instead of `{table}`.",
            )
        available = _format_list(snapshot.tables, self.max_columns_in_suggestion)
        return ErrorDiagnosis(
            **base,
            human_suggestion=f"Table `{table}` does not exist. Available tables: {available}.",
        )

    def _diagnose_ambiguous(self, normalized: NormalizedError, sql: str, dialect: str) -> ErrorDiagnosis:
        identifier = normalized.get_detail("identifier")
        if not identifier:
            return self._generic(normalized)
        aliases = [a for a, t in build_alias_map(sql or "", dialect).items() if a != t]
        example = f" (e.g. `{aliases[0]}.{identifier}`)" if aliases else ""
        return self._generic(
            normalized,
            suggestion=f"Column `{identifier}` is ambiguous; qualify it with its table alias{example}.",
        )
