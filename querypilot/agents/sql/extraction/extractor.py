"""
SQL candidate extractor - chooses the statement to execute from everything
the generation agent produced.
"""

from typing import Dict, Optional, Sequence

from loguru import logger

from querypilot.agents.sql.extraction.fallbacks import (
    DEFAULT_FALLBACK_RULES,
    FallbackRule,
    select_fallback,
)
from querypilot.config.constants import TABLE_ALIASES
from querypilot.models import ExtractionOutcome, ExtractionSource, GenerationResult
from querypilot.sql import is_complete_sql, repair_sql, sanitize_sql
from querypilot.utils.errors import ExtractionFailedError


class SqlCandidateExtractor:
    """
    Pick one executable statement per attempt.

    Priority: chain SQL, then the last usable captured statement, then the
    agent's free text, then an intent fallback template. The choice is passed
    through completeness repair; a choice that stays incomplete is replaced by
    the fallback template.

    Example:
        >>> extractor = SqlCandidateExtractor()
        >>> extractor.extract(GenerationResult(free_text="no idea"), "show me patients").sql
        'SELECT p.patient_id, p.gender, p.dob, p.state FROM patients p LIMIT 10;'
    """

    def __init__(
        self,
        fallback_rules: Sequence[FallbackRule] = DEFAULT_FALLBACK_RULES,
        alias_map: Optional[Dict[str, str]] = None,
        default_table: str = "patients p",
        min_candidate_length: int = 5,
    ):
        self.fallback_rules = tuple(fallback_rules)
        self.alias_map = TABLE_ALIASES if alias_map is None else alias_map
        self.default_table = default_table
        self.min_candidate_length = min_candidate_length

    def _is_captured_candidate(self, statement: str) -> bool:
        text = (statement or "").strip()
        if text == ";" or len(text) <= self.min_candidate_length:
            return False
        lowered = text.lower()
        return "select" in lowered and "from" in lowered

    def _select(self, generation: GenerationResult):
        if generation.sql and generation.sql.strip():
            cleaned = sanitize_sql(generation.sql)
            if cleaned:
                return cleaned, ExtractionSource.CHAIN
            logger.debug("Chain SQL did not survive sanitization")

        captured = [s for s in generation.captured_statements if self._is_captured_candidate(s)]
        for statement in reversed(captured):
            cleaned = sanitize_sql(statement)
            if cleaned:
                return cleaned, ExtractionSource.CAPTURED

        cleaned = sanitize_sql(generation.free_text)
        if len(cleaned) > self.min_candidate_length:
            return cleaned, ExtractionSource.FREE_TEXT

        return None, None

    def fallback(self, question: str) -> ExtractionOutcome:
        """Template for the first fallback rule matching ``question``."""
        rule = select_fallback(question, self.fallback_rules)
        if rule is None:
            raise ExtractionFailedError("No SQL was produced and no fallback template matches the question")
        logger.info(f"Using fallback template '{rule.name}'")
        return ExtractionOutcome(sql=rule.template, source=ExtractionSource.FALLBACK, fallback_rule=rule.name)

    def extract(self, generation: Optional[GenerationResult], question: str) -> ExtractionOutcome:
        """
        Choose the statement for this attempt.

        Raises:
            ExtractionFailedError: nothing usable was produced and no fallback
                rule matches
        """
        generation = generation or GenerationResult.empty()
        selection, source = self._select(generation)
        if selection is None:
            logger.warning("No usable SQL from the generation agent")
            return self.fallback(question)

        repaired = repair_sql(selection, self.alias_map, self.default_table)
        if not is_complete_sql(repaired):
            logger.warning(f"Extracted SQL is incomplete after repair: {repaired[:200]}")
            return self.fallback(question)

        logger.info(f"Extracted SQL from {source.value}: {repaired[:200]}")
        return ExtractionOutcome(sql=repaired, source=source, repaired=repaired != selection)
