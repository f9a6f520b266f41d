"""
SQL candidate extraction and intent fallbacks
"""

from querypilot.agents.sql.extraction.extractor import SqlCandidateExtractor
from querypilot.agents.sql.extraction.fallbacks import (
    DEFAULT_FALLBACK_RULES,
    DEFAULT_FALLBACK_SQL,
    FallbackRule,
    select_fallback,
)

__all__ = [
    "SqlCandidateExtractor",
    "DEFAULT_FALLBACK_RULES",
    "DEFAULT_FALLBACK_SQL",
    "FallbackRule",
    "select_fallback",
]
