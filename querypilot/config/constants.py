"""
Application constants

Centralized constants used across the application.
"""

from typing import Dict, FrozenSet, Tuple

# ============================================================================
# Read-only enforcement
# ============================================================================

# Statement kinds that are never executed. Matched as whole words, any case.
FORBIDDEN_KEYWORDS: Tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "TRUNCATE",
    "CREATE",
)


# ============================================================================
# Domain vocabulary for completeness repair
# ============================================================================

# Conventional aliases the generation agent uses for the medical schema.
# A dangling "SELECT p.name FROM" is completed with the table behind "p".
TABLE_ALIASES: Dict[str, str] = {
    "p": "patients",
    "m": "medications",
    "rd": "risk_details",
    "lr": "lab_results",
    "pt": "pgx_test_results",
    "d": "diagnoses",
}


# ============================================================================
# SQL keywords
# ============================================================================

# Words that can directly follow FROM but are not table references
CLAUSE_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "WHERE", "GROUP", "ORDER", "HAVING", "LIMIT", "OFFSET", "UNION",
        "EXCEPT", "INTERSECT", "JOIN", "INNER", "LEFT", "RIGHT", "OUTER",
        "CROSS", "FULL", "ON", "AND", "OR", "SELECT", "FROM", "WINDOW",
    }
)
