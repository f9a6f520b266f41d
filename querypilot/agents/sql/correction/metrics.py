"""
Attempt metrics - track how requests are resolved.

This module provides observability into the retry pipeline:
- How attempts end (success, zero rows, execution error, ...)
- Which diagnoses are produced most often
- Where executed SQL came from (chain, captured, free text, fallback)
- How often deterministic fixes were applied before/while executing

Use this data to:
- Spot schema names the generation agent keeps getting wrong
- See how often the fallback templates are masking generation failures
"""

from collections import Counter
from typing import Any, Dict

from loguru import logger

from querypilot.models import AttemptOutcome, DiagnosisKind, ExtractionSource

# In-process metrics, reset on restart
attempt_metrics: Dict[str, Counter] = {
    "outcomes": Counter(),      # {success: 40, zero_rows: 3}
    "diagnoses": Counter(),     # {column_not_found: 7}
    "sources": Counter(),       # {captured: 30, fallback: 4}
    "fixes": Counter(),         # {schema_column: 5, syntax: 1}
    "requests": Counter(),      # {succeeded: 41, exhausted: 2}
}


def record_attempt(outcome: AttemptOutcome, source: ExtractionSource = None) -> None:
    """
    Record how one attempt ended.

    Example:
        >>> record_attempt(AttemptOutcome.SUCCESS, ExtractionSource.CAPTURED)
        >>> attempt_metrics["outcomes"]["success"]
        1
    """
    attempt_metrics["outcomes"][outcome.value] += 1
    if source is not None:
        attempt_metrics["sources"][source.value] += 1
    logger.debug(f"Recorded attempt outcome: {outcome.value}")


def record_diagnosis(kind: DiagnosisKind) -> None:
    attempt_metrics["diagnoses"][kind.value] += 1


def record_fix(method: str, count: int = 1) -> None:
    """Record deterministic fixes ("schema_table", "schema_column", "syntax")."""
    if count:
        attempt_metrics["fixes"][method] += count


def record_request(success: bool) -> None:
    attempt_metrics["requests"]["succeeded" if success else "exhausted"] += 1


def get_metrics_summary() -> Dict[str, Any]:
    """
    Get a summary of attempt metrics.

    Example:
        >>> summary = get_metrics_summary()
        >>> summary["total_attempts"]
        43
        >>> summary["request_success_rate"]
        0.95
    """
    total_attempts = sum(attempt_metrics["outcomes"].values())
    total_requests = sum(attempt_metrics["requests"].values())
    succeeded = attempt_metrics["requests"]["succeeded"]
    successes = attempt_metrics["outcomes"]["success"]

    return {
        "total_attempts": total_attempts,
        "total_requests": total_requests,
        "attempts_per_request": total_attempts / total_requests if total_requests > 0 else 0.0,
        "request_success_rate": succeeded / total_requests if total_requests > 0 else 0.0,
        "attempt_success_rate": successes / total_attempts if total_attempts > 0 else 0.0,
        "by_outcome": dict(attempt_metrics["outcomes"]),
        "by_diagnosis": dict(attempt_metrics["diagnoses"]),
        "by_source": dict(attempt_metrics["sources"]),
        "fixes": dict(attempt_metrics["fixes"]),
    }


def log_metrics_summary() -> None:
    """Log a summary of attempt metrics at INFO level."""
    summary = get_metrics_summary()

    if summary["total_attempts"] == 0:
        logger.info("No attempts recorded yet")
        return

    logger.info("=" * 60)
    logger.info("SQL ATTEMPT METRICS")
    logger.info("=" * 60)
    logger.info(f"Requests: {summary['total_requests']} ({summary['request_success_rate']:.1%} succeeded)")
    logger.info(f"Attempts: {summary['total_attempts']} ({summary['attempts_per_request']:.2f} per request)")
    logger.info(f"Deterministic fixes: {sum(summary['fixes'].values())}")
    logger.info("=" * 60)

    if summary["by_diagnosis"]:
        logger.info("Top diagnoses:")
        for kind, count in Counter(summary["by_diagnosis"]).most_common(5):
            logger.info(f"  - {kind}: {count}")


def reset_metrics() -> None:
    """Reset all metrics (useful for testing)."""
    for counter in attempt_metrics.values():
        counter.clear()
    logger.debug("Attempt metrics reset")
