"""
Pre-execution validation node - corrects table/column names against the
tenant's schema snapshot before the statement reaches the database
"""

from loguru import logger

from querypilot.agents.sql.context import AttemptContext
from querypilot.agents.sql.correction import correct_schema_references, record_fix
from querypilot.agents.sql.state import AttemptGraphState
from querypilot.agents.sql.utils import load_schema_snapshot, trace_step
from querypilot.models import AttemptPhase


@trace_step("validate_sql")
async def validate_sql_node(state: AttemptGraphState, ctx: AttemptContext) -> AttemptGraphState:
    state = dict(state)
    state["phase"] = AttemptPhase.SANITIZING
    if not ctx.pre_validation_enabled or not state.get("sql"):
        return state

    snapshot = await load_schema_snapshot(ctx.schema_provider, state["tenant_id"])
    if snapshot is None:
        return state

    kind = state.get("database_kind")
    dialect = kind.sqlglot_dialect if kind else "mysql"
    sql, corrections = correct_schema_references(state["sql"], snapshot, dialect)
    if corrections:
        logger.info(f"Pre-execution validation applied {len(corrections)} correction(s)")
        state["sql"] = sql
        state["corrections"] = list(state.get("corrections") or []) + [c.describe() for c in corrections]
        record_fix("schema_table", sum(1 for c in corrections if c.kind == "table"))
        record_fix("schema_column", sum(1 for c in corrections if c.kind == "column"))
    return state
