"""
Attempt workflow nodes
"""

from querypilot.agents.sql.nodes.sql_generator import generate_sql_node
from querypilot.agents.sql.nodes.extractor import extract_sql_node
from querypilot.agents.sql.nodes.validator import validate_sql_node
from querypilot.agents.sql.nodes.executor import execute_node
from querypilot.agents.sql.nodes.correction import close_attempt_node
from querypilot.agents.sql.nodes.retry import retry_node
from querypilot.agents.sql.nodes.finalize import finalize_node

__all__ = [
    "generate_sql_node",
    "extract_sql_node",
    "validate_sql_node",
    "execute_node",
    "close_attempt_node",
    "retry_node",
    "finalize_node",
]
