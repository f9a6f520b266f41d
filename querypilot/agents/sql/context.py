"""
Attempt workflow context - dependencies and knobs for workflow nodes
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from querypilot.agents.sql.correction import ErrorClassifier
from querypilot.agents.sql.extraction import SqlCandidateExtractor
from querypilot.agents.sql.progress import ProgressNotifier
from querypilot.config.settings import DatabaseKind
from querypilot.infra.connections import ConnectionManager


@dataclass
class AttemptContext:
    """Context holding dependencies for attempt workflow nodes"""

    agent: Any  # GenerationAgent: async generate(PromptContext) -> GenerationResult
    connections: ConnectionManager
    schema_provider: Optional[Any] = None  # SchemaProvider: async get_schema(tenant_id)
    extractor: SqlCandidateExtractor = field(default_factory=SqlCandidateExtractor)
    classifier: ErrorClassifier = field(default_factory=ErrorClassifier)
    notifier: ProgressNotifier = field(default_factory=ProgressNotifier)
    kind_resolver: Optional[Callable[[str], DatabaseKind]] = None

    max_attempts: int = 2
    retry_on_zero_rows: bool = True
    pre_validation_enabled: bool = True
    syntax_autofix_enabled: bool = True
    max_sql_history_length: int = 500
