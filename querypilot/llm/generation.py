"""
LLM-backed generation agent.

Sends the question, prior conversation and retry feedback to a LangChain chat
model and reports fenced SQL blocks in the reply as captured statements.
"""

import re
from typing import Callable, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from loguru import logger

from querypilot.llm.response_utils import extract_text_from_response
from querypilot.models import (
    GenerationEvent,
    GenerationEventKind,
    GenerationResult,
    PromptContext,
    SchemaSnapshot,
)

_FENCED_SQL = re.compile(r"```(?:sql)?[ \t]*\r?\n(.*?)```", re.DOTALL | re.IGNORECASE)

SYSTEM_PROMPT = """You write SQL for a {dialect} medical database.

Rules:
- Produce exactly one read-only SELECT statement (a WITH ... AS (...) SELECT is fine).
- Never write INSERT, UPDATE, DELETE, DROP, ALTER, TRUNCATE or CREATE.
- Use only the tables and columns listed below; column names are snake_case.
- Give every table an alias and qualify every column with it.
- Return the statement in a ```sql fenced block with no other commentary.

Schema:
{schema}
"""


def describe_schema(snapshot: Optional[SchemaSnapshot], max_tables: int = 50) -> str:
    """
    Example:
        >>> describe_schema(SchemaSnapshot.from_mapping({"patients": ["patient_id", "full_name"]}))
        '- patients(patient_id, full_name)'
    """
    if snapshot is None or snapshot.is_empty():
        return "(schema unavailable; inspect it with care)"
    lines = [f"- {t}({', '.join(snapshot.columns_for(t))})" for t in snapshot.tables[:max_tables]]
    return "\n".join(lines)


class LLMGenerationAgent:
    """
    Generation agent backed by a chat model from ``create_llm``.

    ``schema_loader`` is an async callable returning the tenant's snapshot;
    ``dialect_for`` names the SQL dialect shown in the system prompt.
    """

    def __init__(
        self,
        llm,
        schema_loader: Optional[Callable] = None,
        dialect_for: Optional[Callable[[str], str]] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.llm = llm
        self.schema_loader = schema_loader
        self.dialect_for = dialect_for
        self.system_prompt = system_prompt

    async def _schema_text(self, tenant_id: str) -> str:
        if self.schema_loader is None:
            return describe_schema(None)
        try:
            snapshot = await self.schema_loader(tenant_id)
        except Exception as e:
            logger.warning(f"Schema unavailable for prompt (tenant={tenant_id}): {e}")
            snapshot = None
        return describe_schema(snapshot)

    async def generate(self, context: PromptContext) -> GenerationResult:
        dialect = self.dialect_for(context.tenant_id) if self.dialect_for else "MySQL"
        system = self.system_prompt.format(dialect=dialect, schema=await self._schema_text(context.tenant_id))
        messages = [SystemMessage(content=system), HumanMessage(content=context.to_prompt())]

        logger.debug(f"Generating SQL (attempt {context.attempt_number}, feedback items={len(context.feedback)})")
        response = await self.llm.ainvoke(messages)
        text = extract_text_from_response(response)

        events: List[GenerationEvent] = [
            GenerationEvent(GenerationEventKind.SQL_CAPTURED, block.strip())
            for block in _FENCED_SQL.findall(text)
            if block.strip()
        ]
        events.append(GenerationEvent(GenerationEventKind.FINAL_OUTPUT, text))
        logger.info(f"Generation produced {len(events) - 1} SQL block(s)")
        return GenerationResult(free_text=text, events=events)
