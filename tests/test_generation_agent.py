"""
Tests for the LLM-backed generation agent (chat model replaced by a fake)
"""

import pytest
from langchain_core.messages import AIMessage

from querypilot.llm import LLMGenerationAgent, describe_schema, extract_text_from_response
from querypilot.models import GenerationEventKind, PromptContext, SchemaSnapshot


class FakeChatModel:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def ainvoke(self, messages):
        self.calls.append(messages)
        return AIMessage(content=self.content)


class TestLLMGenerationAgent:
    @pytest.mark.asyncio
    async def test_fenced_blocks_captured(self, snapshot):
        llm = FakeChatModel("Here you go:\n```sql\nSELECT p.city FROM patients p\n```\nDone.")

        async def load(tenant_id):
            return snapshot

        agent = LLMGenerationAgent(llm, schema_loader=load, dialect_for=lambda t: "sqlite")
        result = await agent.generate(PromptContext(question="cities", tenant_id="demo", feedback=["Use city."]))

        assert result.captured_statements == ["SELECT p.city FROM patients p"]
        assert [e.kind for e in result.events] == [GenerationEventKind.SQL_CAPTURED, GenerationEventKind.FINAL_OUTPUT]
        assert {kind.value for kind in GenerationEventKind} == {"sql_captured", "final_output"}
        system, human = llm.calls[0]
        assert "sqlite medical database" in system.content
        assert "- patients(patient_id, full_name" in system.content
        assert "Question: cities" in human.content
        assert "- Use city." in human.content

    @pytest.mark.asyncio
    async def test_schema_failure_does_not_block_generation(self):
        async def broken(tenant_id):
            raise RuntimeError("db down")

        agent = LLMGenerationAgent(FakeChatModel("no sql here"), schema_loader=broken)
        result = await agent.generate(PromptContext(question="q", tenant_id="demo"))

        assert result.captured_statements == []
        assert result.free_text == "no sql here"


class TestResponseText:
    def test_reasoning_blocks_skipped(self):
        message = AIMessage(content=[{"type": "reasoning", "text": "hmm"}, {"type": "text", "text": "SELECT 1"}])
        assert extract_text_from_response(message) == "SELECT 1"

    def test_plain_string(self):
        assert extract_text_from_response("SELECT 1") == "SELECT 1"

    def test_schema_description(self):
        assert describe_schema(SchemaSnapshot.from_mapping({"t": ["a", "b"]})) == "- t(a, b)"
        assert describe_schema(None).startswith("(schema unavailable")
