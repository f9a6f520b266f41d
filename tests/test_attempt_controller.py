"""
Tests for the attempt controller: retry, feedback, diagnosis and result shape
"""

import pytest

from querypilot.agents.sql.controller import AttemptController
from querypilot.agents.sql.correction import get_metrics_summary
from querypilot.agents.sql.extraction import DEFAULT_FALLBACK_SQL, SqlCandidateExtractor
from querypilot.agents.sql.progress import ProgressNotifier, ProgressStage
from querypilot.models import GenerationResult, QueryRequest
from querypilot.utils.errors import SQLExecutionError
from tests.conftest import (
    FakeConnectionProvider,
    FakeSchemaProvider,
    ScriptedAgent,
    captured,
    rows,
)


def request(question: str = "List patient names", **kwargs) -> QueryRequest:
    return QueryRequest(question=question, tenant_id="clinic_a", **kwargs)


def unknown_fullname(sql: str):
    if "fullname" in sql:
        raise SQLExecutionError("Unknown column 'p.fullname' in 'field list'", 1054)
    return rows({"full_name": "Ada"})


class TestFirstAttemptSuccess:
    @pytest.mark.asyncio
    async def test_single_attempt(self, make_context):
        provider = FakeConnectionProvider()
        ctx = make_context(ScriptedAgent([captured("SELECT p.full_name FROM patients p")]), provider)

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 1
        assert result.sql_final == "SELECT p.full_name FROM patients p;"
        assert result.rows == [{"patient_id": 1}]
        assert result.diagnosis is None
        assert provider.executed == ["SELECT p.full_name FROM patients p;"]
        assert ctx.connections.outstanding == 0

    @pytest.mark.asyncio
    async def test_fallback_when_agent_produces_nothing(self, make_context):
        ctx = make_context(ScriptedAgent([GenerationResult(free_text="I cannot help with that.")]))

        result = await AttemptController(ctx).run(request("show me patients"))

        assert result.success
        assert result.attempt_count == 1
        assert result.sql_final == DEFAULT_FALLBACK_SQL

    @pytest.mark.asyncio
    async def test_agent_exception_uses_fallback(self, make_context):
        ctx = make_context(ScriptedAgent([RuntimeError("model offline")]))

        result = await AttemptController(ctx).run(request("show me patients"))

        assert result.success
        assert result.sql_final == DEFAULT_FALLBACK_SQL

    @pytest.mark.asyncio
    async def test_prior_feedback_reaches_first_prompt(self, make_context):
        agent = ScriptedAgent([captured("SELECT p.city FROM patients p")])
        ctx = make_context(agent)

        await AttemptController(ctx).run(request(prior_feedback="Use the city column."))

        assert agent.prompts[0].feedback == ["Use the city column."]
        assert agent.prompts[0].attempt_number == 1


class TestCorrectionLoop:
    """Execution errors become feedback for the next generation"""

    @pytest.mark.asyncio
    async def test_unknown_column_corrected_on_retry(self, make_context):
        agent = ScriptedAgent([
            captured("SELECT p.fullname FROM patients p"),
            captured("SELECT p.full_name FROM patients p"),
        ])
        provider = FakeConnectionProvider(unknown_fullname)
        ctx = make_context(agent, provider, pre_validation_enabled=False)

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 2
        assert result.sql_final == "SELECT p.full_name FROM patients p;"
        assert len(agent.prompts) == 2
        feedback = agent.prompts[1].feedback[-1]
        assert feedback.startswith("SQL execution failed on attempt 1: Unknown column 'p.fullname'")
        assert "Suggestion: Use `patients.full_name` instead of `p.fullname`." in feedback
        assert "Previous SQL: SELECT p.fullname FROM patients p;" in feedback
        assert provider.opened == provider.closed == 2

    @pytest.mark.asyncio
    async def test_exhausted_returns_best_diagnosis(self, make_context):
        agent = ScriptedAgent([captured("SELECT p.fullname FROM patients p")])
        provider = FakeConnectionProvider(unknown_fullname)
        ctx = make_context(agent, provider, pre_validation_enabled=False, max_attempts=3)

        result = await AttemptController(ctx).run(request())

        assert not result.success
        assert result.attempt_count == 3
        assert len(agent.prompts) == 3
        assert result.rows is None
        assert result.diagnosis.kind == "column_not_found"
        assert result.diagnosis.suggested_identifier == "patients.full_name"
        assert [a["outcome"] for a in result.attempts] == ["execution_error"] * 3
        assert ctx.connections.outstanding == 0

    @pytest.mark.asyncio
    async def test_diagnosis_without_schema(self, make_context):
        agent = ScriptedAgent([captured("SELECT p.fullname FROM patients p")])
        ctx = make_context(
            agent,
            FakeConnectionProvider(unknown_fullname),
            schema_provider=FakeSchemaProvider(fail=True),
            max_attempts=1,
        )

        result = await AttemptController(ctx).run(request())

        assert not result.success
        assert result.diagnosis.kind == "column_not_found"
        assert result.diagnosis.suggested_identifier is None

    @pytest.mark.asyncio
    async def test_pre_validation_fixes_before_execution(self, make_context):
        agent = ScriptedAgent([captured("SELECT p.fullname FROM patient p")])
        provider = FakeConnectionProvider(unknown_fullname)
        ctx = make_context(agent, provider)

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 1
        assert provider.executed == ["SELECT p.full_name FROM patients p;"]
        assert result.corrections == [
            "table `patient` -> `patients`",
            "column `p.fullname` -> `p.full_name`",
        ]
        assert get_metrics_summary()["fixes"] == {"schema_table": 1, "schema_column": 1}


class TestSyntaxRecovery:
    @staticmethod
    def strict_parentheses(sql: str):
        if sql.count("(") != sql.count(")"):
            raise SQLExecutionError("You have an error in your SQL syntax; check the manual near ')'", 1064)
        return rows({"total": 3})

    @pytest.mark.asyncio
    async def test_parentheses_repaired_in_same_attempt(self, make_context):
        provider = FakeConnectionProvider(self.strict_parentheses)
        ctx = make_context(ScriptedAgent([captured("SELECT COUNT(*)) AS total FROM patients p")]), provider)

        result = await AttemptController(ctx).run(request("How many patients?"))

        assert result.success
        assert result.attempt_count == 1
        assert result.sql_final == "SELECT COUNT(*) AS total FROM patients p;"
        assert provider.opened == 1
        assert get_metrics_summary()["fixes"]["syntax"] == 1

    @pytest.mark.asyncio
    async def test_autofix_disabled(self, make_context):
        provider = FakeConnectionProvider(self.strict_parentheses)
        ctx = make_context(
            ScriptedAgent([captured("SELECT COUNT(*)) AS total FROM patients p")]),
            provider,
            syntax_autofix_enabled=False,
            max_attempts=1,
        )

        result = await AttemptController(ctx).run(request("How many patients?"))

        assert not result.success
        assert result.diagnosis.kind == "generic_sql_error"
        assert provider.executed == ["SELECT COUNT(*)) AS total FROM patients p;"]


class TestZeroRows:
    @staticmethod
    def empty_then_rows():
        calls = []

        def respond(sql: str):
            calls.append(sql)
            return rows() if len(calls) == 1 else rows({"patient_id": 9})

        return respond

    @pytest.mark.asyncio
    async def test_zero_rows_retried(self, make_context):
        agent = ScriptedAgent([
            captured("SELECT p.patient_id FROM patients p WHERE p.state = 'XX'"),
            captured("SELECT p.patient_id FROM patients p"),
        ])
        ctx = make_context(agent, FakeConnectionProvider(self.empty_then_rows()))

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 2
        assert result.rows == [{"patient_id": 9}]
        assert agent.prompts[1].feedback[-1].startswith("Attempt 1 returned zero records.")

    @pytest.mark.asyncio
    async def test_zero_rows_on_last_attempt_is_success(self, make_context):
        ctx = make_context(
            ScriptedAgent([captured("SELECT p.patient_id FROM patients p WHERE 1 = 0")]),
            FakeConnectionProvider(lambda sql: rows()),
        )

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 2
        assert result.rows == []
        assert result.diagnosis is None

    @pytest.mark.asyncio
    async def test_zero_rows_not_retried_when_disabled(self, make_context):
        agent = ScriptedAgent([captured("SELECT p.patient_id FROM patients p WHERE 1 = 0")])
        ctx = make_context(agent, FakeConnectionProvider(lambda sql: rows()), retry_on_zero_rows=False)

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert result.attempt_count == 1
        assert len(agent.prompts) == 1


class TestInfrastructureFailures:
    @pytest.mark.asyncio
    async def test_connection_failure(self, make_context):
        provider = FakeConnectionProvider(fail_open=True)
        ctx = make_context(ScriptedAgent([captured("SELECT p.city FROM patients p")]), provider)

        result = await AttemptController(ctx).run(request())

        assert not result.success
        assert result.attempt_count == 2
        assert result.diagnosis.kind == "connection_error"
        assert [a["outcome"] for a in result.attempts] == ["connection_error", "connection_error"]
        assert provider.opened == 0
        assert ctx.connections.outstanding == 0

    @pytest.mark.asyncio
    async def test_extraction_failure_never_touches_database(self, make_context):
        provider = FakeConnectionProvider()
        ctx = make_context(
            ScriptedAgent([GenerationResult()]),
            provider,
            extractor=SqlCandidateExtractor(fallback_rules=()),
        )

        result = await AttemptController(ctx).run(request())

        assert not result.success
        assert result.sql_final == ""
        assert result.attempt_count == 2
        assert provider.opened == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_change_outcome(self, make_context):
        events = []

        def broken(event):
            raise RuntimeError("listener crashed")

        async def recorder(event):
            events.append(event.stage)

        notifier = ProgressNotifier([broken, recorder])
        ctx = make_context(ScriptedAgent([captured("SELECT p.city FROM patients p")]), notifier=notifier)

        result = await AttemptController(ctx).run(request())

        assert result.success
        assert events == [ProgressStage.EXTRACTION_COMPLETE, ProgressStage.EXECUTION_COMPLETE]

    @pytest.mark.asyncio
    async def test_retry_event_emitted(self, make_context):
        events = []
        notifier = ProgressNotifier([lambda event: events.append((event.stage, event.attempt_number))])
        ctx = make_context(
            ScriptedAgent([captured("SELECT p.fullname FROM patients p")]),
            FakeConnectionProvider(unknown_fullname),
            pre_validation_enabled=False,
            notifier=notifier,
        )

        await AttemptController(ctx).run(request())

        assert (ProgressStage.RETRY_TRIGGERED, 1) in events
        assert events[-1] == (ProgressStage.EXECUTION_COMPLETE, 2)


class TestResponseShape:
    @pytest.mark.asyncio
    async def test_success_response(self, make_context):
        ctx = make_context(ScriptedAgent([captured("SELECT p.city FROM patients p")]))

        response = (await AttemptController(ctx).run(request())).to_response()

        assert set(response) == {"success", "sql_final", "rows", "attempt_count", "processing_time_ms"}
        assert response["processing_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_failure_response(self, make_context):
        ctx = make_context(
            ScriptedAgent([captured("SELECT p.fullname FROM patients p")]),
            FakeConnectionProvider(unknown_fullname),
            pre_validation_enabled=False,
        )

        response = (await AttemptController(ctx).run(request())).to_response()

        assert set(response) == {"success", "sql_final", "attempt_count", "diagnosis", "processing_time_ms"}
        assert response["diagnosis"]["suggested_identifier"] == "patients.full_name"
