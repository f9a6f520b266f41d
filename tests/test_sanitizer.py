"""
Tests for SQL sanitization.

These tests verify:
1. Candidate extraction (fenced block, inline span, raw text)
2. Read-only enforcement
3. Comment, markup and whitespace cleanup that leaves literals alone
4. Single-statement isolation and idempotence
"""

import pytest

from querypilot.sql.sanitizer import (
    contains_forbidden_keyword,
    extract_sql_candidate,
    mask_literals,
    sanitize_sql,
    split_literals,
    strip_comments,
)


class TestCandidateExtraction:
    """Test extract_sql_candidate()"""

    def test_fenced_block_preferred(self):
        text = "Here is the query:\n```sql\nSELECT p.full_name\nFROM patients p\n```\nHope it helps!"
        assert extract_sql_candidate(text) == "SELECT p.full_name\nFROM patients p"

    def test_fenced_block_without_language_tag(self):
        assert extract_sql_candidate("```\nSELECT 1 FROM t\n```") == "SELECT 1 FROM t"

    def test_unclosed_fence(self):
        assert extract_sql_candidate("```sql\nSELECT id FROM patients") == "SELECT id FROM patients"

    def test_inline_span(self):
        assert extract_sql_candidate("Run `SELECT * FROM patients` to see them") == "SELECT * FROM patients"

    def test_inline_span_without_sql_is_ignored(self):
        text = "The `patients` table has SELECT access"
        assert extract_sql_candidate(text) == text

    def test_raw_text_trimmed(self):
        assert extract_sql_candidate("  SELECT 1 FROM t  ") == "SELECT 1 FROM t"


class TestReadOnlyEnforcement:
    """Destructive statements never survive sanitization"""

    @pytest.mark.parametrize(
        "text",
        [
            "DROP TABLE patients",
            "delete from patients",
            "SELECT 1 FROM t; DELETE FROM patients",
            "```sql\nUPDATE patients SET gender = 'F'\n```",
            "WITH x AS (SELECT 1) INSERT INTO t SELECT * FROM x",
            "Truncate table visits",
            "ALTER TABLE patients ADD COLUMN x INT",
            "CREATE TABLE copy AS SELECT * FROM patients",
        ],
    )
    def test_forbidden_statements_rejected(self, text):
        assert sanitize_sql(text) == ""

    def test_keyword_inside_identifier_is_allowed(self):
        sql = "SELECT created_at, last_update FROM visits"
        assert not contains_forbidden_keyword(sql)
        assert sanitize_sql(sql) == "SELECT created_at, last_update FROM visits;"


class TestCleanup:
    """Comments, markup and whitespace"""

    def test_comments_removed_but_literals_kept(self):
        sql = "SELECT a -- trailing comment\nFROM t /* block */ WHERE b = '--keep /* me */'"
        assert sanitize_sql(sql) == "SELECT a FROM t WHERE b = '--keep /* me */';"

    def test_strip_comments_is_quote_aware(self):
        assert strip_comments("SELECT '--x' -- y") == "SELECT '--x' "

    def test_markdown_emphasis_removed(self):
        assert sanitize_sql("**SELECT** p.patient_id FROM patients p") == "SELECT p.patient_id FROM patients p;"

    def test_template_tokens_removed(self):
        assert sanitize_sql("SELECT p.patient_id FROM patients p</s>") == "SELECT p.patient_id FROM patients p;"

    def test_whitespace_collapsed_outside_literals(self):
        sql = "SELECT *\n\n   FROM   t\n WHERE name = 'a   b'"
        assert sanitize_sql(sql) == "SELECT * FROM t WHERE name = 'a   b';"

    def test_parentheses_untouched(self):
        sql = "SELECT COUNT(*) FROM (SELECT patient_id FROM patients) sub"
        assert sanitize_sql(sql) == "SELECT COUNT(*) FROM (SELECT patient_id FROM patients) sub;"

    def test_prose_before_statement_dropped(self):
        assert sanitize_sql("Sure! Here you go: SELECT id FROM t") == "SELECT id FROM t;"


class TestStatementIsolation:
    """Exactly one statement, terminated once"""

    def test_cut_at_first_statement(self):
        assert sanitize_sql("SELECT 1 FROM t; SELECT 2 FROM u;") == "SELECT 1 FROM t;"

    def test_semicolon_inside_literal_not_a_terminator(self):
        assert sanitize_sql("SELECT * FROM t WHERE x = 'a;b'; more text") == "SELECT * FROM t WHERE x = 'a;b';"

    def test_repeated_terminators_collapse(self):
        assert sanitize_sql("SELECT 1 FROM t ;;;") == "SELECT 1 FROM t;"

    def test_cte_start(self):
        text = "Answer:\nWITH recent AS (SELECT * FROM visits) SELECT * FROM recent"
        assert sanitize_sql(text) == "WITH recent AS (SELECT * FROM visits) SELECT * FROM recent;"

    @pytest.mark.parametrize("text", ["", "   ", None, "I don't know how to answer that."])
    def test_no_sql_returns_empty(self, text):
        assert sanitize_sql(text) == ""


class TestIdempotence:
    """sanitize(sanitize(x)) == sanitize(x)"""

    @pytest.mark.parametrize(
        "text",
        [
            "```sql\nSELECT p.full_name -- name\nFROM patients p\n```",
            "SELECT * FROM t WHERE note = 'it''s; fine' AND x = 1",
            "SELECT `full_name` FROM `patients`",
            "SELECT * FROM t WHERE name = 'unterminated",
            "<s>SELECT **id** FROM [docs](http://example.com) t</s>",
            "WITH a AS (SELECT 1 AS x) SELECT x FROM a;;",
            "DROP TABLE t",
            "SELECT**WITH_AS)",
            "SELECT[d](http://e);<s>)",
            "SELECT**id FROM**t",
            "-**- SELECT 1 FROM t",
            "SELECT a FROM t /* x */**/* y */",
        ],
    )
    def test_idempotent(self, text):
        once = sanitize_sql(text)
        assert sanitize_sql(once) == once

    def test_markup_between_words_keeps_them_apart(self):
        assert sanitize_sql("SELECT**WITH_AS)") == "SELECT WITH_AS);"

    def test_link_glued_to_keyword_keeps_them_apart(self):
        assert sanitize_sql("SELECT[d](http://e);<s>)") == "SELECT d;"

    def test_markup_removed_before_finding_statement(self):
        assert sanitize_sql("Query:**SELECT** id FROM t") == "SELECT id FROM t;"


class TestLiteralScanning:
    def test_split_literals(self):
        assert split_literals("SELECT 'a b' FROM t") == [(False, "SELECT "), (True, "'a b'"), (False, " FROM t")]

    def test_doubled_quote_stays_inside_literal(self):
        assert split_literals("'it''s'") == [(True, "'it''s'")]

    def test_mask_preserves_length(self):
        sql = "SELECT 'FROM' FROM t"
        masked = mask_literals(sql)
        assert len(masked) == len(sql)
        assert masked.count("FROM") == 1
