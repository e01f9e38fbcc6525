"""Tests for row-limit enforcement on trimmed statement text."""

import logging

import pytest

from common.policy.row_limit_policy import RowLimitPolicy
from common.sql.limit_rewriter import (
    RewriteOutcome,
    enforce_row_limit,
    trim_statement_terminator,
)
from common.sql.query_shape import QueryShape

QUERY = QueryShape(is_top_level_query=True)
POLICY = RowLimitPolicy(max_rows=100)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SELECT 1 ;  ", "SELECT 1"),
        ("SELECT 1;", "SELECT 1"),
        ("  SELECT 1  ", "SELECT 1"),
        ("SELECT 1\n;\n", "SELECT 1"),
        ("SELECT 1;;", "SELECT 1;"),
        ("SELECT ';' AS semi", "SELECT ';' AS semi"),
    ],
)
def test_trim_statement_terminator(raw, expected):
    """Exactly one trailing terminator is removed, then whitespace is stripped."""
    assert trim_statement_terminator(raw) == expected


def test_non_query_passes_through():
    rewrite = enforce_row_limit("CREATE TABLE t (x int)", QueryShape(), POLICY)
    assert rewrite.sql == "CREATE TABLE t (x int)"
    assert rewrite.outcome == RewriteOutcome.PASSTHROUGH


def test_disabled_policy_passes_through():
    policy = RowLimitPolicy(max_rows=5, limit_enforcement_disabled=True)
    shape = QueryShape(is_top_level_query=True, limit_text="ALL")
    rewrite = enforce_row_limit("SELECT * FROM t LIMIT ALL", shape, policy)
    assert rewrite.sql == "SELECT * FROM t LIMIT ALL"
    assert rewrite.outcome == RewriteOutcome.PASSTHROUGH


def test_tightens_numeric_limit():
    shape = QueryShape(is_top_level_query=True, limit_text="500")
    rewrite = enforce_row_limit("SELECT * FROM t LIMIT 500", shape, POLICY)
    assert rewrite.sql == "SELECT * FROM t LIMIT 100"
    assert rewrite.outcome == RewriteOutcome.TIGHTEN_LIMIT
    assert rewrite.substituted is True


def test_tightens_limit_all():
    shape = QueryShape(is_top_level_query=True, limit_text="ALL")
    rewrite = enforce_row_limit("SELECT * FROM t limit all", shape, RowLimitPolicy(max_rows=50))
    assert rewrite.sql == "SELECT * FROM t LIMIT 50"


def test_tightening_keeps_whitespace_before_limit():
    shape = QueryShape(is_top_level_query=True, limit_text="500")
    rewrite = enforce_row_limit("SELECT *\nFROM t\nLIMIT   500", shape, POLICY)
    assert rewrite.sql == "SELECT *\nFROM t\nLIMIT 100"


def test_tightens_fetch_first():
    shape = QueryShape(is_top_level_query=True, fetch_first_text="1000")
    rewrite = enforce_row_limit("SELECT * FROM t fetch first 1000 rows only", shape, POLICY)
    assert rewrite.sql == "SELECT * FROM t FETCH FIRST 100 ROWS ONLY"
    assert rewrite.outcome == RewriteOutcome.TIGHTEN_FETCH


def test_injects_limit_when_absent():
    rewrite = enforce_row_limit("SELECT * FROM t", QUERY, POLICY)
    assert rewrite.sql == "SELECT * FROM t LIMIT 100"
    assert rewrite.outcome == RewriteOutcome.INJECT_LIMIT


@pytest.mark.parametrize(
    "sql, shape",
    [
        ("SELECT 1 LIMIT 10", QueryShape(is_top_level_query=True, limit_text="10")),
        ("SELECT 1 LIMIT 100", QueryShape(is_top_level_query=True, limit_text="100")),
        (
            "SELECT 1 FETCH FIRST 100 ROWS ONLY",
            QueryShape(is_top_level_query=True, fetch_first_text="100"),
        ),
    ],
)
def test_within_bounds_is_unchanged(sql, shape):
    rewrite = enforce_row_limit(sql, shape, POLICY)
    assert rewrite.sql == sql
    assert rewrite.outcome == RewriteOutcome.WITHIN_BOUNDS


def test_limit_clause_not_at_end_degrades_to_unchanged():
    """A clause the regex cannot find leaves the text as it was."""
    sql = "SELECT * FROM t LIMIT 500 -- keep this note"
    shape = QueryShape(is_top_level_query=True, limit_text="500")
    rewrite = enforce_row_limit(sql, shape, POLICY)
    assert rewrite.sql == sql
    assert rewrite.outcome == RewriteOutcome.TIGHTEN_LIMIT
    assert rewrite.substituted is False


def test_fetch_clause_not_at_end_degrades_to_unchanged():
    sql = "SELECT * FROM t FETCH FIRST 500 ROWS ONLY /* note */"
    shape = QueryShape(is_top_level_query=True, fetch_first_text="500")
    rewrite = enforce_row_limit(sql, shape, POLICY)
    assert rewrite.sql == sql
    assert rewrite.substituted is False


def test_injection_after_line_comment_starts_a_new_line(caplog):
    """A LIMIT appended after a trailing -- comment would be commented out."""
    with caplog.at_level(logging.WARNING, logger="common.sql.limit_rewriter"):
        rewrite = enforce_row_limit("SELECT * FROM t -- note", QUERY, POLICY)
    assert rewrite.sql == "SELECT * FROM t -- note\nLIMIT 100"
    assert rewrite.outcome == RewriteOutcome.INJECT_LIMIT
    assert "line comment" in caplog.text


def test_injection_after_block_comment_stays_on_the_line():
    rewrite = enforce_row_limit("SELECT * FROM t /* note */", QUERY, POLICY)
    assert rewrite.sql == "SELECT * FROM t /* note */ LIMIT 100"
