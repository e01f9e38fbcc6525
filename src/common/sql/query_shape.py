"""Detect whether a statement is a top-level query and read its row limit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlglot import exp

_SET_OPERATION_TYPES = (exp.Union, exp.Intersect, exp.Except)

# A VALUES list is a query body of its own, as in `VALUES 1, 2` or `INSERT ... VALUES`.
QUERY_BODY_TYPES = (exp.Query, exp.Values)


@dataclass(frozen=True)
class QueryShape:
    """What the limit rewriter needs to know about a parsed statement.

    ``limit_text`` and ``fetch_first_text`` hold the clause value as written
    (``"500"``, ``"ALL"``), or None when the clause is absent.
    """

    is_top_level_query: bool = False
    limit_text: Optional[str] = None
    fetch_first_text: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "is_top_level_query": self.is_top_level_query,
            "limit_text": self.limit_text,
            "fetch_first_text": self.fetch_first_text,
        }


class QueryListener(Protocol):
    """Callbacks invoked by ``walk`` around every query body."""

    def enter_query(self, node: exp.Expression, top_level: bool) -> None: ...

    def exit_query(self, node: exp.Expression, top_level: bool) -> None: ...


def walk(statement: exp.Expression, listener: QueryListener) -> None:
    """Depth-first walk of ``statement`` driving ``listener``.

    ``enter_query`` fires before a query body's children are visited and
    ``exit_query`` after. ``top_level`` is True only when the query body is
    the statement itself.
    """
    _visit(statement, listener, top_level=True)


def _visit(node: exp.Expression, listener: QueryListener, *, top_level: bool) -> None:
    is_query = isinstance(node, QUERY_BODY_TYPES)
    if is_query:
        listener.enter_query(node, top_level)
    for child in node.iter_expressions():
        _visit(child, listener, top_level=False)
    if is_query:
        listener.exit_query(node, top_level)


def _trailing_row_clause(node: exp.Expression) -> Optional[exp.Expression]:
    clause = node.args.get("limit")
    if clause is not None:
        return clause
    # Older sqlglot releases leave a trailing LIMIT on the last SELECT of a
    # set operation instead of the operation itself.
    if isinstance(node, _SET_OPERATION_TYPES):
        right = node.expression
        if isinstance(right, exp.Select):
            return right.args.get("limit")
    return None


def _literal_text(node: Optional[exp.Expression]) -> Optional[str]:
    if node is None:
        return None
    if isinstance(node, (exp.Literal, exp.Var)):
        return node.name
    return node.sql(dialect="presto")


@dataclass
class QueryShapeListener:
    """Accumulates a ``QueryShape`` for the statement root."""

    is_top_level_query: bool = False
    limit_text: Optional[str] = None
    fetch_first_text: Optional[str] = None

    def enter_query(self, node: exp.Expression, top_level: bool) -> None:
        if top_level:
            self.is_top_level_query = True

    def exit_query(self, node: exp.Expression, top_level: bool) -> None:
        if not top_level:
            return
        clause = _trailing_row_clause(node)
        self.limit_text = None
        self.fetch_first_text = None
        if isinstance(clause, exp.Fetch):
            self.fetch_first_text = _literal_text(clause.args.get("count"))
        elif isinstance(clause, exp.Limit):
            self.limit_text = _literal_text(clause.expression)

    def to_shape(self) -> QueryShape:
        return QueryShape(
            is_top_level_query=self.is_top_level_query,
            limit_text=self.limit_text,
            fetch_first_text=self.fetch_first_text,
        )


def detect_query_shape(statement: Optional[exp.Expression]) -> QueryShape:
    """Walk ``statement`` with a fresh listener and return its shape."""
    listener = QueryShapeListener()
    if statement is not None:
        walk(statement, listener)
    return listener.to_shape()
