"""SQL front-end for the query console.

Tokenizing and parsing are delegated to sqlglot's Presto grammar. The text is
passed through the case-folding source before tokenization, token values are
restored from the raw text afterwards, and every diagnostic is forwarded to an
attached error listener instead of being raised.

sqlglot is more forgiving than Presto. The console dialect narrows it back:
row clauses only take an integer (or ``ALL`` for ``LIMIT``), the statement
root must be a statement rather than a bare expression, and text sqlglot
leaves unparsed is accepted only for known utility statements.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

from sqlglot import exp
from sqlglot.dialects.presto import Presto
from sqlglot.errors import ErrorLevel, ParseError, TokenError
from sqlglot.tokens import Token, TokenType

from common.errors.error_codes import ErrorCode
from common.sql.char_source import CaseFoldingSource, normalize_source

logger = logging.getLogger(__name__)

_MAX_PARSE_ERRORS = 5

# Node types accepted as a statement root. Looked up by name so that types
# missing from older sqlglot releases are skipped.
_STATEMENT_TYPE_NAMES = (
    "Query",
    "Values",
    "Insert",
    "Update",
    "Delete",
    "Merge",
    "Create",
    "Drop",
    "Alter",
    "TruncateTable",
    "Use",
    "Set",
    "Describe",
    "Show",
    "Grant",
    "Revoke",
    "Transaction",
    "Commit",
    "Rollback",
    "Analyze",
    "Comment",
    "Refresh",
    "Command",
)
STATEMENT_TYPES = tuple(
    getattr(exp, name) for name in _STATEMENT_TYPE_NAMES if hasattr(exp, name)
)

# Presto statements that sqlglot may keep as unparsed command text.
UTILITY_COMMANDS = frozenset(
    {
        "ALTER",
        "ANALYZE",
        "CALL",
        "COMMENT",
        "CREATE",
        "DEALLOCATE",
        "DESCRIBE",
        "DROP",
        "EXECUTE",
        "EXPLAIN",
        "GRANT",
        "PREPARE",
        "RESET",
        "REVOKE",
        "SET",
        "SHOW",
        "START",
        "USE",
    }
)

SHOW_TARGETS = frozenset(
    {
        "CATALOGS",
        "COLUMNS",
        "CREATE",
        "CURRENT",
        "FUNCTIONS",
        "GRANTS",
        "ROLE",
        "ROLES",
        "SCHEMAS",
        "SESSION",
        "STATS",
        "TABLES",
    }
)

_EXPLAIN_OPTION_WORDS = frozenset({"ANALYZE", "VERBOSE"})


class SyntaxErrorListener(Protocol):
    """Callback invoked by the front-end for each syntax error."""

    def syntax_error(
        self,
        recognizer: Any,
        offending_symbol: Any,
        line: int,
        column: int,
        exc: Optional[BaseException],
        message: str,
    ) -> None: ...


class StatementShapeError(ValueError):
    """Input does not form exactly one supported statement."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.SQL_SYNTAX_ERROR):
        super().__init__(message)
        self.code = code


class PrestoConsole(Presto):
    """Presto dialect as used by the query console.

    ``LIMIT`` takes an integer or ``ALL``; ``FETCH`` only takes the
    ``FETCH FIRST <integer> ROWS ONLY`` form; ``TABLE t`` is read as a query.
    """

    class Parser(Presto.Parser):
        def _parse_statement(self):
            if self._curr and self._curr.token_type == TokenType.TABLE:
                self._advance()
                query = exp.select("*").from_(self._parse_table_parts(), copy=False)
                query = self._parse_query_modifiers(query)
                return self._parse_query_modifiers(self._parse_set_operations(query))
            return super()._parse_statement()

        def _parse_limit(self, this=None, top=False, **kwargs):
            if top or kwargs.get("skip_limit_token"):
                return super()._parse_limit(this, top=top, **kwargs)

            if self._match(TokenType.LIMIT):
                if self._match(TokenType.ALL):
                    return exp.Limit(this=this, expression=exp.var("ALL"))
                count = self._parse_row_count("LIMIT must be followed by an integer or ALL")
                return exp.Limit(this=this, expression=count)

            if self._match(TokenType.FETCH):
                return self._parse_fetch_first()

            return super()._parse_limit(this, top=top, **kwargs)

        def _parse_row_count(self, message: str) -> Optional[exp.Literal]:
            token = self._curr
            if token is not None and token.token_type == TokenType.NUMBER and token.text.isdigit():
                self._advance()
                return exp.Literal.number(token.text)
            self.raise_error(message)
            return None

        def _parse_fetch_first(self) -> exp.Fetch:
            if not self._match(TokenType.FIRST):
                self.raise_error("FETCH must be followed by FIRST")
                return exp.Fetch(direction="FIRST")
            count = self._parse_row_count("FETCH FIRST must be followed by an integer")
            if count is not None and not self._match_text_seq("ROWS", "ONLY"):
                self.raise_error("FETCH FIRST n must be followed by ROWS ONLY")
            return exp.Fetch(direction="FIRST", count=count)


DIALECT = PrestoConsole()


def _end_of_input(text: str) -> tuple[int, int]:
    line = text.count("\n") + 1
    column = len(text) - (text.rfind("\n") + 1)
    return line, column


def _restore_raw_text(tokens: List[Token], source: CaseFoldingSource) -> None:
    """Put the user's original spelling back into tokens cut from folded text.

    Tokens whose value is not the literal lexeme (quoted strings and
    identifiers) keep the value the tokenizer produced.
    """
    for token in tokens:
        raw = source.slice(token.start, token.end)
        if raw != token.text and normalize_source(raw) == token.text:
            token.text = raw


def _unfold_message(message: str, source: CaseFoldingSource) -> str:
    """Replace folded text quoted in ``message`` with the raw spelling."""
    start = message.find("'")
    end = message.rfind("'")
    if start == -1 or end <= start + 1:
        return message
    fragment = message[start + 1 : end]
    offset = source.normalized.rfind(fragment)
    if offset == -1:
        return message
    raw = source.slice(offset, offset + len(fragment) - 1)
    return f"{message[: start + 1]}{raw}{message[end:]}"


def tokenize(source: CaseFoldingSource) -> List[Token]:
    """Tokenize the folded view of ``source``; token text uses the raw spelling."""
    tokens = DIALECT.tokenize(source.read_folded())
    _restore_raw_text(tokens, source)
    return tokens


def _balanced(tokens: List[Token]) -> bool:
    depth = 0
    for token in tokens:
        if token.token_type == TokenType.L_PAREN:
            depth += 1
        elif token.token_type == TokenType.R_PAREN:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def _skip_explain_options(tokens: List[Token]) -> int:
    index = 0
    while index < len(tokens) and tokens[index].text.upper() in _EXPLAIN_OPTION_WORDS:
        index += 1
    if index < len(tokens) and tokens[index].token_type == TokenType.L_PAREN:
        depth = 0
        for position in range(index, len(tokens)):
            if tokens[position].token_type == TokenType.L_PAREN:
                depth += 1
            elif tokens[position].token_type == TokenType.R_PAREN:
                depth -= 1
                if depth == 0:
                    return position + 1
    return index


def _command_problem(text: str, keyword_token: Token) -> Optional[str]:
    """Check a statement sqlglot kept as command text. Returns an error message."""
    keyword = keyword_token.text.split()[0].upper()
    if keyword not in UTILITY_COMMANDS:
        return f"mismatched input '{keyword_token.text}': expecting a statement"

    body = text[keyword_token.end + 1 :]
    try:
        body_tokens = tokenize(CaseFoldingSource(body))
    except TokenError as exc:
        return str(exc)

    if not body_tokens:
        return f"mismatched input '<EOF>': incomplete {keyword} statement"
    if not _balanced(body_tokens):
        return f"mismatched parentheses in {keyword} statement"

    first = body_tokens[0]
    if keyword == "SHOW":
        if first.text.upper() not in SHOW_TARGETS:
            return f"mismatched input '{first.text}' after SHOW"
        return None

    if keyword == "EXPLAIN":
        index = _skip_explain_options(body_tokens)
        if index >= len(body_tokens):
            return "mismatched input '<EOF>': EXPLAIN needs a statement"
        inner = body[body_tokens[index].start :]
        sink = _FirstMessage()
        parse_statement(inner, sink)
        return f"EXPLAIN: {sink.message}" if sink.message else None

    if not (first.token_type == TokenType.IDENTIFIER or first.text[:1].isalpha()):
        return f"mismatched input '{first.text}' after {keyword}"
    return None


class _FirstMessage:
    """Listener that keeps only the first reported message."""

    def __init__(self):
        self.message: Optional[str] = None

    def syntax_error(self, recognizer, offending_symbol, line, column, exc, message):
        if self.message is None:
            self.message = message


def _statement_problem(statement: exp.Expression, text: str, tokens: List[Token]) -> Optional[str]:
    if not isinstance(statement, STATEMENT_TYPES):
        return f"mismatched input '{tokens[0].text}': expecting a statement"
    if isinstance(statement, exp.Command):
        return _command_problem(text, tokens[0])
    return None


def parse_statement(text: str, listener: SyntaxErrorListener) -> Optional[exp.Expression]:
    """Parse ``text`` as exactly one SQL statement.

    Returns the statement tree, or None after reporting at least one error to
    ``listener``.
    """
    source = CaseFoldingSource(text)

    try:
        tokens = tokenize(source)
    except TokenError as exc:
        line, column = _end_of_input(text)
        listener.syntax_error(None, None, line, column, exc, _unfold_message(str(exc), source))
        return None

    if not tokens:
        exc = StatementShapeError("empty statement", ErrorCode.SQL_EMPTY_STATEMENT)
        listener.syntax_error(None, None, 1, 0, exc, "mismatched input '<EOF>': empty statement")
        return None

    parser = DIALECT.parser(error_level=ErrorLevel.RAISE, max_errors=_MAX_PARSE_ERRORS)
    try:
        statements = parser.parse(tokens, source.text)
    except ParseError as exc:
        errors = exc.errors or [{"description": str(exc)}]
        for error in errors:
            listener.syntax_error(
                parser,
                error.get("highlight"),
                error.get("line") or 1,
                error.get("col") or 0,
                exc,
                error.get("description") or str(exc),
            )
        return None

    separators = [token for token in tokens if token.token_type == TokenType.SEMICOLON]
    if separators:
        first = separators[0]
        exc = StatementShapeError("multiple statements", ErrorCode.SQL_MULTIPLE_STATEMENTS)
        listener.syntax_error(
            parser,
            first,
            first.line,
            first.col,
            exc,
            "extraneous input ';': only one statement can be run at a time",
        )
        return None

    statements = [statement for statement in statements if statement is not None]
    if not statements:
        line, column = _end_of_input(text)
        exc = StatementShapeError("empty statement", ErrorCode.SQL_EMPTY_STATEMENT)
        listener.syntax_error(parser, None, line, column, exc, "no statement found")
        return None

    statement = statements[0]
    problem = _statement_problem(statement, text, tokens)
    if problem is not None:
        first = tokens[0]
        listener.syntax_error(
            parser, first, first.line, first.col, StatementShapeError(problem), problem
        )
        return None

    logger.debug("Parsed statement of type %s", type(statement).__name__)
    return statement
