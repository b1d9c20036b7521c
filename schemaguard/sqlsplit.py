"""Split PostgreSQL migration scripts into statements and classify them.

The splitter is a small purpose-built lexer, not a full SQL parser. It
understands the constructs that break a naive split on semicolons:

* line comments (``-- ...``)
* block comments (``/* ... */``, nested)
* single-quoted strings with ``''`` escapes
* double-quoted identifiers with ``""`` escapes
* dollar-quoted strings (``$$...$$`` and ``$tag$...$tag$``)

Only top-level semicolons end a statement. Empty and comment-only
statements are dropped, and every statement is stripped of surrounding
whitespace but otherwise left untouched.
"""

from __future__ import annotations

from collections.abc import Iterable

_WHITESPACE = " \t\r\n"
_IDENT_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_"
)
_DIGITS = frozenset("0123456789")
_TX_CONTROL_KEYWORDS = frozenset({"BEGIN", "COMMIT", "ROLLBACK", "END"})


def _skip_line_comment(sql: str, pos: int) -> int:
    """Return the position of the newline ending the comment at ``pos``."""
    end = sql.find("\n", pos)
    return len(sql) if end < 0 else end


def _skip_block_comment(sql: str, pos: int) -> int:
    """Return the position just past the (possibly nested) block comment."""
    n = len(sql)
    depth = 1
    pos += 2
    while pos < n and depth > 0:
        pair = sql[pos : pos + 2]
        if pair == "/*":
            depth += 1
            pos += 2
        elif pair == "*/":
            depth -= 1
            pos += 2
        else:
            pos += 1
    return pos


def _skip_quoted(sql: str, pos: int, quote: str) -> int:
    """Return the position just past the quoted run starting at ``pos``."""
    n = len(sql)
    pos += 1
    while pos < n:
        if sql[pos] == quote:
            if sql[pos + 1 : pos + 2] == quote:
                pos += 2
                continue
            return pos + 1
        pos += 1
    return n


def _dollar_tag(sql: str, pos: int) -> str | None:
    """Return the dollar-quote opening tag at ``pos``, or None if there is none.

    Tags are ``$$`` or ``$name$`` where name is made of ASCII letters,
    digits and underscores and does not start with a digit.
    """
    n = len(sql)
    if pos >= n or sql[pos] != "$":
        return None
    end = pos + 1
    if end < n and sql[end] in _DIGITS:
        return None
    while end < n and sql[end] in _IDENT_CHARS:
        end += 1
    if end < n and sql[end] == "$":
        return sql[pos : end + 1]
    return None


def _skip_dollar_quoted(sql: str, pos: int, tag: str) -> int:
    """Return the position just past the dollar-quoted body; unterminated runs to the end."""
    close = sql.find(tag, pos + len(tag))
    if close < 0:
        return len(sql)
    return close + len(tag)


def split_statements(sql: str) -> list[str]:
    """Split a PostgreSQL script into its top-level statements."""
    statements: list[str] = []
    n = len(sql)
    start = 0
    pos = 0

    def emit(end: int) -> None:
        stmt = sql[start:end].strip()
        if stmt and trim_leading_comments(stmt):
            statements.append(stmt)

    while pos < n:
        char = sql[pos]
        nxt = sql[pos + 1 : pos + 2]

        if char == "-" and nxt == "-":
            pos = _skip_line_comment(sql, pos)
        elif char == "/" and nxt == "*":
            pos = _skip_block_comment(sql, pos)
        elif char in "'\"":
            pos = _skip_quoted(sql, pos, char)
        elif char == "$" and (tag := _dollar_tag(sql, pos)) is not None:
            pos = _skip_dollar_quoted(sql, pos, tag)
        elif char == ";":
            emit(pos)
            pos += 1
            start = pos
        else:
            pos += 1

    emit(n)
    return statements


def trim_leading_comments(s: str) -> str:
    """Strip leading whitespace, line comments and block comments from ``s``.

    Returns an empty string when nothing but comments and whitespace remain.
    """
    while True:
        s = s.lstrip(_WHITESPACE)
        if s.startswith("--"):
            newline = s.find("\n")
            if newline < 0:
                return ""
            s = s[newline + 1 :]
        elif s.startswith("/*"):
            close = s.find("*/")
            if close < 0:
                return ""
            s = s[close + 2 :]
        else:
            return s


def is_tx_control(stmt: str) -> bool:
    """Report whether ``stmt`` is a transaction-control statement."""
    fields = trim_leading_comments(stmt).split()
    if not fields:
        return False
    first = fields[0].rstrip(";").upper()
    if first in _TX_CONTROL_KEYWORDS:
        return True
    return first == "START" and len(fields) >= 2 and fields[1].upper() == "TRANSACTION"


def has_explicit_transaction(stmts: Iterable[str]) -> bool:
    """Report whether any statement manages its own transaction boundaries.

    When true, the migration must not be wrapped in an implicit
    transaction, since that would nest transactions.
    """
    return any(is_tx_control(stmt) for stmt in stmts)