"""Channel predicate compiler.

Channel predicates come from configuration as SQL-like boolean expressions
(``sender LIKE '%@shop.example' AND is_read = 0``). They are never pasted into
a query. Instead they are tokenized, checked against a small allow-listed
grammar over ``messages`` columns, and re-emitted with every literal bound as a
``?`` parameter.

Grammar::

    expr       := and_expr ( OR and_expr )*
    and_expr   := not_expr ( AND not_expr )*
    not_expr   := NOT not_expr | '(' expr ')' | comparison
    comparison := operand [ cmp_op operand
                          | [NOT] LIKE operand
                          | IS [NOT] NULL
                          | [NOT] IN '(' operand ( ',' operand )* ')'
                          | [NOT] BETWEEN operand AND operand ]
    operand    := column | 'string' | number | TRUE | FALSE
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from email_cache_agent.cache.store import MESSAGE_COLUMNS
from email_cache_agent.exceptions import PredicateError

logger = structlog.get_logger()

_COMPARISON_OPS = {"=", "==", "!=", "<>", "<", "<=", ">", ">="}
_KEYWORDS = {"AND", "OR", "NOT", "LIKE", "IS", "NULL", "IN", "BETWEEN", "TRUE", "FALSE"}
_COLUMNS = frozenset(MESSAGE_COLUMNS)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'(?:[^']|'')*')
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<op><=|>=|<>|!=|==|=|<|>)
  | (?P<punct>[(),])
  | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class CompiledPredicate:
    """A validated predicate ready to be placed in a WHERE clause."""

    sql: str
    params: tuple[Any, ...] = ()


MATCH_ALL = CompiledPredicate(sql="1=1")


@dataclass(frozen=True)
class _Token:
    kind: str
    value: str


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise PredicateError(f"Unexpected character {text[pos]!r} at offset {pos}")
        pos = m.end()
        kind = m.lastgroup or ""
        if kind == "ws":
            continue
        value = m.group()
        if kind == "word":
            upper = value.upper()
            if upper in _KEYWORDS:
                tokens.append(_Token("kw", upper))
                continue
            lowered = value.lower()
            if lowered not in _COLUMNS:
                raise PredicateError(f"Unknown column or function {value!r}")
            tokens.append(_Token("column", lowered))
            continue
        tokens.append(_Token(kind, value))
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._params: list[Any] = []

    def parse(self) -> CompiledPredicate:
        if not self._tokens:
            raise PredicateError("Empty predicate")
        sql = self._expr()
        if self._pos != len(self._tokens):
            raise PredicateError(f"Unexpected token {self._tokens[self._pos].value!r}")
        return CompiledPredicate(sql=sql, params=tuple(self._params))

    def _peek(self, offset: int = 0) -> _Token | None:
        idx = self._pos + offset
        return self._tokens[idx] if idx < len(self._tokens) else None

    def _accept(self, kind: str, value: str | None = None) -> _Token | None:
        tok = self._peek()
        if tok is not None and tok.kind == kind and (value is None or tok.value == value):
            self._pos += 1
            return tok
        return None

    def _expect(self, kind: str, value: str | None = None) -> _Token:
        tok = self._accept(kind, value)
        if tok is None:
            found = self._peek()
            raise PredicateError(
                f"Expected {value or kind}, found {found.value if found else 'end of input'!r}"
            )
        return tok

    def _expr(self) -> str:
        parts = [self._and_expr()]
        while self._accept("kw", "OR"):
            parts.append(self._and_expr())
        return " OR ".join(parts)

    def _and_expr(self) -> str:
        parts = [self._not_expr()]
        while self._accept("kw", "AND"):
            parts.append(self._not_expr())
        return " AND ".join(parts)

    def _not_expr(self) -> str:
        if self._accept("kw", "NOT"):
            return f"NOT {self._not_expr()}"
        if self._accept("punct", "("):
            inner = self._expr()
            self._expect("punct", ")")
            return f"({inner})"
        return self._comparison()

    def _comparison(self) -> str:
        left = self._operand()

        op = self._accept("op")
        if op is not None:
            sql_op = "=" if op.value == "==" else op.value
            return f"{left} {sql_op} {self._operand()}"

        negate = ""
        nxt = self._peek()
        after = self._peek(1)
        if nxt is not None and nxt.kind == "kw" and nxt.value == "NOT" and after is not None:
            if after.kind == "kw" and after.value in {"LIKE", "IN", "BETWEEN"}:
                self._pos += 1
                negate = "NOT "

        if self._accept("kw", "LIKE"):
            return f"{left} {negate}LIKE {self._operand()}"
        if self._accept("kw", "IN"):
            self._expect("punct", "(")
            items = [self._operand()]
            while self._accept("punct", ","):
                items.append(self._operand())
            self._expect("punct", ")")
            return f"{left} {negate}IN ({', '.join(items)})"
        if self._accept("kw", "BETWEEN"):
            low = self._operand()
            self._expect("kw", "AND")
            high = self._operand()
            return f"{left} {negate}BETWEEN {low} AND {high}"
        if negate:
            raise PredicateError("Dangling NOT")
        if self._accept("kw", "IS"):
            not_part = "NOT " if self._accept("kw", "NOT") else ""
            self._expect("kw", "NULL")
            return f"{left} IS {not_part}NULL"

        return left

    def _operand(self) -> str:
        tok = self._peek()
        if tok is None:
            raise PredicateError("Unexpected end of predicate")
        self._pos += 1
        if tok.kind == "column":
            return tok.value
        if tok.kind == "string":
            self._params.append(tok.value[1:-1].replace("''", "'"))
            return "?"
        if tok.kind == "number":
            self._params.append(float(tok.value) if "." in tok.value else int(tok.value))
            return "?"
        if tok.kind == "kw" and tok.value in {"TRUE", "FALSE"}:
            self._params.append(1 if tok.value == "TRUE" else 0)
            return "?"
        raise PredicateError(f"Unexpected token {tok.value!r}")


def compile_predicate(text: str) -> CompiledPredicate:
    """Compile a channel predicate.

    Raises:
        PredicateError: If the text is outside the allowed grammar.
    """

    return _Parser(_tokenize(text)).parse()


def compile_or_match_all(text: str | None, *, channel: str | None = None) -> CompiledPredicate:
    """Compile a predicate for a read path, falling back to match-everything."""

    if not text or not text.strip():
        return MATCH_ALL
    try:
        return compile_predicate(text)
    except PredicateError as exc:
        logger.warning("channel_predicate_invalid", channel=channel, predicate=text, error=str(exc))
        return MATCH_ALL
