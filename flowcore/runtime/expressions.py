"""
Expression Evaluator for flow templates and conditions.

Evaluates the small expression language used inside ``{{ ... }}``
placeholders in step inputs, conditions, router rules and prompts.

Supported:
    {{ intent-classifier.intent == 'complaint' }}
    {{ knowledge-lookup.chunks.length > 0 }}
    {{ trigger.content }}
    {{ context.accountId }}
    {{ !(a.done || b.done) && c.score >= 0.5 }}

Grammar (precedence low -> high):
    or          := and ( "||" and )*
    and         := comparison ( "&&" comparison )*
    comparison  := unary ( ("==" | "!=" | ">" | "<" | ">=" | "<=") unary )?
    unary       := "!" unary | primary
    primary     := value | "(" or ")"

Identifiers may contain hyphens so kebab-case step IDs can be addressed.
``ident(.ident)*`` chains are resolved against the context before parsing;
a missing segment yields None and never raises. There are no arithmetic
operators and no calls: nothing in an expression can execute code.

Error contract:
    ``evaluate_expression`` never raises. Failures are logged as warnings
    and produce None; callers that want to see them pass a ``diagnostics``
    list and receive ``ExpressionError`` values. ``evaluate_condition``
    treats anything that fails as False (fail closed).
"""

from __future__ import annotations

import json
import logging
import math
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# One placeholder whose body holds no other placeholder delimiters.
_SINGLE_PLACEHOLDER_RE = re.compile(r"\{\{\s*((?:(?!\{\{|\}\}).)+?)\s*\}\}", re.DOTALL)
_PLACEHOLDER_RE = re.compile(r"\{\{\s*(.+?)\s*\}\}", re.DOTALL)

_TWO_CHAR_OPS = ("==", "!=", ">=", "<=", "&&", "||")
_COMPARISON_OPS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


# =============================================================================
# Errors and results
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExpressionError:
    """Why an expression could not be evaluated."""

    expression: str
    message: str

    def __str__(self) -> str:
        return f'"{self.expression}": {self.message}'


@dataclass(frozen=True, slots=True)
class EvaluationResult:
    """Value of an evaluated expression, or the error that prevented it."""

    value: Any = None
    error: ExpressionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# Tokenizer
# =============================================================================


class TokenKind(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    IDENT = "ident"
    OP = "op"
    NOT = "not"
    DOT = "dot"
    LPAREN = "lparen"
    RPAREN = "rparen"
    # Produced by chain resolution, never by the tokenizer
    VALUE = "value"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: Any = None

    def __repr__(self) -> str:
        if self.value is None:
            return f"Token({self.kind.value})"
        return f"Token({self.kind.value}, {self.value!r})"


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch in "_-")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _parse_number(text: str) -> int | float:
    try:
        if "." in text:
            return float(text)
        return int(text)
    except ValueError:
        # "1.2.3" and similar are not numbers
        return math.nan


def tokenize(expr: str) -> list[Token]:
    """
    Split an expression into tokens.

    Unknown characters are skipped. An unterminated string runs to the
    end of the input.
    """
    tokens: list[Token] = []
    i = 0
    length = len(expr)

    while i < length:
        ch = expr[i]

        if ch.isspace():
            i += 1
            continue

        if ch in ("'", '"'):
            quote = ch
            chars: list[str] = []
            i += 1
            while i < length and expr[i] != quote:
                if expr[i] == "\\" and i + 1 < length:
                    chars.append(expr[i + 1])
                    i += 2
                else:
                    chars.append(expr[i])
                    i += 1
            i += 1  # closing quote
            tokens.append(Token(TokenKind.STRING, "".join(chars)))
            continue

        if _is_digit(ch) or (ch == "-" and i + 1 < length and _is_digit(expr[i + 1])):
            start = i
            if ch == "-":
                i += 1
            while i < length and (_is_digit(expr[i]) or expr[i] == "."):
                i += 1
            tokens.append(Token(TokenKind.NUMBER, _parse_number(expr[start:i])))
            continue

        two = expr[i : i + 2]
        if two in _TWO_CHAR_OPS:
            tokens.append(Token(TokenKind.OP, two))
            i += 2
            continue

        if ch in (">", "<"):
            tokens.append(Token(TokenKind.OP, ch))
            i += 1
            continue

        if ch == "!":
            tokens.append(Token(TokenKind.NOT))
            i += 1
            continue
        if ch == ".":
            tokens.append(Token(TokenKind.DOT))
            i += 1
            continue
        if ch == "(":
            tokens.append(Token(TokenKind.LPAREN))
            i += 1
            continue
        if ch == ")":
            tokens.append(Token(TokenKind.RPAREN))
            i += 1
            continue

        if _is_ident_start(ch):
            start = i
            while i < length and _is_ident_char(expr[i]):
                i += 1
            ident = expr[start:i]
            if ident == "true":
                tokens.append(Token(TokenKind.BOOLEAN, True))
            elif ident == "false":
                tokens.append(Token(TokenKind.BOOLEAN, False))
            elif ident in ("null", "undefined"):
                tokens.append(Token(TokenKind.NULL))
            else:
                tokens.append(Token(TokenKind.IDENT, ident))
            continue

        i += 1

    return tokens


# =============================================================================
# Path resolution
# =============================================================================


def _get_segment(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    if name == "length" and isinstance(value, (list, tuple, str)):
        return len(value)
    if name.startswith("_") or isinstance(value, (str, int, float, list, tuple)):
        return None
    return getattr(value, name, None)


def resolve_path(obj: Any, parts: list[str]) -> Any:
    """Walk ``parts`` into ``obj``. Any missing segment yields None."""
    current = obj
    for part in parts:
        if current is None:
            return None
        current = _get_segment(current, part)
    return current


def _resolve_chains(tokens: list[Token], ctx: Mapping[str, Any]) -> list[Token]:
    """Collapse ident(.ident)* chains and literals into VALUE tokens."""
    resolved: list[Token] = []
    i = 0
    count = len(tokens)

    while i < count:
        tok = tokens[i]

        if tok.kind is TokenKind.IDENT:
            parts = [tok.value]
            i += 1
            while (
                i + 1 < count
                and tokens[i].kind is TokenKind.DOT
                and tokens[i + 1].kind is TokenKind.IDENT
            ):
                parts.append(tokens[i + 1].value)
                i += 2
            resolved.append(Token(TokenKind.VALUE, resolve_path(ctx, parts)))
            continue

        if tok.kind in (TokenKind.STRING, TokenKind.NUMBER, TokenKind.BOOLEAN):
            resolved.append(Token(TokenKind.VALUE, tok.value))
        elif tok.kind is TokenKind.NULL:
            resolved.append(Token(TokenKind.VALUE, None))
        elif tok.kind in (TokenKind.OP, TokenKind.NOT, TokenKind.LPAREN, TokenKind.RPAREN):
            resolved.append(tok)
        # stray dots are dropped
        i += 1

    return resolved


# =============================================================================
# Value semantics
# =============================================================================


def is_truthy(value: Any) -> bool:
    """
    Truthiness of the flow authoring language.

    Lists and dicts are always truthy, even when empty.
    """
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def loose_equals(left: Any, right: Any) -> bool:
    """
    Loose equality used by ``==`` and ``!=``.

    None only equals None. Booleans compare as 0/1 against numbers and
    strings; numbers and numeric strings compare numerically.
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) and not isinstance(right, bool):
        left = 1 if left else 0
    if isinstance(right, bool) and not isinstance(left, bool):
        right = 1 if right else 0
    if _is_number(left) and isinstance(right, str):
        return left == _to_number(right)
    if isinstance(left, str) and _is_number(right):
        return _to_number(left) == right
    return left == right


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    compare = _COMPARISON_OPS[op]
    if isinstance(left, str) and isinstance(right, str):
        return compare(left, right)
    x, y = _to_number(left), _to_number(right)
    if math.isnan(x) or math.isnan(y):
        return False
    return compare(x, y)


# =============================================================================
# Parser
# =============================================================================


class _ResolvedParser:
    """Recursive-descent evaluator over resolved tokens."""

    def __init__(self, tokens: list[Token]):
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _peek_op(self, *ops: str) -> str | None:
        tok = self._peek()
        if tok is not None and tok.kind is TokenKind.OP and tok.value in ops:
            return tok.value
        return None

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def parse(self) -> Any:
        return self._parse_or()

    def _parse_or(self) -> Any:
        left = self._parse_and()
        while self._peek_op("||"):
            self._advance()
            right = self._parse_and()
            left = left if is_truthy(left) else right
        return left

    def _parse_and(self) -> Any:
        left = self._parse_comparison()
        while self._peek_op("&&"):
            self._advance()
            right = self._parse_comparison()
            left = right if is_truthy(left) else left
        return left

    def _parse_comparison(self) -> Any:
        left = self._parse_unary()
        op = self._peek_op("==", "!=", ">", "<", ">=", "<=")
        if op is None:
            return left
        self._advance()
        right = self._parse_unary()
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)
        return _compare(op, left, right)

    def _parse_unary(self) -> Any:
        tok = self._peek()
        if tok is not None and tok.kind is TokenKind.NOT:
            self._advance()
            return not is_truthy(self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Any:
        tok = self._peek()
        if tok is None:
            return None

        if tok.kind is TokenKind.VALUE:
            self._advance()
            return tok.value

        if tok.kind is TokenKind.LPAREN:
            self._advance()
            value = self._parse_or()
            closing = self._peek()
            if closing is not None and closing.kind is TokenKind.RPAREN:
                self._advance()
            return value

        # operator or ")" where a value was expected
        self._advance()
        return None


# =============================================================================
# Public API
# =============================================================================


def try_evaluate(expr: str, ctx: Mapping[str, Any]) -> EvaluationResult:
    """Evaluate an expression, returning the value or the error explicitly."""
    try:
        tokens = tokenize(expr.strip())
        if not tokens:
            return EvaluationResult(value=None)
        value = _ResolvedParser(_resolve_chains(tokens, ctx)).parse()
        return EvaluationResult(value=value)
    except Exception as e:
        return EvaluationResult(error=ExpressionError(expression=expr, message=str(e) or type(e).__name__))


def evaluate_expression(
    expr: str,
    ctx: Mapping[str, Any],
    diagnostics: list[ExpressionError] | None = None,
) -> Any:
    """
    Evaluate an expression against a context object.

    Never raises: evaluation failures are logged and yield None.

    Args:
        expr: Expression without the surrounding ``{{ }}``
        ctx: Resolution namespace (see ContextBus.to_resolution_context)
        diagnostics: Optional list that receives ExpressionError values

    Returns:
        The evaluated value, or None
    """
    result = try_evaluate(expr, ctx)
    if result.error is not None:
        logger.warning(f"[expressions] Failed to evaluate {result.error}")
        if diagnostics is not None:
            diagnostics.append(result.error)
        return None
    return result.value


def evaluate_condition(
    expression: str,
    ctx: Mapping[str, Any],
    diagnostics: list[ExpressionError] | None = None,
) -> bool:
    """
    Evaluate a condition to a boolean.

    A surrounding ``{{ }}`` is optional. Malformed conditions are False.
    """
    expr = expression.strip()
    match = _SINGLE_PLACEHOLDER_RE.fullmatch(expr)
    if match:
        expr = match.group(1)
    return is_truthy(evaluate_expression(expr, ctx, diagnostics))


def stringify(value: Any) -> str:
    """Render a resolved value for string interpolation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(to_plain(value), separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def to_plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def resolve_template(
    template: str,
    ctx: Mapping[str, Any],
    diagnostics: list[ExpressionError] | None = None,
) -> Any:
    """
    Resolve ``{{ expr }}`` placeholders in a string.

    If the whole (trimmed) string is a single placeholder, the evaluated
    value is returned with its native type. Otherwise every placeholder is
    interpolated as text and the result is always a string; None renders
    as an empty string.

    Example:
        >>> resolve_template("{{ a.b }}", {"a": {"b": 5}})
        5
        >>> resolve_template("x={{a.b}}", {"a": {"b": 5}})
        'x=5'
    """
    trimmed = template.strip()

    single = _SINGLE_PLACEHOLDER_RE.fullmatch(trimmed)
    if single:
        return evaluate_expression(single.group(1), ctx, diagnostics)

    return _PLACEHOLDER_RE.sub(
        lambda m: stringify(evaluate_expression(m.group(1), ctx, diagnostics)),
        trimmed,
    )


__all__ = [
    "EvaluationResult",
    "ExpressionError",
    "Token",
    "TokenKind",
    "evaluate_condition",
    "evaluate_expression",
    "is_truthy",
    "loose_equals",
    "resolve_path",
    "resolve_template",
    "stringify",
    "to_plain",
    "tokenize",
    "try_evaluate",
]
