"""Small boolean expression evaluator for Branch conditions.

Supports scope paths (``user.name``), literals (``null``, ``true``, ``false``,
numbers, quoted strings), comparisons (``== != < <= > >=``), ``!``, ``&&``,
``||`` and parentheses. Anything else raises ``ExpressionEvaluationError``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Mapping
from typing import Any

from colloquy.errors import ExpressionEvaluationError
from colloquy.state.paths import SCOPES, get_path

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>'[^']*'|"[^"]*")
      | (?P<op>==|!=|<=|>=|&&|\|\||[<>!()])
      | (?P<name>[A-Za-z_][\w]*(?:\.[A-Za-z_][\w]*)*)
    )""",
    re.VERBOSE,
)

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}
_LITERALS: dict[str, Any] = {"null": None, "true": True, "false": False}


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    position = 0
    stripped = expression.rstrip()
    while position < len(stripped):
        match = _TOKEN.match(stripped, position)
        if match is None or match.end() == position:
            raise ExpressionEvaluationError(expression, f"unexpected input at {position}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        position = match.end()
    if not tokens:
        raise ExpressionEvaluationError(expression, "empty expression")
    return tokens


class _Parser:
    def __init__(self, expression: str, scopes: Mapping[str, Any]) -> None:
        self.expression = expression
        self.scopes = scopes
        self.tokens = _tokenize(expression)
        self.index = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _take(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise ExpressionEvaluationError(self.expression, "unexpected end of expression")
        self.index += 1
        return token

    def _accept(self, op: str) -> bool:
        token = self._peek()
        if token == ("op", op):
            self.index += 1
            return True
        return False

    def parse(self) -> Any:
        value = self._or()
        if self._peek() is not None:
            raise ExpressionEvaluationError(self.expression, f"unexpected {self._peek()[1]!r}")
        return value

    def _or(self) -> Any:
        value = self._and()
        while self._accept("||"):
            right = self._and()
            value = bool(value) or bool(right)
        return value

    def _and(self) -> Any:
        value = self._not()
        while self._accept("&&"):
            right = self._not()
            value = bool(value) and bool(right)
        return value

    def _not(self) -> Any:
        if self._accept("!"):
            return not self._not()
        return self._comparison()

    def _comparison(self) -> Any:
        left = self._operand()
        token = self._peek()
        if token is not None and token[0] == "op" and token[1] in _COMPARISONS:
            self.index += 1
            right = self._operand()
            try:
                return _COMPARISONS[token[1]](left, right)
            except TypeError as exc:
                raise ExpressionEvaluationError(self.expression, str(exc)) from exc
        return left

    def _operand(self) -> Any:
        kind, text = self._take()
        if kind == "number":
            return float(text) if "." in text else int(text)
        if kind == "string":
            return text[1:-1]
        if kind == "op" and text == "(":
            value = self._or()
            if not self._accept(")"):
                raise ExpressionEvaluationError(self.expression, "missing ')'")
            return value
        if kind == "name":
            if text in _LITERALS:
                return _LITERALS[text]
            scope, _, rest = text.partition(".")
            if scope not in SCOPES or not rest:
                raise ExpressionEvaluationError(self.expression, f"unknown reference {text!r}")
            return get_path(dict(self.scopes.get(scope) or {}), rest.split("."))
        raise ExpressionEvaluationError(self.expression, f"unexpected {text!r}")


class SimpleExpressionEvaluator:
    async def evaluate(self, expression: str, scopes: Mapping[str, Any]) -> Any:
        return _Parser(expression, scopes).parse()


__all__ = ["SimpleExpressionEvaluator"]
