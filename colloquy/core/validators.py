"""Built-in prompt validators.

A validator takes the stripped user text and returns the value to bind, or
raises ``ValueError`` to reject it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

PromptValidator = Callable[[str], Any]

_YES = {"y", "yes", "yep", "yeah", "sure", "ok", "true"}
_NO = {"n", "no", "nope", "nah", "false"}


def validate_text(text: str) -> str:
    if not text:
        raise ValueError("expected some text")
    return text


def validate_integer(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"not a whole number: {text!r}") from None


def validate_number(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"not a number: {text!r}") from None


def validate_boolean(text: str) -> bool:
    lowered = text.lower()
    if lowered in _YES:
        return True
    if lowered in _NO:
        return False
    raise ValueError(f"expected yes or no, got {text!r}")


BUILTIN_VALIDATORS: dict[str, PromptValidator] = {
    "text": validate_text,
    "integer": validate_integer,
    "number": validate_number,
    "boolean": validate_boolean,
}


__all__ = [
    "BUILTIN_VALIDATORS",
    "PromptValidator",
    "validate_boolean",
    "validate_integer",
    "validate_number",
    "validate_text",
]
