from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from colloquy.models.messages import OutboundMessage
from colloquy.models.recognizer import RecognizerResult


@runtime_checkable
class Recognizer(Protocol):
    async def recognize(self, text: str, scopes: Mapping[str, Any]) -> RecognizerResult: ...


@runtime_checkable
class TemplateRenderer(Protocol):
    async def render(self, template: str, scopes: Mapping[str, Any]) -> str | OutboundMessage: ...


@runtime_checkable
class ExpressionEvaluator(Protocol):
    async def evaluate(self, expression: str, scopes: Mapping[str, Any]) -> Any: ...


__all__ = ["ExpressionEvaluator", "Recognizer", "TemplateRenderer"]
