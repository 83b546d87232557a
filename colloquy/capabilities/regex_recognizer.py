"""Regular-expression intent recognizer."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from colloquy.models.recognizer import IntentScore, RecognizerResult


class RegexRecognizer:
    """Map intents to case-insensitive patterns searched in the utterance.

    Every matching intent scores 1.0; ranking follows declaration order.
    Named groups of the winning patterns become entities.
    """

    def __init__(self, intents: Mapping[str, str]) -> None:
        self._patterns: dict[str, re.Pattern[str]] = {
            name: re.compile(pattern, re.IGNORECASE) for name, pattern in intents.items()
        }

    @property
    def intents(self) -> list[str]:
        return list(self._patterns)

    async def recognize(self, text: str, scopes: Mapping[str, Any]) -> RecognizerResult:
        del scopes
        intents: list[IntentScore] = []
        entities: dict[str, Any] = {}
        for name, pattern in self._patterns.items():
            match = pattern.search(text)
            if match is None:
                continue
            intents.append(IntentScore(name=name, score=1.0))
            for key, value in match.groupdict().items():
                if value is not None:
                    entities.setdefault(key, value)
        return RecognizerResult(text=text, intents=intents, entities=entities)


__all__ = ["RegexRecognizer"]
