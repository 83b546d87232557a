from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class IntentScore(BaseModel):
    name: str
    score: float = Field(default=1.0, ge=0.0, le=1.0)


class RecognizerResult(BaseModel):
    """Ranked intents (best first) and extracted entities for one utterance."""

    text: str = ""
    intents: list[IntentScore] = Field(default_factory=list)
    entities: dict[str, Any] = Field(default_factory=dict)

    @property
    def top_intent(self) -> str | None:
        return self.intents[0].name if self.intents else None


__all__ = ["IntentScore", "RecognizerResult"]
