"""Trigger rules: declarative conditions that populate a Frame's Plan."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from colloquy.models.steps import Step


class MatchKind(StrEnum):
    intent = "intent"
    event = "event"
    fallback = "fallback"


class RuleMode(StrEnum):
    replace = "replace"
    append = "append"


class LifecycleEvent(StrEnum):
    begin_dialog = "beginDialog"
    conversation_started = "conversationStarted"


class TriggerRule(BaseModel):
    """A rule fires when its match condition holds for the active Frame.

    ``mode`` only matters when the Frame already has pending steps: ``replace``
    discards them, ``append`` queues the rule's steps behind them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    match: MatchKind
    name: str | None = None
    mode: RuleMode = RuleMode.replace
    priority: int = 0
    steps: list[Step] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_name(self) -> TriggerRule:
        if self.match == MatchKind.fallback:
            if self.name is not None:
                raise ValueError("fallback rules do not take a name")
        elif not self.name:
            raise ValueError(f"{self.match.value} rules require a name")
        return self

    @classmethod
    def on_intent(
        cls, name: str, steps: list[Step], *, mode: RuleMode = RuleMode.replace, priority: int = 0
    ) -> TriggerRule:
        return cls(match=MatchKind.intent, name=name, mode=mode, priority=priority, steps=steps)

    @classmethod
    def on_event(cls, name: str, steps: list[Step], *, priority: int = 0) -> TriggerRule:
        return cls(match=MatchKind.event, name=name, priority=priority, steps=steps)

    @classmethod
    def fallback(cls, steps: list[Step]) -> TriggerRule:
        return cls(match=MatchKind.fallback, steps=steps)

    def matches_intent(self, intent: str | None) -> bool:
        return self.match == MatchKind.intent and intent is not None and self.name == intent


__all__ = ["LifecycleEvent", "MatchKind", "RuleMode", "TriggerRule"]
