from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from colloquy.errors import TurnCancelled
from colloquy.models.messages import Activity, OutboundMessage
from colloquy.models.recognizer import RecognizerResult
from colloquy.models.stack import DialogStack

if TYPE_CHECKING:
    from colloquy.state.memory import ScopeMemory
    from colloquy.state.scopes import CachedState, ScopeKind


@dataclass(slots=True)
class TurnContext:
    """Everything one inbound turn reads or writes. Discarded at turn end."""

    activity: Activity
    turn_id: str
    cancel_event: asyncio.Event | None = None
    turn_state: dict[str, Any] = field(default_factory=dict)
    state_cache: dict[ScopeKind, CachedState] = field(default_factory=dict)
    stack: DialogStack = field(default_factory=DialogStack)
    memory: ScopeMemory | None = None
    new_conversation: bool = False
    responses: list[OutboundMessage] = field(default_factory=list)
    recognitions: dict[int, RecognizerResult] = field(default_factory=dict)
    steps_executed: int = 0

    @property
    def text(self) -> str:
        return self.activity.text

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise TurnCancelled(f"turn {self.turn_id} cancelled")

    def send(self, message: str | OutboundMessage) -> None:
        if isinstance(message, str):
            message = OutboundMessage(text=message)
        if message.conversation_id is None:
            message = message.model_copy(update={"conversation_id": self.activity.conversation_id})
        self.responses.append(message)


__all__ = ["TurnContext"]
