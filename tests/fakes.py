from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from colloquy.capabilities.templates import PathTemplateRenderer
from colloquy.core.turn_controller import TurnController
from colloquy.models.messages import Activity
from colloquy.models.recognizer import IntentScore, RecognizerResult
from colloquy.models.storage import ANY_ETAG, StoreItem
from colloquy.models.turns import TurnResult
from colloquy.persistence.memory_storage import MemoryStorage

ControllerFactory = Callable[..., TurnController]


def make_activity(
    text: str,
    *,
    conversation_id: str = "conv-1",
    user_id: str = "user-1",
    channel_id: str = "test",
) -> Activity:
    return Activity(
        channel_id=channel_id,
        conversation_id=conversation_id,
        user_id=user_id,
        text=text,
    )


@dataclass(slots=True)
class KeywordRecognizer:
    """Deterministic recognizer: an intent matches when its keyword is in the text."""

    keywords: dict[str, str] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def recognize(self, text: str, scopes: Mapping[str, Any]) -> RecognizerResult:
        self.calls.append(text)
        lowered = text.lower()
        intents = [
            IntentScore(name=name) for name, keyword in self.keywords.items() if keyword in lowered
        ]
        return RecognizerResult(text=text, intents=intents)


class CancellingRenderer(PathTemplateRenderer):
    """Sets ``event`` while rendering ``trigger``, as if the caller gave up mid-turn."""

    def __init__(self, event: asyncio.Event, trigger: str) -> None:
        super().__init__()
        self.event = event
        self.trigger = trigger

    async def render(self, template: str, scopes: Mapping[str, Any]) -> str:
        if template == self.trigger:
            self.event.set()
        return await super().render(template, scopes)


class RacingStorage(MemoryStorage):
    """Overwrites selected keys right after they are read, like a concurrent writer."""

    def __init__(self) -> None:
        super().__init__()
        self.race_keys: set[str] = set()

    async def read(self, keys: Iterable[str]) -> dict[str, StoreItem]:
        wanted = list(keys)
        found = await super().read(wanted)
        for key in wanted:
            if key in self.race_keys:
                self.race_keys.discard(key)
                await super().write({key: StoreItem(value={"racer": True}, etag=ANY_ETAG)})
        return found


class RecordingStorage(MemoryStorage):
    def __init__(self) -> None:
        super().__init__()
        self.writes: list[list[str]] = []

    async def write(self, changes: Mapping[str, StoreItem]) -> dict[str, str]:
        self.writes.append(list(changes))
        return await super().write(changes)


class Conversation:
    """Drives one conversation through a controller and keeps every result."""

    def __init__(
        self,
        controller: TurnController,
        *,
        conversation_id: str = "conv-1",
        user_id: str = "user-1",
    ) -> None:
        self.controller = controller
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.results: list[TurnResult] = []

    async def send(self, text: str, cancel_event: asyncio.Event | None = None) -> TurnResult:
        activity = make_activity(text, conversation_id=self.conversation_id, user_id=self.user_id)
        result = await self.controller.process(activity, cancel_event)
        self.results.append(result)
        return result

    async def say(self, text: str) -> list[str]:
        return (await self.send(text)).texts
