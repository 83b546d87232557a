"""Persisted state scopes backed by the ``Storage`` contract.

Each scope is read once per turn, cached on the ``TurnContext`` together with
the etag seen at load, and written back only if something marked it dirty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from colloquy.models.stack import DialogStack
from colloquy.models.storage import ANY_ETAG, StoreItem
from colloquy.protocols.storage import Storage
from colloquy.state.accessor import PropertyAccessor

if TYPE_CHECKING:
    from colloquy.core.turn_context import TurnContext

logger = logging.getLogger(__name__)

STACK_KEY = "stack"


class ScopeKind(StrEnum):
    turn = "turn"
    dialog = "dialog"
    conversation = "conversation"
    user = "user"


@dataclass(slots=True)
class CachedState:
    state: dict[str, Any]
    etag: str | None
    dirty: bool = False
    existed: bool = False


class BotState:
    """Base class for a storage-backed scope."""

    scope: ScopeKind

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def storage_key(self, ctx: TurnContext) -> str:
        raise NotImplementedError

    def create_property(self, name: str) -> PropertyAccessor:
        return PropertyAccessor(self, name)

    async def load(self, ctx: TurnContext, force: bool = False) -> dict[str, Any]:
        cached = ctx.state_cache.get(self.scope)
        if cached is not None and not force:
            return cached.state
        key = self.storage_key(ctx)
        items = await self.storage.read([key])
        item = items.get(key)
        if item is None:
            cached = CachedState(state={}, etag=None)
        else:
            cached = CachedState(state=item.value, etag=item.etag, existed=True)
        ctx.state_cache[self.scope] = cached
        logger.debug("Loaded %s scope %s (etag=%s)", self.scope.value, key, cached.etag)
        return cached.state

    def _cached(self, ctx: TurnContext) -> CachedState:
        cached = ctx.state_cache.get(self.scope)
        if cached is None:
            raise RuntimeError(f"{self.scope.value} state used before load()")
        return cached

    def get(self, ctx: TurnContext) -> dict[str, Any]:
        return self._cached(ctx).state

    def existed(self, ctx: TurnContext) -> bool:
        return self._cached(ctx).existed

    def mark_dirty(self, ctx: TurnContext) -> None:
        self._cached(ctx).dirty = True

    def is_dirty(self, ctx: TurnContext) -> bool:
        cached = ctx.state_cache.get(self.scope)
        return cached is not None and cached.dirty

    def clear(self, ctx: TurnContext) -> None:
        cached = self._cached(ctx)
        cached.state = {}
        cached.dirty = True

    async def save_changes(self, ctx: TurnContext, force: bool = False) -> bool:
        """Write the scope if dirty (or forced). Returns True if a write happened."""
        cached = ctx.state_cache.get(self.scope)
        if cached is None or not (cached.dirty or force):
            return False
        key = self.storage_key(ctx)
        etag = ANY_ETAG if force else cached.etag
        written = await self.storage.write({key: StoreItem(value=cached.state, etag=etag)})
        cached.etag = written[key]
        cached.dirty = False
        cached.existed = True
        logger.debug("Saved %s scope %s (etag=%s)", self.scope.value, key, cached.etag)
        return True

    async def delete(self, ctx: TurnContext) -> None:
        await self.storage.delete([self.storage_key(ctx)])
        ctx.state_cache.pop(self.scope, None)


class ConversationState(BotState):
    scope = ScopeKind.conversation

    def storage_key(self, ctx: TurnContext) -> str:
        activity = ctx.activity
        return f"{activity.channel_id}/conversations/{activity.conversation_id}"


class UserState(BotState):
    scope = ScopeKind.user

    def storage_key(self, ctx: TurnContext) -> str:
        activity = ctx.activity
        return f"{activity.channel_id}/users/{activity.user_id}"


class DialogState(BotState):
    """Holds the serialized Dialog Stack for one conversation."""

    scope = ScopeKind.dialog

    def storage_key(self, ctx: TurnContext) -> str:
        activity = ctx.activity
        return f"{activity.channel_id}/conversations/{activity.conversation_id}/dialog"

    def load_stack(self, ctx: TurnContext) -> DialogStack:
        raw = self.get(ctx).get(STACK_KEY)
        if raw is None:
            return DialogStack()
        return DialogStack.model_validate(raw)

    def store_stack(self, ctx: TurnContext, stack: DialogStack) -> None:
        cached = self._cached(ctx)
        serialized = stack.model_dump(mode="json")
        if cached.state.get(STACK_KEY) != serialized:
            cached.state = {STACK_KEY: serialized}
            cached.dirty = True


__all__ = [
    "STACK_KEY",
    "BotState",
    "CachedState",
    "ConversationState",
    "DialogState",
    "ScopeKind",
    "UserState",
]
