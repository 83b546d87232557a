from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from colloquy.core.turn_context import TurnContext
    from colloquy.state.scopes import BotState


class PropertyAccessor:
    """Typed handle on one top-level property of a scope."""

    def __init__(self, state: BotState, name: str) -> None:
        self.state = state
        self.name = name

    async def get(
        self, ctx: TurnContext, default_factory: Callable[[], Any] | None = None
    ) -> Any:
        values = await self.state.load(ctx)
        if self.name not in values:
            if default_factory is None:
                return None
            values[self.name] = default_factory()
            self.state.mark_dirty(ctx)
        return values[self.name]

    async def set(self, ctx: TurnContext, value: Any) -> None:
        values = await self.state.load(ctx)
        values[self.name] = value
        self.state.mark_dirty(ctx)

    async def delete(self, ctx: TurnContext) -> None:
        values = await self.state.load(ctx)
        if self.name in values:
            del values[self.name]
            self.state.mark_dirty(ctx)


__all__ = ["PropertyAccessor"]
