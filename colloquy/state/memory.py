"""Path-addressed view over all scopes visible to the active Frame."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from colloquy.state.paths import delete_path, get_path, set_path, split_scope
from colloquy.state.scopes import ConversationState, DialogState, UserState

if TYPE_CHECKING:
    from colloquy.core.turn_context import TurnContext


class ScopeMemory:
    """Resolves ``scope.key.path`` reads and writes for the current turn.

    ``dialog.*`` addresses the local state of the active Frame; writes to it
    dirty the dialog scope, which serializes the whole stack.
    """

    def __init__(
        self,
        ctx: TurnContext,
        conversation: ConversationState,
        user: UserState,
        dialog: DialogState,
    ) -> None:
        self._ctx = ctx
        self._persisted = {"conversation": conversation, "user": user, "dialog": dialog}

    def _root(self, scope: str) -> dict[str, Any]:
        if scope == "turn":
            return self._ctx.turn_state
        if scope == "dialog":
            frame = self._ctx.stack.active
            if frame is None:
                raise RuntimeError("no active frame for dialog scope")
            return frame.state
        return self._persisted[scope].get(self._ctx)

    def _touch(self, scope: str) -> None:
        if scope != "turn":
            self._persisted[scope].mark_dirty(self._ctx)

    def get(self, path: str, default: Any = None) -> Any:
        scope, keys = split_scope(path)
        return get_path(self._root(scope), keys, default)

    def set(self, path: str, value: Any) -> None:
        scope, keys = split_scope(path)
        set_path(self._root(scope), keys, value)
        self._touch(scope)

    def delete(self, path: str) -> bool:
        scope, keys = split_scope(path)
        removed = delete_path(self._root(scope), keys)
        if removed:
            self._touch(scope)
        return removed

    def snapshot(self) -> dict[str, Any]:
        """Mapping handed to recognizer, template and expression capabilities."""
        frame = self._ctx.stack.active
        return {
            "turn": self._ctx.turn_state,
            "dialog": frame.state if frame is not None else {},
            "conversation": self._persisted["conversation"].get(self._ctx),
            "user": self._persisted["user"].get(self._ctx),
        }


__all__ = ["ScopeMemory"]
