"""Tests for storage-backed scopes, property accessors and scope memory."""

from __future__ import annotations

import pytest
from colloquy.core.turn_context import TurnContext
from colloquy.errors import StorageConflict
from colloquy.models.stack import DialogStack, Frame
from colloquy.models.storage import StoreItem
from colloquy.persistence.memory_storage import MemoryStorage
from colloquy.state.memory import ScopeMemory
from colloquy.state.scopes import ConversationState, DialogState, UserState

from tests.fakes import RecordingStorage, make_activity

pytestmark = pytest.mark.asyncio


def _new_context(text: str = "hi") -> TurnContext:
    return TurnContext(activity=make_activity(text), turn_id="turn-x")


class TestStorageKeys:
    async def test_scope_keys(self, storage: MemoryStorage, turn_context: TurnContext) -> None:
        assert ConversationState(storage).storage_key(turn_context) == "test/conversations/conv-1"
        assert UserState(storage).storage_key(turn_context) == "test/users/user-1"
        assert DialogState(storage).storage_key(turn_context) == "test/conversations/conv-1/dialog"


class TestBotState:
    async def test_load_is_cached_per_turn(self, turn_context: TurnContext) -> None:
        storage = RecordingStorage()
        await storage.write({"test/users/user-1": StoreItem(value={"name": "Ana"})})
        state = UserState(storage)

        first = await state.load(turn_context)
        await storage.write({"test/users/user-1": StoreItem(value={"name": "Bo"}, etag="*")})
        second = await state.load(turn_context)

        assert first is second
        assert second == {"name": "Ana"}
        assert state.existed(turn_context)
        assert (await state.load(turn_context, force=True)) == {"name": "Bo"}

    async def test_clean_scope_is_not_written(self, turn_context: TurnContext) -> None:
        storage = RecordingStorage()
        state = ConversationState(storage)
        await state.load(turn_context)
        assert await state.save_changes(turn_context) is False
        assert storage.writes == []

    async def test_dirty_scope_round_trips(self, storage: MemoryStorage) -> None:
        state = UserState(storage)
        ctx = _new_context()
        await state.load(ctx)
        assert not state.existed(ctx)
        state.get(ctx)["name"] = "Ana"
        state.mark_dirty(ctx)
        assert await state.save_changes(ctx) is True
        assert not state.is_dirty(ctx)

        later = _new_context()
        assert await state.load(later) == {"name": "Ana"}
        assert state.existed(later)

    async def test_save_uses_etag_seen_at_load(self, storage: MemoryStorage) -> None:
        state = ConversationState(storage)
        seed = _new_context()
        await state.load(seed)
        state.mark_dirty(seed)
        await state.save_changes(seed)

        ctx = _new_context()
        await state.load(ctx)
        await storage.write({state.storage_key(ctx): StoreItem(value={"other": 1}, etag="*")})
        state.get(ctx)["mine"] = 1
        state.mark_dirty(ctx)

        with pytest.raises(StorageConflict):
            await state.save_changes(ctx)
        assert await state.save_changes(ctx, force=True) is True

    async def test_clear_and_delete(self, storage: MemoryStorage) -> None:
        state = UserState(storage)
        ctx = _new_context()
        await state.load(ctx)
        state.get(ctx)["name"] = "Ana"
        state.mark_dirty(ctx)
        await state.save_changes(ctx)

        state.clear(ctx)
        assert state.get(ctx) == {}
        assert state.is_dirty(ctx)

        await state.delete(ctx)
        assert await storage.read([state.storage_key(ctx)]) == {}

    async def test_use_before_load_fails(self, storage: MemoryStorage) -> None:
        with pytest.raises(RuntimeError, match="before load"):
            UserState(storage).get(_new_context())


class TestPropertyAccessor:
    async def test_default_factory_creates_and_dirties(self, storage: MemoryStorage) -> None:
        state = ConversationState(storage)
        prop = state.create_property("counter")
        ctx = _new_context()

        assert await prop.get(ctx) is None
        assert not state.is_dirty(ctx)
        assert await prop.get(ctx, lambda: 0) == 0
        assert state.is_dirty(ctx)

    async def test_set_and_delete(self, storage: MemoryStorage) -> None:
        state = UserState(storage)
        prop = state.create_property("name")
        ctx = _new_context()
        await prop.set(ctx, "Ana")
        assert await prop.get(ctx) == "Ana"
        await prop.delete(ctx)
        assert await prop.get(ctx) is None


class TestDialogState:
    async def test_stack_round_trip(self, storage: MemoryStorage) -> None:
        state = DialogState(storage)
        ctx = _new_context()
        await state.load(ctx)
        assert state.load_stack(ctx) == DialogStack()

        stack = DialogStack(frames=[Frame(dialog_id="main", state={"n": 1}, started=True)])
        state.store_stack(ctx, stack)
        assert state.is_dirty(ctx)
        await state.save_changes(ctx)

        later = _new_context()
        await state.load(later)
        assert state.load_stack(later) == stack

    async def test_unchanged_stack_is_not_dirty(self, storage: MemoryStorage) -> None:
        state = DialogState(storage)
        ctx = _new_context()
        await state.load(ctx)
        stack = DialogStack(frames=[Frame(dialog_id="main")])
        state.store_stack(ctx, stack)
        await state.save_changes(ctx)

        later = _new_context()
        await state.load(later)
        state.store_stack(later, state.load_stack(later))
        assert not state.is_dirty(later)


class TestScopeMemory:
    @pytest.fixture
    async def scopes(
        self, storage: MemoryStorage, turn_context: TurnContext
    ) -> tuple[ConversationState, UserState, DialogState]:
        scopes = (ConversationState(storage), UserState(storage), DialogState(storage))
        for state in scopes:
            await state.load(turn_context)
        turn_context.stack.push(Frame(dialog_id="main"))
        return scopes

    @pytest.fixture
    def memory(
        self, scopes: tuple[ConversationState, UserState, DialogState], turn_context: TurnContext
    ) -> ScopeMemory:
        return ScopeMemory(turn_context, *scopes)

    async def test_writes_route_to_scopes(
        self, memory: ScopeMemory, scopes: tuple, turn_context: TurnContext
    ) -> None:
        conversation, user, _ = scopes
        memory.set("user.profile.name", "Ana")
        memory.set("conversation.topic", "jokes")
        memory.set("dialog.step", 2)
        memory.set("turn.scratch", True)

        assert user.get(turn_context) == {"profile": {"name": "Ana"}}
        assert conversation.get(turn_context) == {"topic": "jokes"}
        assert turn_context.stack.active.state == {"step": 2}
        assert turn_context.turn_state == {"scratch": True}
        assert memory.get("user.profile.name") == "Ana"

    async def test_dirty_tracking(
        self, memory: ScopeMemory, scopes: tuple, turn_context: TurnContext
    ) -> None:
        _, user, dialog = scopes
        memory.set("turn.scratch", 1)
        assert not any(state.is_dirty(turn_context) for state in scopes)

        memory.set("dialog.step", 1)
        assert dialog.is_dirty(turn_context)
        assert not user.is_dirty(turn_context)

        assert memory.delete("user.missing") is False
        assert not user.is_dirty(turn_context)

    async def test_snapshot_exposes_active_frame(
        self, memory: ScopeMemory, turn_context: TurnContext
    ) -> None:
        memory.set("dialog.local", "parent")
        turn_context.stack.push(Frame(dialog_id="child"))
        snapshot = memory.snapshot()
        assert snapshot["dialog"] == {}
        assert set(snapshot) == {"turn", "dialog", "conversation", "user"}
        assert memory.get("dialog.local") is None
