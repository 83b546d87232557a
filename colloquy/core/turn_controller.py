"""Turn controller: one inbound message in, responses and persisted state out.

A turn is load → execute → persist. Capabilities and storage are injected at
construction; the controller keeps no per-conversation state between turns.
Callers must serialize turns for the same conversation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from uuid import uuid4

from colloquy.core.executor import StepExecutor
from colloquy.core.logging import correlation_scope
from colloquy.core.registry import DialogRegistry
from colloquy.core.triggers import TriggerEvaluator
from colloquy.core.turn_context import TurnContext
from colloquy.core.validators import PromptValidator
from colloquy.errors import ColloquyError, RecognitionFailure
from colloquy.models.messages import Activity
from colloquy.models.turns import TurnResult, TurnStatus
from colloquy.protocols.capabilities import ExpressionEvaluator, Recognizer, TemplateRenderer
from colloquy.protocols.storage import Storage
from colloquy.state.memory import ScopeMemory
from colloquy.state.scopes import ConversationState, DialogState, UserState

logger = logging.getLogger(__name__)


class TurnController:
    def __init__(
        self,
        registry: DialogRegistry,
        storage: Storage,
        *,
        renderer: TemplateRenderer,
        recognizer: Recognizer | None = None,
        expressions: ExpressionEvaluator | None = None,
        validators: Mapping[str, PromptValidator] | None = None,
        max_steps_per_turn: int = 1000,
        max_prompt_attempts: int | None = None,
        validate: bool = True,
    ) -> None:
        if validate:
            registry.validate()
        self.registry = registry
        self.storage = storage
        self.conversation_state = ConversationState(storage)
        self.user_state = UserState(storage)
        self.dialog_state = DialogState(storage)
        self._executor = StepExecutor(
            registry,
            TriggerEvaluator(recognizer),
            renderer=renderer,
            expressions=expressions,
            validators=validators,
            max_steps_per_turn=max_steps_per_turn,
            max_prompt_attempts=max_prompt_attempts,
        )

    async def process(
        self, activity: Activity, cancel_event: asyncio.Event | None = None
    ) -> TurnResult:
        """Run one turn.

        Responses are released only after every dirty scope was written. A
        recognition failure before any step ran is reported as
        ``unrecognized`` with no output and no writes. Any other
        ``ColloquyError``, including a recognition failure after steps ran,
        propagates and leaves storage exactly as the previous successful turn
        left it.
        """
        turn_id = uuid4().hex
        with correlation_scope(turn_id=turn_id, conversation_id=activity.conversation_id):
            ctx = TurnContext(activity=activity, turn_id=turn_id, cancel_event=cancel_event)
            await self._load(ctx)
            try:
                status = await self._executor.run(ctx)
            except RecognitionFailure as exc:
                if ctx.steps_executed or ctx.responses:
                    logger.warning("Turn aborted: %s after %d step(s)", exc, ctx.steps_executed)
                    raise
                logger.info("Unrecognized input: %s", exc)
                return TurnResult(turn_id=turn_id, status=TurnStatus.unrecognized, responses=[])
            except ColloquyError as exc:
                logger.warning("Turn aborted: %s", exc)
                raise
            ctx.check_cancelled()
            await self._persist(ctx)
            logger.info("Turn %s: %d response(s)", status.value, len(ctx.responses))
            return TurnResult(turn_id=turn_id, status=status, responses=list(ctx.responses))

    async def _load(self, ctx: TurnContext) -> None:
        ctx.check_cancelled()
        await self.conversation_state.load(ctx)
        await self.user_state.load(ctx)
        await self.dialog_state.load(ctx)
        ctx.check_cancelled()
        ctx.new_conversation = not self.dialog_state.existed(ctx)
        ctx.stack = self.dialog_state.load_stack(ctx)
        ctx.memory = ScopeMemory(ctx, self.conversation_state, self.user_state, self.dialog_state)

    async def _persist(self, ctx: TurnContext) -> None:
        self.dialog_state.store_stack(ctx, ctx.stack)
        # Dialog scope last; a conflict on any earlier scope leaves the stack unmoved.
        for state in (self.conversation_state, self.user_state, self.dialog_state):
            await state.save_changes(ctx)


__all__ = ["TurnController"]
