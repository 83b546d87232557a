"""Step executor: drives the Dialog Stack through one turn.

The executor drains the active Frame's Plan front to back. A Frame with an
empty Plan is handed to the trigger evaluator; a Frame whose Plan head is a
suspended Prompt/WaitForInput receives the inbound text. The pass ends when a
step suspends, the active Frame is idle and may no longer handle the inbound
text, or the stack runs empty.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from colloquy.core.logging import correlation_scope
from colloquy.core.registry import Dialog, DialogRegistry
from colloquy.core.triggers import TriggerEvaluator
from colloquy.core.turn_context import TurnContext
from colloquy.core.validators import BUILTIN_VALIDATORS, PromptValidator
from colloquy.errors import (
    ColloquyError,
    ExpressionEvaluationError,
    PromptValidationError,
    RecognitionFailure,
    StepLimitExceeded,
)
from colloquy.models.rules import LifecycleEvent
from colloquy.models.stack import Frame, ResumeMarker
from colloquy.models.steps import (
    Branch,
    CallDialog,
    EndDialog,
    GotoDialog,
    Prompt,
    SendText,
    Step,
    StepKind,
    WaitForInput,
)
from colloquy.models.turns import TurnStatus
from colloquy.protocols.capabilities import ExpressionEvaluator, TemplateRenderer
from colloquy.state.memory import ScopeMemory

logger = logging.getLogger(__name__)

# A handler returns a status to stop the pass, or None to keep going.
StepHandler = Callable[[Any, Frame, TurnContext], Awaitable[TurnStatus | None]]


@dataclass(slots=True)
class _Pass:
    """Bookkeeping for one executor pass; never persisted.

    The inbound text is consumed by the first Frame that handles it. Frames
    created later in the same pass may still react to it; Frames that were
    already on the stack (a parent uncovered by a pop) may not.
    """

    existing: dict[int, Frame] = field(default_factory=dict)
    handled: dict[int, Frame] = field(default_factory=dict)
    fresh_root: Frame | None = None

    def claim(self, frame: Frame) -> bool:
        """Let ``frame`` handle the inbound text; False if that is no longer allowed."""
        key = id(frame)
        if key in self.handled:
            return False
        if self.handled and key in self.existing:
            return False
        # Holding the reference keeps id() unique for the rest of the pass.
        self.handled[key] = frame
        return True


class StepExecutor:
    def __init__(
        self,
        registry: DialogRegistry,
        triggers: TriggerEvaluator,
        *,
        renderer: TemplateRenderer,
        expressions: ExpressionEvaluator | None = None,
        validators: Mapping[str, PromptValidator] | None = None,
        max_steps_per_turn: int = 1000,
        max_prompt_attempts: int | None = None,
    ) -> None:
        self._registry = registry
        self._triggers = triggers
        self._renderer = renderer
        self._expressions = expressions
        self._validators: dict[str, PromptValidator] = {**BUILTIN_VALIDATORS, **(validators or {})}
        self._max_steps = max_steps_per_turn
        self._max_prompt_attempts = max_prompt_attempts
        self._handlers: dict[StepKind, StepHandler] = {
            StepKind.send_text: self._send_text,
            StepKind.prompt: self._prompt,
            StepKind.wait_for_input: self._wait_for_input,
            StepKind.branch: self._branch,
            StepKind.call_dialog: self._call_dialog,
            StepKind.goto_dialog: self._goto_dialog,
            StepKind.end_dialog: self._end_dialog,
        }

    async def run(self, ctx: TurnContext) -> TurnStatus:
        """Execute until suspension, idleness or the end of the root dialog."""
        state = _Pass(existing={id(frame): frame for frame in ctx.stack.frames})
        if ctx.stack.active is None:
            state.fresh_root = self._start_root(ctx)

        while True:
            ctx.check_cancelled()
            frame = ctx.stack.active
            if frame is None:
                logger.info("Root dialog ended")
                return TurnStatus.ended
            dialog = self._registry.get(frame.dialog_id)
            with correlation_scope(dialog_id=dialog.id):
                status = await self._advance(frame, dialog, ctx, state)
            if status is not None:
                return status

    # ── frame driving ────────────────────────────────────────────────

    async def _advance(
        self, frame: Frame, dialog: Dialog, ctx: TurnContext, state: _Pass
    ) -> TurnStatus | None:
        if frame.suspended:
            if not state.claim(frame):
                return TurnStatus.suspended
            await self._triggers.interrupt(frame, dialog, ctx)
            if frame.resume is not None:
                return await self._resume(frame, ctx)
            return None

        if not frame.idle:
            return await self._execute(frame.plan[0], frame, ctx)

        if not frame.started:
            events = [LifecycleEvent.begin_dialog.value]
            if frame is state.fresh_root:
                events.append(LifecycleEvent.conversation_started.value)
            if self._triggers.begin(frame, dialog, events) is not None:
                return None

        if state.claim(frame):
            try:
                await self._triggers.trigger(frame, dialog, ctx)
                return None
            except RecognitionFailure:
                if not self._auto_ends(frame, dialog, ctx):
                    raise
                logger.info("No rule matched in %s; ending it", dialog.id)

        if self._auto_ends(frame, dialog, ctx):
            self._end_frame(ctx, reason="plan exhausted")
            return None
        return TurnStatus.idle

    def _auto_ends(self, frame: Frame, dialog: Dialog, ctx: TurnContext) -> bool:
        home = ctx.stack.depth == 1 and frame.dialog_id == self._registry.root_id
        return dialog.auto_end and not home

    def _start_root(self, ctx: TurnContext) -> Frame | None:
        frame = ctx.stack.push(Frame(dialog_id=self._registry.root_id))
        logger.info("Started root dialog %s (new conversation: %s)", frame.dialog_id, ctx.new_conversation)
        return frame if ctx.new_conversation else None

    def _end_frame(self, ctx: TurnContext, *, reason: str) -> None:
        popped = ctx.stack.pop()
        logger.debug("Ended %s (%s); depth now %d", popped.dialog_id, reason, ctx.stack.depth)

    async def _execute(self, step: Step, frame: Frame, ctx: TurnContext) -> TurnStatus | None:
        ctx.steps_executed += 1
        if ctx.steps_executed > self._max_steps:
            raise StepLimitExceeded(self._max_steps)
        logger.debug("Executing %s in %s", step.kind, frame.dialog_id)
        handler = self._handlers[StepKind(step.kind)]
        return await handler(step, frame, ctx)

    async def _resume(self, frame: Frame, ctx: TurnContext) -> TurnStatus | None:
        step = frame.plan[0] if frame.plan else None
        marker = frame.resume
        if step is None or marker is None or step.kind != marker.kind:
            raise ColloquyError(f"resume marker in {frame.dialog_id} does not match its plan")

        if isinstance(step, WaitForInput):
            frame.plan.pop(0)
            frame.resume = None
            return None

        if isinstance(step, Prompt):
            try:
                value = self._validate(step, ctx.text)
            except PromptValidationError as exc:
                return await self._reject(step, frame, marker, ctx, exc)
            _memory(ctx).set(step.property, value)
            frame.plan.pop(0)
            frame.resume = None
            logger.debug("Bound %s", step.property)
            return None

        raise ColloquyError(f"step kind {step.kind} cannot be resumed")

    async def _reject(
        self,
        step: Prompt,
        frame: Frame,
        marker: ResumeMarker,
        ctx: TurnContext,
        exc: PromptValidationError,
    ) -> TurnStatus | None:
        marker.attempts += 1
        limit = step.max_attempts or self._max_prompt_attempts
        logger.warning("Rejected input for %s (attempt %d): %s", step.property, marker.attempts, exc)
        if limit is not None and marker.attempts >= limit:
            logger.warning("Giving up on %s after %d attempts", step.property, marker.attempts)
            frame.plan.pop(0)
            frame.resume = None
            return None
        template = step.invalid_prompt or step.retry_prompt or step.prompt
        ctx.send(await self._render(template, ctx))
        return TurnStatus.suspended

    def _validate(self, step: Prompt, text: str) -> Any:
        stripped = text.strip()
        if step.pattern is not None and re.fullmatch(step.pattern, stripped) is None:
            raise PromptValidationError(f"{stripped!r} does not match {step.pattern!r}")
        if step.validator is None:
            if not stripped:
                raise PromptValidationError("empty input")
            return stripped
        validator = self._validators.get(step.validator)
        if validator is None:
            raise ColloquyError(f"unknown validator: {step.validator}")
        try:
            return validator(stripped)
        except ValueError as exc:
            raise PromptValidationError(str(exc)) from exc

    # ── capability calls ─────────────────────────────────────────────

    async def _render(self, template: str, ctx: TurnContext) -> Any:
        ctx.check_cancelled()
        rendered = await self._renderer.render(template, _memory(ctx).snapshot())
        ctx.check_cancelled()
        return rendered

    async def _evaluate(self, expression: str, ctx: TurnContext) -> Any:
        if self._expressions is None:
            raise ExpressionEvaluationError(expression, "no expression evaluator configured")
        ctx.check_cancelled()
        value = await self._expressions.evaluate(expression, _memory(ctx).snapshot())
        ctx.check_cancelled()
        return value

    # ── step handlers ────────────────────────────────────────────────

    async def _send_text(self, step: SendText, frame: Frame, ctx: TurnContext) -> None:
        frame.plan.pop(0)
        ctx.send(await self._render(step.template, ctx))

    async def _prompt(self, step: Prompt, frame: Frame, ctx: TurnContext) -> TurnStatus:
        frame.resume = ResumeMarker(kind=StepKind.prompt)
        ctx.send(await self._render(step.prompt, ctx))
        return TurnStatus.suspended

    async def _wait_for_input(self, step: WaitForInput, frame: Frame, ctx: TurnContext) -> TurnStatus:
        frame.resume = ResumeMarker(kind=StepKind.wait_for_input)
        return TurnStatus.suspended

    async def _branch(self, step: Branch, frame: Frame, ctx: TurnContext) -> None:
        value = await self._evaluate(step.condition, ctx)
        frame.plan.pop(0)
        chosen = step.then_steps if value else step.else_steps
        frame.plan[0:0] = list(chosen)
        logger.debug("Branch %r took %s arm", step.condition, "then" if value else "else")

    async def _call_dialog(self, step: CallDialog, frame: Frame, ctx: TurnContext) -> None:
        self._registry.get(step.dialog, source=frame.dialog_id)
        frame.plan.pop(0)
        ctx.stack.push(Frame(dialog_id=step.dialog))
        logger.debug("Called %s from %s", step.dialog, frame.dialog_id)

    async def _goto_dialog(self, step: GotoDialog, frame: Frame, ctx: TurnContext) -> None:
        self._registry.get(step.dialog, source=frame.dialog_id)
        ctx.stack.replace_active(Frame(dialog_id=step.dialog))
        logger.debug("Transferred %s to %s", frame.dialog_id, step.dialog)

    async def _end_dialog(self, step: EndDialog, frame: Frame, ctx: TurnContext) -> None:
        frame.plan.pop(0)
        self._end_frame(ctx, reason="end_dialog")


def _memory(ctx: TurnContext) -> ScopeMemory:
    if ctx.memory is None:
        raise RuntimeError("turn context has no scope memory")
    return ctx.memory


__all__ = ["StepExecutor"]
