"""Trigger evaluation: decide which rule populates a Frame's Plan."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from colloquy.core.registry import Dialog
from colloquy.core.turn_context import TurnContext
from colloquy.errors import RecognitionFailure
from colloquy.models.recognizer import RecognizerResult
from colloquy.models.rules import MatchKind, RuleMode, TriggerRule
from colloquy.models.stack import Frame
from colloquy.protocols.capabilities import Recognizer

logger = logging.getLogger(__name__)

RECOGNIZED_KEY = "recognized"


class TriggerEvaluator:
    """Match lifecycle events and recognized intents against a dialog's rules.

    Recognition is cached on the turn context per recognizer, so checking for an
    interrupt and then triggering a freshly pushed Frame costs one call.
    """

    def __init__(self, recognizer: Recognizer | None = None) -> None:
        self._recognizer = recognizer

    async def recognize(self, dialog: Dialog, ctx: TurnContext) -> RecognizerResult:
        recognizer = dialog.recognizer if dialog.recognizer is not None else self._recognizer
        if recognizer is None:
            return RecognizerResult(text=ctx.text)

        cached = ctx.recognitions.get(id(recognizer))
        if cached is None:
            ctx.check_cancelled()
            cached = await recognizer.recognize(ctx.text, ctx.memory.snapshot() if ctx.memory else {})
            ctx.check_cancelled()
            ctx.recognitions[id(recognizer)] = cached
            logger.debug("Recognized %r as %s", ctx.text, cached.top_intent)
        ctx.turn_state[RECOGNIZED_KEY] = cached.model_dump()
        return cached

    # ── matching ─────────────────────────────────────────────────────

    @staticmethod
    def match_event(dialog: Dialog, events: Iterable[str]) -> TriggerRule | None:
        pending = set(events)
        for rule in dialog.ordered_rules():
            if rule.match == MatchKind.event and rule.name in pending:
                return rule
        return None

    @staticmethod
    def match_intent(dialog: Dialog, result: RecognizerResult) -> TriggerRule | None:
        intent = result.top_intent
        for rule in dialog.ordered_rules():
            if rule.matches_intent(intent):
                return rule
        return None

    @classmethod
    def match_message(cls, dialog: Dialog, result: RecognizerResult) -> TriggerRule | None:
        rule = cls.match_intent(dialog, result)
        if rule is not None:
            return rule
        for candidate in dialog.ordered_rules():
            if candidate.match == MatchKind.fallback:
                return candidate
        return None

    # ── plan mutation ────────────────────────────────────────────────

    @staticmethod
    def install(frame: Frame, rule: TriggerRule) -> None:
        """Apply ``rule`` to ``frame``: replace the Plan, or extend it for append rules."""
        steps = list(rule.steps)
        if rule.mode == RuleMode.append and frame.plan:
            frame.plan.extend(steps)
            return
        frame.plan = steps
        frame.resume = None

    def begin(self, frame: Frame, dialog: Dialog, events: Iterable[str]) -> TriggerRule | None:
        """Fire the first lifecycle rule matching ``events``, if any."""
        frame.started = True
        rule = self.match_event(dialog, events)
        if rule is not None:
            logger.debug("Lifecycle rule %s fired in %s", rule.name, dialog.id)
            self.install(frame, rule)
        return rule

    async def trigger(self, frame: Frame, dialog: Dialog, ctx: TurnContext) -> TriggerRule:
        """Populate an idle Frame from the inbound message.

        Raises ``RecognitionFailure`` when neither an intent rule nor a
        fallback rule matches; the Frame is left untouched in that case.
        """
        result = await self.recognize(dialog, ctx)
        rule = self.match_message(dialog, result)
        if rule is None:
            raise RecognitionFailure(dialog.id, result.top_intent)
        logger.debug("Rule %s/%s fired in %s", rule.match.value, rule.name, dialog.id)
        self.install(frame, rule)
        return rule

    async def interrupt(self, frame: Frame, dialog: Dialog, ctx: TurnContext) -> TriggerRule | None:
        """Let an intent rule cut into a suspended Frame.

        A replace rule discards the pending Plan (including the suspended
        step); an append rule queues behind it and the suspended step still
        receives the inbound text.
        """
        result = await self.recognize(dialog, ctx)
        rule = self.match_intent(dialog, result)
        if rule is None:
            return None
        logger.info("Intent %s interrupted %s (%s)", rule.name, dialog.id, rule.mode.value)
        self.install(frame, rule)
        return rule


__all__ = ["RECOGNIZED_KEY", "TriggerEvaluator"]
