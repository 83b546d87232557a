from __future__ import annotations

import pytest
from colloquy.core.registry import Dialog
from colloquy.core.triggers import RECOGNIZED_KEY, TriggerEvaluator
from colloquy.core.turn_context import TurnContext
from colloquy.errors import RecognitionFailure
from colloquy.models.recognizer import IntentScore, RecognizerResult
from colloquy.models.rules import RuleMode, TriggerRule
from colloquy.models.stack import Frame, ResumeMarker
from colloquy.models.steps import SendText, StepKind, WaitForInput

from tests.fakes import KeywordRecognizer, make_activity


def _say(text: str) -> SendText:
    return SendText(template=text)


def _ctx(text: str) -> TurnContext:
    return TurnContext(activity=make_activity(text), turn_id="turn-1")


class TestRuleModel:
    def test_fallback_takes_no_name(self) -> None:
        with pytest.raises(ValueError, match="fallback"):
            TriggerRule(match="fallback", name="x")

    def test_intent_requires_name(self) -> None:
        with pytest.raises(ValueError, match="require a name"):
            TriggerRule(match="intent")

    def test_rules_are_serializable(self) -> None:
        rule = TriggerRule.on_intent("Joke", [_say("ha")], mode=RuleMode.append, priority=2)
        restored = TriggerRule.model_validate(rule.model_dump(mode="json"))
        assert restored == rule


class TestMatching:
    def test_intent_rule_beats_fallback_regardless_of_order(self) -> None:
        dialog = Dialog(
            id="main",
            rules=[TriggerRule.fallback([_say("fallback")]), TriggerRule.on_intent("Joke", [_say("joke")])],
        )
        result = RecognizerResult(intents=[IntentScore(name="Joke")])
        rule = TriggerEvaluator.match_message(dialog, result)
        assert rule is not None and rule.name == "Joke"

    def test_declaration_order_breaks_ties(self) -> None:
        first = TriggerRule.on_intent("Joke", [_say("first")])
        second = TriggerRule.on_intent("Joke", [_say("second")])
        dialog = Dialog(id="main", rules=[first, second])
        result = RecognizerResult(intents=[IntentScore(name="Joke")])
        assert TriggerEvaluator.match_intent(dialog, result) is first

    def test_priority_is_consulted_before_declaration_order(self) -> None:
        low = TriggerRule.on_intent("Joke", [_say("low")])
        high = TriggerRule.on_intent("Joke", [_say("high")], priority=5)
        dialog = Dialog(id="main", rules=[low, high])
        result = RecognizerResult(intents=[IntentScore(name="Joke")])
        assert TriggerEvaluator.match_intent(dialog, result) is high

    def test_only_top_intent_counts(self) -> None:
        dialog = Dialog(id="main", rules=[TriggerRule.on_intent("Weather", [_say("sunny")])])
        result = RecognizerResult(
            intents=[IntentScore(name="Joke", score=0.9), IntentScore(name="Weather", score=0.4)]
        )
        assert TriggerEvaluator.match_message(dialog, result) is None

    def test_event_matching(self) -> None:
        welcome = TriggerRule.on_event("conversationStarted", [_say("welcome")])
        dialog = Dialog(id="main", rules=[welcome])
        assert TriggerEvaluator.match_event(dialog, ["beginDialog"]) is None
        assert TriggerEvaluator.match_event(dialog, ["beginDialog", "conversationStarted"]) is welcome


class TestInstall:
    def test_replace_discards_pending_steps_and_marker(self) -> None:
        frame = Frame(
            dialog_id="main",
            plan=[WaitForInput(), _say("later")],
            resume=ResumeMarker(kind=StepKind.wait_for_input),
        )
        TriggerEvaluator.install(frame, TriggerRule.on_intent("Stop", [_say("stopped")]))
        assert frame.plan == [_say("stopped")]
        assert frame.resume is None

    def test_append_keeps_pending_steps(self) -> None:
        frame = Frame(
            dialog_id="main",
            plan=[WaitForInput(), _say("later")],
            resume=ResumeMarker(kind=StepKind.wait_for_input),
        )
        rule = TriggerRule.on_intent("Help", [_say("help")], mode=RuleMode.append)
        TriggerEvaluator.install(frame, rule)
        assert frame.plan == [WaitForInput(), _say("later"), _say("help")]
        assert frame.resume is not None

    def test_append_on_empty_plan_installs(self) -> None:
        frame = Frame(dialog_id="main")
        TriggerEvaluator.install(frame, TriggerRule.on_intent("Help", [_say("help")], mode=RuleMode.append))
        assert frame.plan == [_say("help")]


class TestTriggerEvaluator:
    def test_begin_marks_frame_started(self) -> None:
        dialog = Dialog(id="main", rules=[TriggerRule.on_event("beginDialog", [_say("hello")])])
        frame = Frame(dialog_id="main")
        rule = TriggerEvaluator().begin(frame, dialog, ["beginDialog"])
        assert rule is not None
        assert frame.started
        assert frame.plan == [_say("hello")]

    async def test_recognition_is_cached_per_turn(self) -> None:
        recognizer = KeywordRecognizer({"Joke": "joke"})
        evaluator = TriggerEvaluator(recognizer)
        dialog = Dialog(id="main", rules=[TriggerRule.on_intent("Joke", [_say("ha")])])
        ctx = _ctx("tell me a joke")

        await evaluator.interrupt(Frame(dialog_id="main"), dialog, ctx)
        await evaluator.trigger(Frame(dialog_id="main"), dialog, ctx)

        assert recognizer.calls == ["tell me a joke"]
        assert ctx.turn_state[RECOGNIZED_KEY]["intents"][0]["name"] == "Joke"

    async def test_dialog_recognizer_overrides_default(self) -> None:
        default = KeywordRecognizer({"Joke": "joke"})
        local = KeywordRecognizer({"End": "end"})
        evaluator = TriggerEvaluator(default)
        dialog = Dialog(
            id="child",
            recognizer=local,
            rules=[TriggerRule.on_intent("End", [_say("bye")])],
        )
        frame = Frame(dialog_id="child")
        await evaluator.trigger(frame, dialog, _ctx("the end"))
        assert default.calls == []
        assert local.calls == ["the end"]
        assert frame.plan == [_say("bye")]

    async def test_no_match_raises_and_leaves_frame(self) -> None:
        evaluator = TriggerEvaluator(KeywordRecognizer({"Joke": "joke"}))
        dialog = Dialog(id="main", rules=[TriggerRule.on_intent("Joke", [_say("ha")])])
        frame = Frame(dialog_id="main", state={"kept": True})
        with pytest.raises(RecognitionFailure):
            await evaluator.trigger(frame, dialog, _ctx("hello"))
        assert frame.plan == []
        assert frame.state == {"kept": True}

    async def test_interrupt_ignores_fallback(self) -> None:
        evaluator = TriggerEvaluator()
        dialog = Dialog(id="main", rules=[TriggerRule.fallback([_say("what?")])])
        frame = Frame(
            dialog_id="main",
            plan=[WaitForInput()],
            resume=ResumeMarker(kind=StepKind.wait_for_input),
        )
        assert await evaluator.interrupt(frame, dialog, _ctx("anything")) is None
        assert frame.plan == [WaitForInput()]
