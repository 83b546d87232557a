from colloquy.models.messages import Activity, OutboundMessage, utc_now
from colloquy.models.recognizer import IntentScore, RecognizerResult
from colloquy.models.rules import LifecycleEvent, MatchKind, RuleMode, TriggerRule
from colloquy.models.stack import DialogStack, Frame, ResumeMarker
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
from colloquy.models.storage import ANY_ETAG, StoreItem
from colloquy.models.turns import TurnResult, TurnStatus

__all__ = [
    "ANY_ETAG",
    "Activity",
    "Branch",
    "CallDialog",
    "DialogStack",
    "EndDialog",
    "Frame",
    "GotoDialog",
    "IntentScore",
    "LifecycleEvent",
    "MatchKind",
    "OutboundMessage",
    "Prompt",
    "RecognizerResult",
    "ResumeMarker",
    "RuleMode",
    "SendText",
    "Step",
    "StepKind",
    "StoreItem",
    "TriggerRule",
    "TurnResult",
    "TurnStatus",
    "WaitForInput",
    "utc_now",
]
