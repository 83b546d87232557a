"""Exception taxonomy for the conversation engine.

``PromptValidationError`` is always handled inside a turn, and
``RecognitionFailure`` is handled when no step ran yet. Everything else
propagates to the caller of ``TurnController.process`` and aborts the turn
without persisting any scope.
"""

from __future__ import annotations

from collections.abc import Iterable


class ColloquyError(Exception):
    """Base class for engine errors."""


class StorageConflict(ColloquyError):
    """Raised when a write carries a stale version token for one or more keys."""

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = sorted(keys)
        super().__init__(f"etag conflict on keys: {', '.join(self.keys)}")


class UnknownDialogReference(ColloquyError):
    """Raised when a CallDialog/GotoDialog target is not registered."""

    def __init__(self, target: str, source: str | None = None) -> None:
        self.target = target
        self.source = source
        where = f" (referenced from {source})" if source else ""
        super().__init__(f"unknown dialog: {target}{where}")


class ExpressionEvaluationError(ColloquyError):
    """Raised when a Branch condition cannot be evaluated."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"cannot evaluate {expression!r}: {reason}")


class TemplateRenderError(ColloquyError):
    """Raised when a SendText or Prompt template cannot be rendered."""

    def __init__(self, template: str, reason: str) -> None:
        self.template = template
        self.reason = reason
        super().__init__(f"cannot render template {template!r}: {reason}")


class RecognitionFailure(ColloquyError):
    """No rule matched the inbound turn and the dialog has no fallback rule."""

    def __init__(self, dialog_id: str, intent: str | None) -> None:
        self.dialog_id = dialog_id
        self.intent = intent
        super().__init__(f"no rule in {dialog_id} matched intent {intent!r}")


class PromptValidationError(ColloquyError):
    """Inbound text was rejected by a prompt's pattern or validator."""


class TurnCancelled(ColloquyError):
    """The turn was cancelled before it could be persisted."""


class StepLimitExceeded(ColloquyError):
    """A single turn executed more steps than the configured limit."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"turn exceeded {limit} steps")


class DialogDefinitionError(ColloquyError):
    """Raised when a declarative dialog document cannot be loaded."""


__all__ = [
    "ColloquyError",
    "DialogDefinitionError",
    "ExpressionEvaluationError",
    "PromptValidationError",
    "RecognitionFailure",
    "StepLimitExceeded",
    "StorageConflict",
    "TemplateRenderError",
    "TurnCancelled",
    "UnknownDialogReference",
]
