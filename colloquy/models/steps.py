"""Step variants executed by the step executor.

Steps form a tagged union on ``kind``. The executor dispatches on the tag, and
the tag is what lets a serialized Plan round-trip through the dialog scope.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from colloquy.state.paths import SCOPES


class StepKind(StrEnum):
    send_text = "send_text"
    prompt = "prompt"
    wait_for_input = "wait_for_input"
    branch = "branch"
    call_dialog = "call_dialog"
    goto_dialog = "goto_dialog"
    end_dialog = "end_dialog"


class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SendText(_StepBase):
    kind: Literal["send_text"] = "send_text"
    template: str


class Prompt(_StepBase):
    kind: Literal["prompt"] = "prompt"
    prompt: str
    property: str
    retry_prompt: str | None = None
    invalid_prompt: str | None = None
    pattern: str | None = None
    validator: str | None = None
    max_attempts: int | None = Field(default=None, ge=1)

    @field_validator("property")
    @classmethod
    def _require_scope_prefix(cls, value: str) -> str:
        scope, _, rest = value.partition(".")
        if scope not in SCOPES or not rest:
            raise ValueError(f"property must start with one of {', '.join(SCOPES)}: {value!r}")
        return value

    @field_validator("pattern")
    @classmethod
    def _compile_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid pattern {value!r}: {exc}") from exc
        return value


class WaitForInput(_StepBase):
    kind: Literal["wait_for_input"] = "wait_for_input"


class Branch(_StepBase):
    kind: Literal["branch"] = "branch"
    condition: str
    then_steps: list[Step] = Field(default_factory=list)
    else_steps: list[Step] = Field(default_factory=list)


class CallDialog(_StepBase):
    kind: Literal["call_dialog"] = "call_dialog"
    dialog: str


class GotoDialog(_StepBase):
    kind: Literal["goto_dialog"] = "goto_dialog"
    dialog: str


class EndDialog(_StepBase):
    kind: Literal["end_dialog"] = "end_dialog"


Step = Annotated[
    SendText | Prompt | WaitForInput | Branch | CallDialog | GotoDialog | EndDialog,
    Field(discriminator="kind"),
]

Branch.model_rebuild()

STEP_LIST_ADAPTER: TypeAdapter[list[Step]] = TypeAdapter(list[Step])


def iter_steps(steps: list[Step]) -> Iterator[Step]:
    """Yield every step, descending into both arms of each Branch."""
    for step in steps:
        yield step
        if isinstance(step, Branch):
            yield from iter_steps(step.then_steps)
            yield from iter_steps(step.else_steps)


def dialog_targets(steps: list[Step]) -> set[str]:
    """Dialog ids referenced by CallDialog/GotoDialog anywhere in ``steps``."""
    return {
        step.dialog for step in iter_steps(steps) if isinstance(step, CallDialog | GotoDialog)
    }


__all__ = [
    "STEP_LIST_ADAPTER",
    "Branch",
    "CallDialog",
    "EndDialog",
    "GotoDialog",
    "Prompt",
    "SendText",
    "Step",
    "StepKind",
    "WaitForInput",
    "dialog_targets",
    "iter_steps",
]
