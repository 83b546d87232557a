"""Dialog stack: the call stack of Frames persisted in the dialog scope."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from colloquy.models.steps import Step, StepKind


class ResumeMarker(BaseModel):
    """Records that the head of a Frame's Plan is waiting for the next turn."""

    kind: StepKind
    attempts: int = 0


class Frame(BaseModel):
    dialog_id: str
    state: dict[str, Any] = Field(default_factory=dict)
    plan: list[Step] = Field(default_factory=list)
    started: bool = False
    resume: ResumeMarker | None = None

    @property
    def suspended(self) -> bool:
        return self.resume is not None

    @property
    def idle(self) -> bool:
        return not self.plan


class DialogStack(BaseModel):
    frames: list[Frame] = Field(default_factory=list)
    ended: bool = False

    @property
    def active(self) -> Frame | None:
        return self.frames[-1] if self.frames else None

    @property
    def depth(self) -> int:
        return len(self.frames)

    def push(self, frame: Frame) -> Frame:
        self.frames.append(frame)
        self.ended = False
        return frame

    def pop(self) -> Frame:
        if not self.frames:
            raise IndexError("pop from empty dialog stack")
        frame = self.frames.pop()
        if not self.frames:
            self.ended = True
        return frame

    def replace_active(self, frame: Frame) -> Frame:
        if not self.frames:
            raise IndexError("no active frame to replace")
        self.frames[-1] = frame
        return frame


__all__ = ["DialogStack", "Frame", "ResumeMarker"]
