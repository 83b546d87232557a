from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from colloquy.models.messages import OutboundMessage


class TurnStatus(StrEnum):
    suspended = "suspended"
    idle = "idle"
    ended = "ended"
    unrecognized = "unrecognized"


class TurnResult(BaseModel):
    turn_id: str
    status: TurnStatus
    responses: list[OutboundMessage] = Field(default_factory=list)

    @property
    def ended(self) -> bool:
        return self.status == TurnStatus.ended

    @property
    def texts(self) -> list[str]:
        return [message.text for message in self.responses]


__all__ = ["TurnResult", "TurnStatus"]
