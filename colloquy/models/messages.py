from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


class Activity(BaseModel):
    """One inbound message as delivered by the channel adapter."""

    channel_id: str
    conversation_id: str
    user_id: str
    text: str = ""
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("timestamp must be timezone-aware")
        return value


class OutboundMessage(BaseModel):
    text: str
    conversation_id: str | None = None
    attachments: list[dict[str, object]] = Field(default_factory=list)


__all__ = ["Activity", "OutboundMessage", "utc_now"]
