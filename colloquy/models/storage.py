from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

ANY_ETAG = "*"
"""Write unconditionally, ignoring whatever version is stored."""


class StoreItem(BaseModel):
    """A stored value plus its opaque version token.

    On write, ``etag`` is the version the caller expects to replace: ``None``
    means the key must not exist yet, ``"*"`` skips the check.
    """

    value: dict[str, Any] = Field(default_factory=dict)
    etag: str | None = None


__all__ = ["ANY_ETAG", "StoreItem"]
