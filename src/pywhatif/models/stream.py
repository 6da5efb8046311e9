"""Live update stream protocol messages."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import field_validator

from pywhatif.models._base import WhatIfBaseModel
from pywhatif.models.tree import PathSnapshot


class ClientMessageType(StrEnum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    UNSUBSCRIBE_ALL = "unsubscribeAll"


class ClientMessage(WhatIfBaseModel):
    """Observer → server control message.

    ``type`` is kept as a plain string so unknown types survive parsing and
    can be answered with an error instead of a validation failure.
    """

    type: str
    paths: list[str] | None = None
    path: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _require_string_type(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("type must be a string")
        return value

    def targets(self) -> list[str]:
        """Paths this message addresses; ``paths`` wins over ``path``."""
        if self.paths:
            return list(self.paths)
        if self.path:
            return [self.path]
        return []


def full_message(snapshots: list[PathSnapshot]) -> dict[str, Any]:
    return {"type": "full", "paths": [s.to_wire() for s in snapshots]}


def update_message(snapshot: PathSnapshot) -> dict[str, Any]:
    return {"type": "update", "path": snapshot.to_wire()}


def error_message(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}
