"""SignalK delta message models."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pywhatif.models._base import WhatIfBaseModel, iso_now


class PathValue(WhatIfBaseModel):
    path: str
    value: Any = None


class DeltaUpdate(WhatIfBaseModel):
    """One ``updates[]`` entry: a source label, a timestamp and values or metadata."""

    source_label: str = Field(alias="$source")
    timestamp: str = Field(default_factory=iso_now)
    values: list[PathValue] = Field(default_factory=list)
    meta: list[PathValue] | None = None


class Delta(WhatIfBaseModel):
    """A change event addressed to a vessel context."""

    context: str
    updates: list[DeltaUpdate]

    @classmethod
    def single_value(cls, context: str, path: str, value: Any, source_label: str) -> Delta:
        return cls(
            context=context,
            updates=[DeltaUpdate(source_label=source_label, values=[PathValue(path=path, value=value)])],
        )

    @classmethod
    def single_meta(cls, context: str, path: str, meta: dict[str, Any], source_label: str) -> Delta:
        return cls(
            context=context,
            updates=[DeltaUpdate(source_label=source_label, meta=[PathValue(path=path, value=meta)])],
        )
