"""Path, metadata and snapshot models."""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict, Field, field_validator

from pywhatif.models._base import WhatIfBaseModel


class Zone(WhatIfBaseModel):
    """Alarm/notification zone attached to a path's metadata."""

    lower: float | None = None
    upper: float | None = None
    state: str
    message: str | None = None


class PathMeta(WhatIfBaseModel):
    """Optional metadata attached to a path.

    Unknown keys coming from the tree (``displayUnits``, ``supportsPut``...)
    are kept so a merged view never loses information.
    """

    model_config = ConfigDict(extra="allow")

    units: str | None = None
    description: str | None = None
    display_name: str | None = None
    short_name: str | None = None
    long_name: str | None = None
    zones: list[Zone] | None = None

    def merged_with(self, override: PathMeta | None) -> PathMeta:
        """Return a copy where every key set in *override* wins."""
        if override is None:
            return self
        merged = self.to_wire()
        merged.update(override.to_wire())
        return PathMeta.model_validate(merged)


class PathSnapshot(WhatIfBaseModel):
    """Read-only projection of a path's current state."""

    path: str
    value: Any = None
    timestamp: str | None = None
    source: str | None = None
    meta: PathMeta | None = None

    def to_wire(self) -> dict[str, Any]:
        data = super().to_wire()
        # A null value is still a value observers need to see.
        data.setdefault("value", None)
        return data


class PathFilter(WhatIfBaseModel):
    """Filters applied, in field order, by :meth:`PathRegistry.list`."""

    search: str | None = None
    has_value: bool = False
    has_meta: bool = False
    base_unit: str | None = None

    def apply(self, snapshots: list[PathSnapshot]) -> list[PathSnapshot]:
        filtered = snapshots
        if self.search:
            needle = self.search.lower()
            filtered = [s for s in filtered if needle in s.path.lower()]
        if self.has_value:
            filtered = [s for s in filtered if s.value is not None]
        if self.has_meta:
            filtered = [s for s in filtered if s.meta is not None]
        if self.base_unit:
            filtered = [s for s in filtered if s.meta is not None and s.meta.units == self.base_unit]
        return filtered


class ChangeEvent(WhatIfBaseModel):
    """One tree mutation as delivered by a change feed."""

    path: str
    value: Any = None
    timestamp: str | None = None
    source: str | None = None

    @field_validator("source", mode="before")
    @classmethod
    def _flatten_source(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("label")
        return value

    def to_snapshot(self) -> PathSnapshot:
        return PathSnapshot(path=self.path, value=self.value, timestamp=self.timestamp, source=self.source)


class UnitInfo(WhatIfBaseModel):
    unit: str
    description: str = Field(default="")
