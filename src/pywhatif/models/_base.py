"""Base model for pywhatif wire types.

Every model inherits from :class:`WhatIfBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys used on the wire
  (``displayName``, ``acceptAllSources``) map to snake_case fields.
* ``populate_by_name`` so Python callers can use either spelling.
* :meth:`WhatIfBaseModel.to_wire` producing the JSON-ready camelCase dict.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def iso_now() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WhatIfBaseModel(BaseModel):
    """Base for wire models."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-ready dict using wire (camelCase) keys, dropping unset ``None`` fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
