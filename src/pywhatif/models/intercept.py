"""Write interceptor (PUT handler) models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import ConfigDict, Field

from pywhatif.models._base import WhatIfBaseModel, iso_now


class PutState(StrEnum):
    COMPLETED = "COMPLETED"
    PENDING = "PENDING"
    FAILED = "FAILED"


class PutResult(WhatIfBaseModel):
    """Outcome reported back to the host for a PUT request."""

    model_config = ConfigDict(frozen=True)

    state: PutState
    status_code: int | None = None
    message: str | None = None

    @classmethod
    def completed(cls) -> PutResult:
        return cls(state=PutState.COMPLETED, status_code=200)

    @classmethod
    def failed(cls, message: str, status_code: int = 500) -> PutResult:
        return cls(state=PutState.FAILED, status_code=status_code, message=message)


class WriteInterceptor(WhatIfBaseModel):
    """Bookkeeping record for an installed PUT handler."""

    model_config = ConfigDict(frozen=True)

    path: str
    registered_at: str = Field(default_factory=iso_now)
    accept_all_sources: bool = False
