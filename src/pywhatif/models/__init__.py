"""Data models for pywhatif."""

from pywhatif.models._base import WhatIfBaseModel, iso_now
from pywhatif.models.delta import Delta, DeltaUpdate, PathValue
from pywhatif.models.intercept import PutResult, PutState, WriteInterceptor
from pywhatif.models.stream import ClientMessage, ClientMessageType
from pywhatif.models.tree import ChangeEvent, PathFilter, PathMeta, PathSnapshot, UnitInfo, Zone

__all__ = [
    "ChangeEvent",
    "ClientMessage",
    "ClientMessageType",
    "Delta",
    "DeltaUpdate",
    "PathFilter",
    "PathMeta",
    "PathSnapshot",
    "PathValue",
    "PutResult",
    "PutState",
    "UnitInfo",
    "WhatIfBaseModel",
    "WriteInterceptor",
    "Zone",
    "iso_now",
]
