from __future__ import annotations

from typing import Any

import pytest

from pywhatif.exceptions import WhatIfTransportError
from pywhatif.host import MemoryHost


class FakeReader:
    """In-memory stand-in for the server HTTP API."""

    def __init__(self, vessel: dict[str, Any] | None = None, *, fail: bool = False) -> None:
        self.vessel = vessel or {}
        self.fail = fail
        self.fetched_paths: list[str] = []
        self.vessel_fetches = 0

    async def fetch_vessel(self) -> dict[str, Any]:
        self.vessel_fetches += 1
        if self.fail:
            raise WhatIfTransportError("HTTP 503 from /signalk/v1/api/vessels/self", status_code=503)
        return self.vessel

    async def fetch_path(self, path: str) -> Any:
        self.fetched_paths.append(path)
        if self.fail:
            raise WhatIfTransportError("connection refused")
        return {"value": None}


def sample_tree() -> dict[str, Any]:
    return {
        "navigation": {
            "speedOverGround": {
                "value": 3.2,
                "timestamp": "2024-01-01T00:00:00.000Z",
                "$source": "nmea.GP",
                "meta": {"units": "m/s", "description": "Speed over ground"},
            },
            "headingTrue": {
                "value": 1.57,
                "$source": "n2k.115",
                "meta": {"units": "rad"},
            },
        },
        "environment": {
            "outside": {
                "temperature": {"value": 290.15, "meta": {"units": "K"}},
                "humidity": {"value": None},
            },
        },
    }


@pytest.fixture
def host() -> MemoryHost:
    return MemoryHost(sample_tree())
