from __future__ import annotations

from typing import Any

import pytest
from conftest import FakeReader, sample_tree

from pywhatif._constants import is_valid_path
from pywhatif.exceptions import WhatIfPathError, WhatIfTransportError
from pywhatif.host import MemoryHost
from pywhatif.injector import ValueInjector
from pywhatif.models import PathFilter, PathMeta
from pywhatif.registry import PathRegistry


def _registry(host: Any, reader: FakeReader | None = None) -> PathRegistry:
    injector = ValueInjector(host, context="vessels.self")
    return PathRegistry(host, injector, reader=reader)


@pytest.mark.asyncio
async def test_create_then_read_round_trip(host: MemoryHost) -> None:
    registry = _registry(host)

    await registry.create("environment.test.ratio", 0.75, PathMeta(units="ratio", description="Test ratio"))
    snapshot = await registry.read("environment.test.ratio")

    assert snapshot is not None
    assert snapshot.value == 0.75
    assert snapshot.source == "whatif-helper"
    assert snapshot.meta is not None
    assert snapshot.meta.units == "ratio"
    assert snapshot.meta.description == "Test ratio"
    assert registry.is_created("environment.test.ratio")
    assert registry.list_created() == ["environment.test.ratio"]


@pytest.mark.asyncio
async def test_create_sends_value_before_meta(host: MemoryHost) -> None:
    await _registry(host).create("environment.test", 1, PathMeta(units="m"))

    first, second = (delta["updates"][0] for _, delta in host.messages)
    assert first["values"] == [{"path": "environment.test", "value": 1}]
    assert second["meta"] == [{"path": "environment.test", "value": {"units": "m"}}]


@pytest.mark.asyncio
async def test_create_without_meta_is_tracked(host: MemoryHost) -> None:
    registry = _registry(host)

    await registry.create("environment.plain", "on")

    assert registry.is_created("environment.plain")
    assert registry.custom_meta("environment.plain") is None
    assert len(host.messages) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path", ["", "environment..test", "1abc.test", "environment.test.", "env-ironment", "environment.test\n"]
)
async def test_create_rejects_invalid_paths(host: MemoryHost, path: str) -> None:
    registry = _registry(host)

    with pytest.raises(WhatIfPathError):
        await registry.create(path, 1)

    assert registry.list_created() == []
    assert host.messages == []


@pytest.mark.asyncio
async def test_numeric_segments_are_valid(host: MemoryHost) -> None:
    registry = _registry(host)
    await registry.create("electrical.batteries.1.voltage", 12.4)
    assert registry.is_created("electrical.batteries.1.voltage")


@pytest.mark.asyncio
async def test_read_missing_path_returns_none(host: MemoryHost) -> None:
    assert await _registry(host).read("navigation.nothing") is None


@pytest.mark.asyncio
async def test_read_existing_path_reports_tree_meta(host: MemoryHost) -> None:
    snapshot = await _registry(host).read("navigation.speedOverGround")

    assert snapshot is not None
    assert snapshot.value == 3.2
    assert snapshot.source == "nmea.GP"
    assert snapshot.timestamp == "2024-01-01T00:00:00.000Z"
    assert snapshot.meta is not None and snapshot.meta.units == "m/s"


@pytest.mark.asyncio
async def test_custom_meta_overrides_tree_meta(host: MemoryHost) -> None:
    registry = _registry(host)
    await registry.create("navigation.speedOverGround", 4.0, PathMeta(units="kn"))

    snapshot = await registry.read("navigation.speedOverGround")
    assert snapshot is not None and snapshot.meta is not None
    assert snapshot.meta.units == "kn"
    assert snapshot.meta.description == "Speed over ground"

    listed = {s.path: s for s in await registry.list()}
    assert listed["navigation.speedOverGround"].meta.units == "kn"  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_list_is_sorted_by_path(host: MemoryHost) -> None:
    paths = [s.path for s in await _registry(host).list()]
    assert paths == [
        "environment.outside.humidity",
        "environment.outside.temperature",
        "navigation.headingTrue",
        "navigation.speedOverGround",
    ]


@pytest.mark.asyncio
async def test_list_filters(host: MemoryHost) -> None:
    registry = _registry(host)

    by_search = await registry.list(PathFilter(search="SPEED"))
    assert [s.path for s in by_search] == ["navigation.speedOverGround"]

    with_value = await registry.list(PathFilter(has_value=True))
    assert "environment.outside.humidity" not in [s.path for s in with_value]

    with_meta = await registry.list(PathFilter(has_meta=True))
    assert [s.path for s in with_meta] == [
        "environment.outside.temperature",
        "navigation.headingTrue",
        "navigation.speedOverGround",
    ]

    by_unit = await registry.list(PathFilter(base_unit="rad"))
    assert [s.path for s in by_unit] == ["navigation.headingTrue"]


@pytest.mark.asyncio
async def test_list_filters_compose(host: MemoryHost) -> None:
    registry = _registry(host)
    result = await registry.list(PathFilter(search="navigation", has_meta=True, base_unit="m/s"))
    assert [s.path for s in result] == ["navigation.speedOverGround"]


@pytest.mark.asyncio
async def test_list_falls_back_to_http_when_host_tree_empty() -> None:
    reader = FakeReader(sample_tree())
    result = await _registry(MemoryHost(), reader).list()

    assert reader.vessel_fetches == 1
    assert len(result) == 4


@pytest.mark.asyncio
async def test_list_does_not_fetch_when_host_has_paths(host: MemoryHost) -> None:
    reader = FakeReader(sample_tree())
    await _registry(host, reader).list()
    assert reader.vessel_fetches == 0


@pytest.mark.asyncio
async def test_list_http_failure_with_empty_tree_returns_empty() -> None:
    reader = FakeReader(fail=True)
    assert await _registry(MemoryHost(), reader).list() == []


class _TreelessHost(MemoryHost):
    def get_path(self, path: str) -> Any:
        return None

    def get_self_path(self, path: str) -> Any:
        return None


@pytest.mark.asyncio
async def test_list_http_failure_without_tree_raises() -> None:
    with pytest.raises(WhatIfTransportError):
        await _registry(_TreelessHost(), FakeReader(fail=True)).list()


@pytest.mark.asyncio
async def test_list_without_tree_or_reader_is_empty() -> None:
    assert await _registry(_TreelessHost()).list() == []


def test_available_units() -> None:
    units = {u.unit: u.description for u in PathRegistry.available_units()}
    assert units["ratio"] == "Ratio (0-1)"
    assert units["m/s"] == "Speed (meters per second)"
    assert "" in units


@pytest.mark.parametrize("path", ["a.b\n", "a.b\r\n", " a.b"])
def test_is_valid_path_rejects_surrounding_whitespace(path: str) -> None:
    assert is_valid_path(path) is False
