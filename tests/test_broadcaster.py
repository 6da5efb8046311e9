from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from pywhatif.broadcaster import LiveUpdateBroadcaster, parse_client_message
from pywhatif.exceptions import WhatIfMessageError
from pywhatif.host import MemoryHost
from pywhatif.injector import ValueInjector
from pywhatif.models import ChangeEvent
from pywhatif.registry import PathRegistry

STREAM_PATH = "/plugins/signalk-whatif-helper/stream"


def _broadcaster(host: MemoryHost, **kwargs: Any) -> LiveUpdateBroadcaster:
    registry = PathRegistry(host, ValueInjector(host, context="vessels.self"))
    broadcaster = LiveUpdateBroadcaster(registry, stream_path=STREAM_PATH, **kwargs)
    broadcaster.subscribe_to(host)
    return broadcaster


@contextlib.asynccontextmanager
async def _client(broadcaster: LiveUpdateBroadcaster) -> AsyncIterator[TestClient]:
    app = web.Application()
    broadcaster.attach(app)
    async with TestClient(TestServer(app)) as client:
        yield client
    await broadcaster.close()


def _set(host: MemoryHost, path: str, value: Any, source: str = "test") -> None:
    host.handle_message(
        "test",
        {"context": "vessels.self", "updates": [{"$source": source, "values": [{"path": path, "value": value}]}]},
    )


async def _wait_for(predicate: Any, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def test_parse_client_message_rejects_garbage() -> None:
    for frame in ("not json", "[1, 2]", '{"paths": ["a"]}', '{"type": 5}'):
        with pytest.raises(WhatIfMessageError, match="Invalid message format"):
            parse_client_message(frame)


def test_parse_client_message_paths_win_over_path() -> None:
    message = parse_client_message('{"type": "subscribe", "paths": ["a.b", "c.d"], "path": "e.f"}')
    assert message.targets() == ["a.b", "c.d"]
    assert parse_client_message('{"type": "subscribe", "path": "e.f"}').targets() == ["e.f"]


def test_change_without_observers_delivers_nothing(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    assert broadcaster.handle_change(ChangeEvent(path="a.b", value=1)) == 0


@pytest.mark.asyncio
async def test_connect_receives_empty_full_message(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)

        assert await ws.receive_json(timeout=2) == {"type": "full", "paths": []}
        assert broadcaster.observer_count == 1
        await ws.close()


@pytest.mark.asyncio
async def test_subscribe_sends_snapshot_then_updates(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "subscribe", "paths": ["navigation.speedOverGround"]})
        snapshot = await ws.receive_json(timeout=2)
        assert snapshot["type"] == "full"
        assert [p["path"] for p in snapshot["paths"]] == ["navigation.speedOverGround"]
        assert snapshot["paths"][0]["value"] == 3.2
        assert snapshot["paths"][0]["meta"]["units"] == "m/s"

        _set(host, "navigation.headingTrue", 0.1)
        _set(host, "navigation.speedOverGround", 4.5)

        update = await ws.receive_json(timeout=2)
        assert update["type"] == "update"
        assert update["path"]["path"] == "navigation.speedOverGround"
        assert update["path"]["value"] == 4.5
        assert update["path"]["source"] == "test"
        assert update["path"]["timestamp"]
        await ws.close()


@pytest.mark.asyncio
async def test_subscribe_to_unknown_path_sends_empty_snapshot(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "subscribe", "path": "nothing.here"})

        assert await ws.receive_json(timeout=2) == {"type": "full", "paths": []}
        await ws.close()


@pytest.mark.asyncio
async def test_wildcard_receives_everything(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "subscribe", "paths": ["*"]})
        snapshot = await ws.receive_json(timeout=2)
        assert len(snapshot["paths"]) == 4

        _set(host, "environment.depth.belowKeel", 12.0)
        update = await ws.receive_json(timeout=2)
        assert update["path"]["path"] == "environment.depth.belowKeel"
        await ws.close()


@pytest.mark.asyncio
async def test_fan_out_to_matching_observers_only(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        sog = await client.ws_connect(STREAM_PATH)
        heading = await client.ws_connect(STREAM_PATH)
        for ws, path in ((sog, "navigation.speedOverGround"), (heading, "navigation.headingTrue")):
            await ws.receive_json(timeout=2)
            await ws.send_json({"type": "subscribe", "paths": [path]})
            await ws.receive_json(timeout=2)

        _set(host, "navigation.speedOverGround", 5.0)
        _set(host, "navigation.headingTrue", 2.0)

        assert (await sog.receive_json(timeout=2))["path"]["value"] == 5.0
        assert (await heading.receive_json(timeout=2))["path"]["value"] == 2.0
        await sog.close()
        await heading.close()


@pytest.mark.asyncio
async def test_unsubscribe_all_stops_updates(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)
        await ws.send_json({"type": "subscribe", "paths": ["navigation.speedOverGround", "*"]})
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "unsubscribeAll"})
        await _wait_for(lambda: not broadcaster.observers()[0].subscriptions)
        _set(host, "navigation.speedOverGround", 6.0)

        # Replies are delivered in order, so an update would arrive before this error.
        await ws.send_json({"type": "ping"})
        assert await ws.receive_json(timeout=2) == {"type": "error", "message": "Unknown message type: ping"}
        await ws.close()


@pytest.mark.asyncio
async def test_unsubscribe_single_path(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)
        await ws.send_json({"type": "subscribe", "paths": ["navigation.speedOverGround", "navigation.headingTrue"]})
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "unsubscribe", "paths": ["navigation.speedOverGround"]})
        await _wait_for(lambda: broadcaster.observers()[0].subscriptions == {"navigation.headingTrue"})
        _set(host, "navigation.speedOverGround", 6.0)
        _set(host, "navigation.headingTrue", 3.0)

        update = await ws.receive_json(timeout=2)
        assert update["path"]["path"] == "navigation.headingTrue"
        await ws.close()


@pytest.mark.asyncio
async def test_malformed_frames_keep_connection_open(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)

        await ws.send_str("{not json")
        assert await ws.receive_json(timeout=2) == {"type": "error", "message": "Invalid message format"}

        await ws.send_json({"type": "bogus"})
        assert await ws.receive_json(timeout=2) == {"type": "error", "message": "Unknown message type: bogus"}

        await ws.send_json({"type": "subscribe", "path": "navigation.headingTrue"})
        snapshot = await ws.receive_json(timeout=2)
        assert snapshot["paths"][0]["path"] == "navigation.headingTrue"
        await ws.close()


@pytest.mark.asyncio
async def test_disconnect_removes_observer(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)
        await ws.send_json({"type": "subscribe", "paths": ["*"]})
        await ws.receive_json(timeout=2)

        await ws.close()
        await _wait_for(lambda: broadcaster.observer_count == 0)

        assert broadcaster.handle_change(ChangeEvent(path="navigation.speedOverGround", value=1.0)) == 0


@pytest.mark.asyncio
async def test_full_queue_drops_deliveries(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host, queue_size=1)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)
        await ws.send_json({"type": "subscribe", "paths": ["a.b"]})
        await ws.receive_json(timeout=2)

        # Nothing yields between these calls, so the sender cannot drain the queue.
        delivered = [broadcaster.handle_change(ChangeEvent(path="a.b", value=i)) for i in range(3)]
        assert delivered == [1, 0, 0]
        assert (await ws.receive_json(timeout=2))["path"]["value"] == 0
        await ws.close()


@pytest.mark.asyncio
async def test_close_detaches_feed(host: MemoryHost) -> None:
    broadcaster = _broadcaster(host)
    await broadcaster.close()
    _set(host, "navigation.speedOverGround", 1.0)
    assert broadcaster.observer_count == 0


class _BrokenMetaHost(MemoryHost):
    def get_self_path(self, path: str) -> Any:
        if path.endswith(".meta"):
            raise RuntimeError("tree read failed")
        return super().get_self_path(path)


@pytest.mark.asyncio
async def test_host_read_failure_replies_error_and_keeps_connection() -> None:
    host = _BrokenMetaHost({"a": {"b": {"value": 1}}})
    broadcaster = _broadcaster(host)
    async with _client(broadcaster) as client:
        ws = await client.ws_connect(STREAM_PATH)
        await ws.receive_json(timeout=2)

        await ws.send_json({"type": "subscribe", "path": "a.b"})
        reply = await ws.receive_json(timeout=2)
        assert reply["type"] == "error"

        await ws.send_json({"type": "bogus"})
        assert await ws.receive_json(timeout=2) == {"type": "error", "message": "Unknown message type: bogus"}
        assert broadcaster.observer_count == 1
        await ws.close()
