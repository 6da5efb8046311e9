"""Live update broadcaster over WebSocket.

Observers connect to one dedicated stream path on the host's aiohttp
application, pick the paths they care about with ``subscribe`` messages and
receive ``update`` messages for every matching tree change.

Each observer owns a bounded outbound queue drained by a single sender
task, so a socket only ever has one writer. A slow observer whose queue is
full simply misses deliveries; nothing is retried.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from aiohttp import WSMsgType, web
from pydantic import ValidationError

from pywhatif._constants import WILDCARD
from pywhatif.exceptions import WhatIfError, WhatIfMessageError
from pywhatif.host import ChangeFeed, Unsubscribe
from pywhatif.models import ChangeEvent, ClientMessage, ClientMessageType, PathSnapshot
from pywhatif.models.stream import error_message, full_message, update_message
from pywhatif.registry import PathRegistry

_logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Observer:
    """A connected stream client and its subscription set."""

    id: str
    ws: web.WebSocketResponse
    queue: asyncio.Queue[str]
    subscriptions: set[str] = field(default_factory=set)
    sender: asyncio.Task[None] | None = None

    @property
    def writable(self) -> bool:
        return not self.ws.closed

    def wants(self, path: str) -> bool:
        return path in self.subscriptions or WILDCARD in self.subscriptions


def parse_client_message(data: str | bytes) -> ClientMessage:
    """Decode one inbound frame.

    Raises
    ------
    WhatIfMessageError
        The frame is not a JSON object with a string ``type``.
    """
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise WhatIfMessageError("Invalid message format") from exc
    if not isinstance(payload, dict):
        raise WhatIfMessageError("Invalid message format")
    try:
        return ClientMessage.model_validate(payload)
    except ValidationError as exc:
        raise WhatIfMessageError("Invalid message format") from exc


class LiveUpdateBroadcaster:
    """Fans tree changes out to subscribed WebSocket observers.

    Parameters
    ----------
    registry
        Source of snapshots answering ``subscribe`` requests.
    stream_path
        The only route this broadcaster claims on the host application.
    queue_size
        Outbound messages buffered per observer.
    """

    def __init__(
        self,
        registry: PathRegistry,
        *,
        stream_path: str,
        queue_size: int = 256,
    ) -> None:
        self._registry = registry
        self._stream_path = stream_path
        self._queue_size = queue_size
        self._observers: dict[str, Observer] = {}
        self._ids = itertools.count(1)
        self._feed_unsubscribe: Unsubscribe | None = None

    @property
    def stream_path(self) -> str:
        return self._stream_path

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def observers(self) -> list[Observer]:
        return list(self._observers.values())

    def attach(self, app: web.Application) -> None:
        """Add the stream route to *app*; every other route is left alone."""
        app.router.add_get(self._stream_path, self.handle_connection)
        _logger.debug("WebSocket stream registered at %s", self._stream_path)

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    def subscribe_to(self, feed: ChangeFeed | None) -> None:
        """Start consuming *feed*; a missing feed leaves the stream snapshot-only."""
        self.unsubscribe_feed()
        if feed is None:
            _logger.debug("Delta stream not available")
            return
        try:
            self._feed_unsubscribe = feed.subscribe(self.handle_change)
        except Exception:
            _logger.debug("Could not subscribe to delta stream", exc_info=True)
            return
        _logger.debug("Subscribed to delta stream")

    def unsubscribe_feed(self) -> None:
        unsubscribe = self._feed_unsubscribe
        self._feed_unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()

    def handle_change(self, event: ChangeEvent) -> int:
        """Deliver *event* to every interested observer; returns the number queued."""
        if not event.path:
            return 0
        payload: str | None = None
        delivered = 0
        for observer in list(self._observers.values()):
            if not observer.wants(event.path):
                continue
            if payload is None:
                payload = json.dumps(update_message(event.to_snapshot()))
            if self._enqueue(observer, payload):
                delivered += 1
        return delivered

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def handle_connection(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        observer = Observer(
            id=f"client-{next(self._ids)}",
            ws=ws,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        observer.sender = asyncio.get_running_loop().create_task(self._drain(observer))
        self._observers[observer.id] = observer
        _logger.debug("Client %s connected (%d total)", observer.id, len(self._observers))

        self.send(observer, full_message([]))
        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self.handle_frame(observer, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    _logger.error("Client %s error: %s", observer.id, ws.exception())
                    break
        finally:
            self._remove(observer)
            _logger.debug("Client %s disconnected (%d total)", observer.id, len(self._observers))
        return ws

    async def handle_frame(self, observer: Observer, data: str | bytes) -> None:
        try:
            message = parse_client_message(data)
        except WhatIfMessageError as exc:
            self.send_error(observer, str(exc))
            return
        try:
            await self.handle_message(observer, message)
        except WhatIfError as exc:
            _logger.error("Client %s request failed: %s", observer.id, exc)
            self.send_error(observer, str(exc))
        except Exception:
            _logger.error("Client %s request failed", observer.id, exc_info=True)
            self.send_error(observer, "Internal error")

    async def handle_message(self, observer: Observer, message: ClientMessage) -> None:
        if message.type == ClientMessageType.SUBSCRIBE:
            for path in message.targets():
                observer.subscriptions.add(path)
                _logger.debug("Client %s subscribed to %s", observer.id, path)
            await self.send_current_values(observer)
        elif message.type == ClientMessageType.UNSUBSCRIBE:
            for path in message.targets():
                observer.subscriptions.discard(path)
        elif message.type == ClientMessageType.UNSUBSCRIBE_ALL:
            observer.subscriptions.clear()
        else:
            self.send_error(observer, f"Unknown message type: {message.type}")

    async def send_current_values(self, observer: Observer) -> None:
        """Send one ``full`` message covering the observer's subscriptions."""
        snapshots: list[PathSnapshot] = []
        if WILDCARD in observer.subscriptions:
            snapshots = await self._registry.list()
        else:
            for path in sorted(observer.subscriptions):
                snapshot = await self._registry.read(path)
                if snapshot is not None:
                    snapshots.append(snapshot)
        self.send(observer, full_message(snapshots))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def send(self, observer: Observer, message: dict[str, Any]) -> bool:
        return self._enqueue(observer, json.dumps(message))

    def send_error(self, observer: Observer, message: str) -> bool:
        return self.send(observer, error_message(message))

    def _enqueue(self, observer: Observer, payload: str) -> bool:
        if observer.id not in self._observers or not observer.writable:
            return False
        try:
            observer.queue.put_nowait(payload)
        except asyncio.QueueFull:
            _logger.debug("Dropping message for slow client %s", observer.id)
            return False
        return True

    async def _drain(self, observer: Observer) -> None:
        while True:
            payload = await observer.queue.get()
            if observer.ws.closed:
                continue
            try:
                await observer.ws.send_str(payload)
            except Exception:
                _logger.debug("Send to client %s failed", observer.id, exc_info=True)
                return

    def _remove(self, observer: Observer) -> None:
        self._observers.pop(observer.id, None)
        observer.subscriptions.clear()
        if observer.sender is not None:
            observer.sender.cancel()

    async def close(self) -> None:
        """Detach from the change feed and close every observer."""
        self.unsubscribe_feed()
        observers = list(self._observers.values())
        self._observers.clear()
        for observer in observers:
            if observer.sender is not None:
                observer.sender.cancel()
            with contextlib.suppress(ConnectionResetError):
                await observer.ws.close()
        _logger.debug("WebSocket stream closed")
