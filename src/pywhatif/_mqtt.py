"""MQTT change feed.

Consumes SignalK values republished on an MQTT broker (``vessels/self/a/b``
topics carrying JSON values, or whole delta documents) and hands them to
subscribers on the asyncio loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, cast

import paho.mqtt.client as mqtt

from pywhatif.host import ChangeCallback, Unsubscribe
from pywhatif.models import ChangeEvent, iso_now


def topic_to_path(topic: str) -> str | None:
    """Map ``vessels/<id>/a/b`` (or plain ``a/b``) to ``a.b``."""
    segments = [segment for segment in topic.split("/") if segment]
    if segments and segments[0] == "vessels":
        segments = segments[2:]
    if not segments:
        return None
    return ".".join(segments)


def _events_from_delta(delta: dict[str, Any]) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    for update in delta.get("updates") or []:
        if not isinstance(update, dict):
            continue
        source = update.get("$source") or update.get("source")
        timestamp = update.get("timestamp") or iso_now()
        for entry in update.get("values") or []:
            if isinstance(entry, dict) and entry.get("path"):
                events.append(
                    ChangeEvent(path=entry["path"], value=entry.get("value"), timestamp=timestamp, source=source)
                )
    return events


def decode_mqtt_message(topic: str, payload: bytes) -> list[ChangeEvent]:
    """Decode one MQTT message into change events.

    A JSON object with an ``updates`` list is read as a delta; anything else
    is the value of the path named by the topic. Non-JSON payloads are kept
    as strings.
    """
    text = payload.decode("utf-8", errors="replace").strip()
    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError:
        parsed = text

    if isinstance(parsed, dict) and isinstance(parsed.get("updates"), list):
        return _events_from_delta(parsed)

    path = topic_to_path(topic)
    if path is None:
        return []
    return [ChangeEvent(path=path, value=parsed, timestamp=iso_now())]


class MqttChangeFeed:
    """Threaded paho-mqtt subscription that emits change events onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        host: str,
        port: int = 1883,
        topic: str = "vessels/self/#",
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._host = host
        self._port = port
        self._topic = topic
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._callbacks: list[ChangeCallback] = []

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def dispatch(self, events: list[ChangeEvent]) -> None:
        """Deliver *events* to every subscriber (runs on the loop thread)."""
        for event in events:
            for callback in list(self._callbacks):
                try:
                    callback(event)
                except Exception:
                    self._logger.debug("Change subscriber failed for %s", event.path, exc_info=True)

    def start(self) -> None:
        """Connect and subscribe. Blocking; run it in an executor."""
        self.stop()
        self._logger.debug("MQTT feed start requested host=%s port=%s topic=%s", self._host, self._port, self._topic)

        client = mqtt.Client(callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2)
        client.enable_logger(self._logger)

        def on_connect(c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", self._topic)
            c.subscribe(self._topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                events = decode_mqtt_message(msg.topic, msg.payload)
            except Exception:
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            if events:
                self._loop.call_soon_threadsafe(self.dispatch, events)

        def on_disconnect(_c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(self._host, self._port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
