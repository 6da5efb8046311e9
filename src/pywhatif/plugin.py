"""Plugin lifecycle: wires the components onto a host and an aiohttp app."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp
from aiohttp import web

from pywhatif._constants import DEFAULT_CONTEXT, PLUGIN_DESCRIPTION, PLUGIN_ID, PLUGIN_NAME
from pywhatif._mqtt import MqttChangeFeed
from pywhatif._transport import TreeHttpClient
from pywhatif.api import WhatIfApi
from pywhatif.broadcaster import LiveUpdateBroadcaster
from pywhatif.config import WhatIfConfig
from pywhatif.host import ChangeFeed, DataTreeHost
from pywhatif.injector import ValueInjector
from pywhatif.intercept import WriteInterceptRegistry
from pywhatif.registry import PathRegistry

_logger = logging.getLogger(__name__)


def vessel_context(self_id: str | None) -> str:
    """Delta context for the vessel the plugin runs on."""
    return f"vessels.{self_id}" if self_id else DEFAULT_CONTEXT


class WhatIfHelper:
    """The what-if helper plugin.

    All components are built up front; :meth:`start` and :meth:`stop`
    manage the parts holding network resources. Use :meth:`setup` to
    mount it on an aiohttp application, or ``async with`` when driving it
    directly::

        async with WhatIfHelper(host, config) as helper:
            await helper.registry.create("environment.test", 1)
    """

    id = PLUGIN_ID
    name = PLUGIN_NAME
    description = PLUGIN_DESCRIPTION

    def __init__(
        self,
        host: DataTreeHost,
        config: WhatIfConfig | None = None,
        *,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._host = host
        self._config = config or WhatIfConfig()
        self._context = vessel_context(getattr(host, "self_id", None))
        self._mqtt: MqttChangeFeed | None = None
        self._started = False

        self.http = TreeHttpClient(self._config, http_session)
        self.injector = ValueInjector(
            host,
            context=self._context,
            reader=self.http,
            verify_enabled=self._config.verify_enabled,
            verify_delay=self._config.verify_delay,
        )
        self.registry = PathRegistry(host, self.injector, reader=self.http)
        self.intercepts = WriteInterceptRegistry(host, self.injector)
        self.broadcaster = LiveUpdateBroadcaster(
            self.registry,
            stream_path=self._config.stream_path,
            queue_size=self._config.observer_queue_size,
        )
        self.api = WhatIfApi(self.registry, self.injector, self.intercepts)

    @property
    def config(self) -> WhatIfConfig:
        return self._config

    @property
    def context(self) -> str:
        return self._context

    @property
    def is_started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # aiohttp integration
    # ------------------------------------------------------------------

    def setup(self, app: web.Application) -> None:
        """Mount the REST routes and the stream endpoint and hook app signals."""
        self.api.attach(app, self._config.api_prefix)
        self.broadcaster.attach(app)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)

    async def _on_startup(self, _app: web.Application) -> None:
        await self.start()

    async def _on_cleanup(self, _app: web.Application) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        _logger.info("Starting %s (context %s)", PLUGIN_NAME, self._context)
        await self.http.start()
        self.broadcaster.subscribe_to(await self._select_feed())
        self._started = True

    async def _select_feed(self) -> ChangeFeed | None:
        if self._config.mqtt_enabled:
            loop = asyncio.get_running_loop()
            feed = MqttChangeFeed(
                loop=loop,
                host=self._config.mqtt_host,
                port=self._config.mqtt_port,
                topic=self._config.mqtt_topic,
                keepalive=self._config.mqtt_keepalive,
                logger=_logger,
            )
            try:
                await loop.run_in_executor(None, feed.start)
            except Exception:
                _logger.warning("MQTT change feed unavailable, falling back to host feed", exc_info=True)
            else:
                self._mqtt = feed
                return feed
        if callable(getattr(self._host, "subscribe", None)):
            return self._host  # type: ignore[return-value]
        return None

    async def stop(self) -> None:
        """Release handlers, observers, read-backs and network resources."""
        if not self._started:
            return
        _logger.info("Stopping %s", PLUGIN_NAME)
        self._started = False
        self.intercepts.teardown_all()
        await self.broadcaster.close()
        await self.injector.drain()
        mqtt = self._mqtt
        self._mqtt = None
        if mqtt is not None:
            await asyncio.get_running_loop().run_in_executor(None, mqtt.stop)
        await self.http.close()

    async def __aenter__(self) -> WhatIfHelper:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
