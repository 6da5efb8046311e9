"""Plugin configuration for pywhatif."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pywhatif._constants import DEFAULT_API_PREFIX, DEFAULT_STREAM_PATH
from pywhatif.exceptions import WhatIfConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class WhatIfConfig:
    """Plugin configuration.

    Parameters
    ----------
    server_host : str
        Hostname of the SignalK server's HTTP API, used for the full-tree
        fallback fetch and the diagnostic read-back.
    server_port : int
        Port of the SignalK server's HTTP API.
    ssl : bool
        Use ``https`` instead of ``http`` for the server API.
    api_prefix : str
        URL prefix the REST routes are mounted under.
    stream_path : str
        Dedicated WebSocket endpoint for the live update stream.
    verify_enabled : bool
        Schedule a delayed HTTP read-back after every injection. Purely
        diagnostic; failures are only logged.
    verify_delay : float
        Seconds to wait before the read-back.
    http_timeout : float
        Total timeout in seconds for server API requests.
    observer_queue_size : int
        Outbound messages buffered per observer before deliveries are dropped.
    mqtt_enabled : bool
        Consume tree changes from an MQTT broker instead of the host feed.
    mqtt_host : str
        MQTT broker hostname.
    mqtt_port : int
        MQTT broker port.
    mqtt_topic : str
        Topic filter carrying SignalK values (``vessels/self/#``).
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    server_host: str = "localhost"
    server_port: int = 3000
    ssl: bool = False
    api_prefix: str = DEFAULT_API_PREFIX
    stream_path: str = DEFAULT_STREAM_PATH
    verify_enabled: bool = True
    verify_delay: float = 0.5
    http_timeout: float = 10.0
    observer_queue_size: int = 256
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "vessels/self/#"
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        if not self.stream_path.startswith("/"):
            raise WhatIfConfigError(f"stream_path must start with '/', got {self.stream_path!r}")
        if self.observer_queue_size <= 0:
            raise WhatIfConfigError("observer_queue_size must be positive")
        if self.verify_delay < 0:
            raise WhatIfConfigError("verify_delay must not be negative")

    @property
    def base_url(self) -> str:
        """Root URL of the SignalK server HTTP API."""
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.server_host}:{self.server_port}"

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> WhatIfConfig:
        """Create configuration from a host ``config.settings`` mapping.

        Picks up ``hostname``, ``port`` and ``ssl`` when present.
        """
        kwargs: dict[str, Any] = {}
        if isinstance(settings, dict):
            if settings.get("hostname"):
                kwargs["server_host"] = str(settings["hostname"])
            if settings.get("port"):
                kwargs["server_port"] = int(settings["port"])
            if "ssl" in settings:
                kwargs["ssl"] = bool(settings["ssl"])
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> WhatIfConfig:
        """Create configuration from environment variables.

        Reads optional ``WHATIF_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        WhatIfConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "WHATIF_SERVER_HOST": "server_host",
            "WHATIF_API_PREFIX": "api_prefix",
            "WHATIF_STREAM_PATH": "stream_path",
            "WHATIF_MQTT_HOST": "mqtt_host",
            "WHATIF_MQTT_TOPIC": "mqtt_topic",
        }
        _ENV_INT_MAP = {
            "WHATIF_SERVER_PORT": "server_port",
            "WHATIF_OBSERVER_QUEUE_SIZE": "observer_queue_size",
            "WHATIF_MQTT_PORT": "mqtt_port",
            "WHATIF_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        _ENV_FLOAT_MAP = {
            "WHATIF_VERIFY_DELAY": "verify_delay",
            "WHATIF_HTTP_TIMEOUT": "http_timeout",
        }
        _ENV_BOOL_MAP = {
            "WHATIF_SSL": ("ssl", False),
            "WHATIF_VERIFY_ENABLED": ("verify_enabled", True),
            "WHATIF_MQTT_ENABLED": ("mqtt_enabled", False),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
        except ValueError as exc:
            raise WhatIfConfigError(f"Invalid numeric environment value: {exc}") from exc

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
