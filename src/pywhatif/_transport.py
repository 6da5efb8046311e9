"""HTTP access to the SignalK server's REST data API."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from pywhatif._constants import VESSEL_API_PATH
from pywhatif.config import WhatIfConfig
from pywhatif.exceptions import WhatIfError, WhatIfTransportError

_logger = logging.getLogger(__name__)


class TreeReader(Protocol):
    """Structural interface used by the registry and the injector.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`TreeHttpClient`) concrete.
    """

    async def fetch_vessel(self) -> dict[str, Any]:
        ...

    async def fetch_path(self, path: str) -> Any:
        ...


class TreeHttpClient:
    """Reads the self-vessel tree over ``/signalk/v1/api``.

    The aiohttp session is either supplied by the caller (and left open) or
    created on :meth:`start` and closed on :meth:`close`.
    """

    def __init__(
        self,
        config: WhatIfConfig,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._external_session = http_session is not None
        self._http = http_session

    async def start(self) -> None:
        if self._http is None:
            self._http = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._config.http_timeout))

    async def close(self) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
        self._http = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise WhatIfError("HTTP client not started")
        return self._http

    async def _get_json(self, endpoint: str) -> Any:
        url = f"{self._config.base_url}{endpoint}"
        _logger.debug("GET %s", url)
        http = self._require_session()
        try:
            async with http.get(url, headers={"accept": "application/json"}) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise WhatIfTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except WhatIfTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise WhatIfTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise WhatIfTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

    async def fetch_vessel(self) -> dict[str, Any]:
        """Fetch the full self-vessel tree."""
        data = await self._get_json(VESSEL_API_PATH)
        if not isinstance(data, dict):
            raise WhatIfTransportError("Vessel tree is not an object", endpoint=VESSEL_API_PATH)
        return data

    async def fetch_path(self, path: str) -> Any:
        """Fetch a single path (``a.b.c`` is requested as ``/a/b/c``)."""
        return await self._get_json(f"{VESSEL_API_PATH}/{path.replace('.', '/')}")
