"""REST routes for browsing, setting and creating paths and managing PUT handlers.

All routes live under the plugin's API prefix and return JSON. Errors are
reported as ``{"error": "..."}`` with the matching HTTP status.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from pywhatif._constants import is_valid_path
from pywhatif.exceptions import WhatIfError, WhatIfInterceptError
from pywhatif.intercept import WriteInterceptRegistry
from pywhatif.injector import ValueInjector
from pywhatif.models import PathFilter, PathMeta, iso_now
from pywhatif.registry import PathRegistry
from pywhatif.values import parse_value_input

_logger = logging.getLogger(__name__)

_INVALID_PATH = "Invalid path format. Use dot-separated segments (alphanumeric or numeric)."


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _path_param(request: web.Request) -> str:
    return request.match_info.get("path", "").strip("/").replace("/", ".")


def _coerce_value(body: dict[str, Any]) -> Any:
    value = body["value"]
    if isinstance(value, str) and not body.get("raw", False):
        return parse_value_input(value)
    return value


async def _json_body(request: web.Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _query_flag(request: web.Request, name: str) -> bool:
    return request.query.get(name) == "true"


class WhatIfApi:
    """aiohttp handlers bound to one plugin instance's components."""

    def __init__(
        self,
        registry: PathRegistry,
        injector: ValueInjector,
        intercepts: WriteInterceptRegistry,
    ) -> None:
        self._registry = registry
        self._injector = injector
        self._intercepts = intercepts

    def routes(self, prefix: str) -> list[web.RouteDef]:
        prefix = prefix.rstrip("/")
        return [
            web.get(f"{prefix}/paths", self.list_paths),
            web.post(f"{prefix}/paths", self.create_path),
            web.get(f"{prefix}/paths/{{path:.+}}", self.get_path),
            web.put(f"{prefix}/value/{{path:.+}}", self.set_value),
            web.get(f"{prefix}/puts", self.list_puts),
            web.post(f"{prefix}/puts", self.register_put),
            web.delete(f"{prefix}/puts/{{path:.+}}", self.unregister_put),
            web.get(f"{prefix}/units", self.list_units),
            web.get(f"{prefix}/created", self.list_created),
        ]

    def attach(self, app: web.Application, prefix: str) -> None:
        app.router.add_routes(self.routes(prefix))

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    async def list_paths(self, request: web.Request) -> web.Response:
        path_filter = PathFilter(
            search=request.query.get("search") or None,
            has_value=_query_flag(request, "hasValue"),
            has_meta=_query_flag(request, "hasMeta"),
            base_unit=request.query.get("baseUnit") or None,
        )
        try:
            snapshots = await self._registry.list(path_filter)
        except WhatIfError as exc:
            _logger.error("Error listing paths: %s", exc)
            return _error(500, "Failed to list paths")
        return web.json_response([s.to_wire() for s in snapshots])

    async def get_path(self, request: web.Request) -> web.Response:
        path = _path_param(request)
        if not path:
            return _error(400, "Path required")
        snapshot = await self._registry.read(path)
        if snapshot is None:
            return _error(404, "Path not found")
        data = snapshot.to_wire()
        data["hasPutHandler"] = self._intercepts.has(path)
        return web.json_response(data)

    async def create_path(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        if body is None:
            return _error(400, "Request body must be a JSON object")
        path = body.get("path")
        if not path or not isinstance(path, str):
            return _error(400, "Path is required")
        if "value" not in body:
            return _error(400, "Value is required")
        if not is_valid_path(path):
            return _error(400, _INVALID_PATH)

        meta: PathMeta | None = None
        if body.get("meta") is not None:
            try:
                meta = PathMeta.model_validate(body["meta"])
            except ValidationError:
                return _error(400, "Invalid metadata")

        value = _coerce_value(body)
        enable_put = bool(body.get("enablePut", False))
        try:
            await self._registry.create(path, value, meta)
            if enable_put:
                self._intercepts.register(path, accept_all_sources=True)
        except WhatIfError as exc:
            _logger.error("Error creating path: %s", exc)
            return _error(500, "Failed to create path")

        return web.json_response(
            {
                "path": path,
                "value": value,
                "meta": meta.to_wire() if meta is not None else None,
                "hasPutHandler": enable_put,
            },
            status=201,
        )

    async def set_value(self, request: web.Request) -> web.Response:
        path = _path_param(request)
        if not path:
            return _error(400, "Path required")
        body = await _json_body(request)
        if body is None or "value" not in body:
            return _error(400, "Value is required")

        value = _coerce_value(body)
        source = body.get("source") or None
        try:
            await self._injector.inject(path, value, source)
        except WhatIfError as exc:
            _logger.error("Error setting value: %s", exc)
            return _error(500, "Failed to set value")

        return web.json_response({"path": path, "value": value, "source": source, "timestamp": iso_now()})

    # ------------------------------------------------------------------
    # PUT handlers
    # ------------------------------------------------------------------

    async def list_puts(self, request: web.Request) -> web.Response:
        return web.json_response([record.to_wire() for record in self._intercepts.list()])

    async def register_put(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        if body is None or not body.get("path"):
            return _error(400, "Path is required")
        path = str(body["path"])
        if self._intercepts.has(path):
            return _error(409, "PUT handler already registered for this path")

        options = body.get("options") or {}
        accept_all = bool(options.get("acceptAllSources", False)) if isinstance(options, dict) else False
        try:
            record = self._intercepts.register(path, accept_all_sources=accept_all)
        except WhatIfInterceptError as exc:
            _logger.error("Error registering PUT handler: %s", exc)
            status = 500 if self._intercepts.available else 501
            return _error(status, "Failed to register PUT handler")
        return web.json_response(record.to_wire(), status=201)

    async def unregister_put(self, request: web.Request) -> web.Response:
        path = _path_param(request)
        if not path:
            return _error(400, "Path required")
        try:
            removed = self._intercepts.unregister(path)
        except WhatIfInterceptError as exc:
            _logger.error("Error unregistering PUT handler: %s", exc)
            return _error(500, "Failed to unregister PUT handler")
        if not removed:
            return _error(404, "PUT handler not found for this path")
        return web.Response(status=204)

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    async def list_units(self, request: web.Request) -> web.Response:
        return web.json_response([unit.to_wire() for unit in self._registry.available_units()])

    async def list_created(self, request: web.Request) -> web.Response:
        return web.json_response(self._registry.list_created())
