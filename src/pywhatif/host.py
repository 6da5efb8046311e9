"""Host collaborator interfaces and an in-process implementation.

pywhatif never owns the data tree. Everything it needs from the SignalK
server is expressed as the structural protocols below, so the real server
bridge, :class:`MemoryHost` and test doubles are interchangeable.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pywhatif._constants import DEFAULT_CONTEXT
from pywhatif.models import ChangeEvent, PutResult, iso_now

_logger = logging.getLogger(__name__)

PutHandler = Callable[[str, str, Any], Awaitable[PutResult]]
ChangeCallback = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], None]


class DataTreeHost(Protocol):
    """Read and submit access to the server's data tree."""

    self_id: str | None

    def get_self_path(self, path: str) -> Any:
        ...

    def get_path(self, path: str) -> Any:
        ...

    def handle_message(self, plugin_id: str, delta: dict[str, Any]) -> Awaitable[None] | None:
        ...


class WriteInterceptHost(Protocol):
    """Host mechanism for installing PUT handlers scoped to ``(context, path)``."""

    def register_put_handler(
        self,
        context: str,
        path: str,
        handler: PutHandler,
        source: str | None = None,
    ) -> Unsubscribe:
        ...


class ChangeFeed(Protocol):
    """Subscription feed yielding every tree mutation."""

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        ...


@dataclass(frozen=True)
class _RegisteredPut:
    handler: PutHandler
    source: str | None


class MemoryHost:
    """In-process data tree implementing every host protocol.

    The tree uses the SignalK full format: nested dicts whose leaves carry
    ``value``, ``timestamp``, ``$source`` and optionally ``meta``.

    Usage::

        host = MemoryHost({"navigation": {"speedOverGround": {"value": 3.2}}})
        host.handle_message("test", delta)
        result = await host.put("navigation.speedOverGround", 4.0, source="whatif-helper")
    """

    def __init__(self, tree: dict[str, Any] | None = None, *, self_id: str | None = None) -> None:
        self.self_id = self_id
        self._vessel: dict[str, Any] = copy.deepcopy(tree) if tree else {}
        self._put_handlers: dict[str, _RegisteredPut] = {}
        self._subscribers: list[ChangeCallback] = []
        self.messages: list[tuple[str, dict[str, Any]]] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _is_self_context(self, context: str) -> bool:
        if context == DEFAULT_CONTEXT:
            return True
        return self.self_id is not None and context == f"vessels.{self.self_id}"

    def get_self_path(self, path: str) -> Any:
        node: Any = self._vessel
        if path:
            for segment in path.split("."):
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
        return copy.deepcopy(node)

    def get_path(self, path: str) -> Any:
        for context in (DEFAULT_CONTEXT, f"vessels.{self.self_id}" if self.self_id else None):
            if context is None:
                continue
            if path == context:
                return self.get_self_path("")
            if path.startswith(f"{context}."):
                return self.get_self_path(path[len(context) + 1 :])
        return None

    # ------------------------------------------------------------------
    # Delta submission
    # ------------------------------------------------------------------

    def handle_message(self, plugin_id: str, delta: dict[str, Any]) -> None:
        context = delta.get("context") or DEFAULT_CONTEXT
        if not self._is_self_context(context):
            _logger.debug("Ignoring delta for foreign context %s from %s", context, plugin_id)
            return
        updates = delta.get("updates")
        if not isinstance(updates, list):
            raise ValueError("delta has no updates list")

        self.messages.append((plugin_id, copy.deepcopy(delta)))
        for update in updates:
            source = update.get("$source")
            if source is None and isinstance(update.get("source"), dict):
                source = update["source"].get("label")
            timestamp = update.get("timestamp") or iso_now()
            for entry in update.get("meta") or []:
                self._apply_meta(entry["path"], entry.get("value") or {})
            for entry in update.get("values") or []:
                path = entry.get("path")
                if not path:
                    raise ValueError("delta value entry has no path")
                self._apply_value(path, entry.get("value"), timestamp, source)

    def _node_for(self, path: str) -> dict[str, Any]:
        node = self._vessel
        for segment in path.split("."):
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        return node

    def _apply_value(self, path: str, value: Any, timestamp: str, source: str | None) -> None:
        leaf = self._node_for(path)
        leaf["value"] = copy.deepcopy(value)
        leaf["timestamp"] = timestamp
        if source is not None:
            leaf["$source"] = source
        else:
            leaf.pop("$source", None)
        self._notify(ChangeEvent(path=path, value=value, timestamp=timestamp, source=source))

    def _apply_meta(self, path: str, meta: dict[str, Any]) -> None:
        leaf = self._node_for(path)
        existing = leaf.get("meta")
        merged = dict(existing) if isinstance(existing, dict) else {}
        merged.update(copy.deepcopy(meta))
        leaf["meta"] = merged

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                _logger.debug("Change subscriber failed for %s", event.path, exc_info=True)

    # ------------------------------------------------------------------
    # PUT handling
    # ------------------------------------------------------------------

    def register_put_handler(
        self,
        context: str,
        path: str,
        handler: PutHandler,
        source: str | None = None,
    ) -> Unsubscribe:
        if not self._is_self_context(context):
            raise ValueError(f"PUT handlers are only supported for the self vessel, got {context}")
        registered = _RegisteredPut(handler=handler, source=source)
        self._put_handlers[path] = registered

        def _unregister() -> None:
            if self._put_handlers.get(path) is registered:
                del self._put_handlers[path]

        return _unregister

    def has_put_handler(self, path: str) -> bool:
        return path in self._put_handlers

    async def put(self, path: str, value: Any, *, source: str | None = None) -> PutResult:
        """Dispatch a PUT request the way the server does for an external actor."""
        registered = self._put_handlers.get(path)
        if registered is None:
            return PutResult.failed(f"PUT not supported for {path}", status_code=405)
        if registered.source is not None and source != registered.source:
            return PutResult.failed(f"No PUT handler for {path} accepts source {source}", status_code=400)
        context = f"vessels.{self.self_id}" if self.self_id else DEFAULT_CONTEXT
        return await registered.handler(context, path, value)
