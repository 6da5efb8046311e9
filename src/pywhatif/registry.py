"""Registry of created paths and the single read path into the tree.

The registry owns metadata for paths created through pywhatif and merges it
over whatever the tree reports, so every caller (REST layer, broadcaster
snapshots) sees the same view.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pywhatif._constants import AVAILABLE_UNITS, DEFAULT_CONTEXT, is_valid_path
from pywhatif._transport import TreeReader
from pywhatif.exceptions import WhatIfError, WhatIfPathError
from pywhatif.flatten import flatten_tree, meta_of, source_of
from pywhatif.host import DataTreeHost
from pywhatif.injector import ValueInjector
from pywhatif.models import PathFilter, PathMeta, PathSnapshot, UnitInfo

_logger = logging.getLogger(__name__)


class PathRegistry:
    """Created-path bookkeeping plus tree reads and listing.

    Parameters
    ----------
    host
        Data tree host used for reads.
    injector
        Injector receiving initial values of created paths.
    reader
        HTTP fallback used when the host cannot provide the full tree.
    """

    def __init__(
        self,
        host: DataTreeHost,
        injector: ValueInjector,
        *,
        reader: TreeReader | None = None,
    ) -> None:
        self._host = host
        self._injector = injector
        self._reader = reader
        self._created: dict[str, PathMeta | None] = {}

    # ------------------------------------------------------------------
    # Created paths
    # ------------------------------------------------------------------

    async def create(self, path: str, value: Any, meta: PathMeta | None = None) -> None:
        """Create *path* with an initial *value* and optional *meta*.

        Raises
        ------
        WhatIfPathError
            *path* is not a valid dot-separated path.
        WhatIfInjectionError
            The initial value or metadata could not be injected.
        """
        if not is_valid_path(path):
            raise WhatIfPathError(
                "Invalid path format. Use dot-separated segments (alphanumeric or numeric).",
                path=path,
            )
        _logger.debug("Creating path %s", path)

        if meta is not None:
            self._created[path] = meta
        else:
            self._created.setdefault(path, None)

        await self._injector.inject(path, value)
        if meta is not None:
            await self._injector.inject_meta(path, meta)

    def list_created(self) -> list[str]:
        return list(self._created)

    def is_created(self, path: str) -> bool:
        return path in self._created

    def custom_meta(self, path: str) -> PathMeta | None:
        return self._created.get(path)

    def _custom_meta_map(self) -> dict[str, PathMeta]:
        return {path: meta for path, meta in self._created.items() if meta is not None}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read(self, path: str) -> PathSnapshot | None:
        """Return the current snapshot of *path*, or ``None`` when the tree has no entry."""
        data = self._host.get_self_path(path)
        if data is None:
            return None

        if isinstance(data, Mapping):
            value = data["value"] if "value" in data else data
            timestamp = data.get("timestamp")
        else:
            value = data
            timestamp = None

        meta = meta_of(self._host.get_self_path(f"{path}.meta"), path)
        override = self._created.get(path)
        if override is not None:
            meta = meta.merged_with(override) if meta is not None else override

        return PathSnapshot(
            path=path,
            value=value,
            timestamp=timestamp if isinstance(timestamp, str) else None,
            source=source_of(data),
            meta=meta,
        )

    def _local_tree(self) -> Mapping[str, Any] | None:
        tree = self._host.get_path(DEFAULT_CONTEXT)
        _logger.debug("get_path(%r) returned data: %s", DEFAULT_CONTEXT, tree is not None)
        if not tree:
            try:
                tree = self._host.get_self_path("")
            except Exception:
                _logger.debug("get_self_path('') failed", exc_info=True)
                tree = None
        return tree if isinstance(tree, Mapping) else None

    async def list(self, path_filter: PathFilter | None = None) -> list[PathSnapshot]:
        """List every leaf of the self-vessel tree, filtered and sorted by path.

        Raises
        ------
        WhatIfTransportError
            The host has no tree and the HTTP fallback failed too.
        """
        snapshots: list[PathSnapshot] = []
        tree: Mapping[str, Any] | None = None
        try:
            tree = self._local_tree()
            if tree is not None:
                snapshots = flatten_tree(tree, custom_meta=self._custom_meta_map())
                _logger.debug("Extracted %d paths from host API", len(snapshots))
        except Exception:
            _logger.error("Error getting paths from host API", exc_info=True)
            tree = None

        if not snapshots and self._reader is not None:
            _logger.debug("Falling back to HTTP API")
            try:
                remote = await self._reader.fetch_vessel()
            except WhatIfError as exc:
                if tree is None:
                    raise
                _logger.error("HTTP API error: %s", exc)
            else:
                snapshots = flatten_tree(remote, custom_meta=self._custom_meta_map())
                _logger.debug("Extracted %d paths from HTTP API", len(snapshots))

        if path_filter is not None:
            snapshots = path_filter.apply(snapshots)
        return sorted(snapshots, key=lambda snapshot: snapshot.path)

    @staticmethod
    def available_units() -> list[UnitInfo]:
        """Common SignalK base units offered when creating a path."""
        return [UnitInfo(unit=unit, description=description) for unit, description in AVAILABLE_UNITS]
