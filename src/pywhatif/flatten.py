"""Flatten a nested SignalK tree into path snapshots.

A node is a leaf when it is a mapping holding a ``value`` key. Framing keys
(``meta``, ``timestamp``, ``$source``...) are never treated as child paths;
every other mapping-valued key is walked, including below a leaf, because
SignalK nodes may carry both a value and sub-paths.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from pywhatif._constants import NON_DATA_KEYS
from pywhatif.models import PathMeta, PathSnapshot

_logger = logging.getLogger(__name__)


def source_of(node: Any) -> str | None:
    """Return the source label of a tree node (``$source`` or ``source.label``)."""
    if not isinstance(node, Mapping):
        return None
    source = node.get("$source")
    if isinstance(source, str) and source:
        return source
    nested = node.get("source")
    if isinstance(nested, Mapping):
        label = nested.get("label")
        if isinstance(label, str) and label:
            return label
    return None


def meta_of(raw: Any, path: str = "") -> PathMeta | None:
    """Parse tree-provided metadata; unusable metadata is treated as absent."""
    if not isinstance(raw, Mapping) or not raw:
        return None
    try:
        return PathMeta.model_validate(dict(raw))
    except ValidationError:
        _logger.debug("Ignoring malformed metadata for %s", path, exc_info=True)
        return None


def is_leaf(node: Any) -> bool:
    return isinstance(node, Mapping) and "value" in node


def flatten_tree(
    tree: Mapping[str, Any],
    *,
    custom_meta: Mapping[str, PathMeta] | None = None,
) -> list[PathSnapshot]:
    """Walk *tree* and return one snapshot per leaf, in walk order.

    *custom_meta* holds metadata owned by the caller; it is merged over the
    tree's own ``meta`` and wins on key conflicts.
    """
    snapshots: list[PathSnapshot] = []
    _walk(tree, "", snapshots, custom_meta or {})
    return snapshots


def _walk(
    node: Any,
    prefix: str,
    out: list[PathSnapshot],
    custom_meta: Mapping[str, PathMeta],
) -> None:
    if not isinstance(node, Mapping):
        return

    if prefix and is_leaf(node):
        meta = meta_of(node.get("meta"), prefix)
        override = custom_meta.get(prefix)
        if override is not None:
            meta = meta.merged_with(override) if meta is not None else override
        timestamp = node.get("timestamp")
        out.append(
            PathSnapshot(
                path=prefix,
                value=node["value"],
                timestamp=timestamp if isinstance(timestamp, str) else None,
                source=source_of(node),
                meta=meta,
            )
        )

    for key, child in node.items():
        if key == "value" or key in NON_DATA_KEYS:
            continue
        if isinstance(child, Mapping):
            _walk(child, f"{prefix}.{key}" if prefix else key, out, custom_meta)
