"""Helpers for compact debug logging.

Injected values and deltas are arbitrary JSON and may be large; this module
renders them for DEBUG logs with bounded size.
"""

from __future__ import annotations

import json
from typing import Any


def loggable(value: Any, *, max_length: int = 512) -> str:
    """Return a compact, length-bounded JSON rendering of *value*."""
    try:
        text = json.dumps(value, separators=(",", ":"), default=repr)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) > max_length:
        return f"{text[:max_length]}…<truncated>"
    return text
