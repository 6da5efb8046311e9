"""Best-guess typing of free-text value input."""

from __future__ import annotations

import json
import math
from typing import Any


def _parse_number(text: str) -> int | float | None:
    stripped = text.strip()
    # int() and float() also accept digit separators; form input does not.
    if not stripped or "_" in stripped:
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        number = float(stripped)
    except ValueError:
        return None
    # inf/nan parse as floats but cannot travel as JSON.
    if not math.isfinite(number):
        return None
    return number


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite constant {name}")


def parse_value_input(text: str) -> Any:
    """Coerce *text* typed into a form field.

    Order: empty string stays empty; ``true``/``false`` become booleans;
    finite numeric literals become numbers; valid JSON is decoded; anything
    else is returned unchanged.
    """
    if text == "":
        return ""
    if text == "true":
        return True
    if text == "false":
        return False

    number = _parse_number(text)
    if number is not None:
        return number

    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text
