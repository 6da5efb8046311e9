"""Internal constants shared across the library."""

import re

PLUGIN_ID = "signalk-whatif-helper"
PLUGIN_NAME = "What-If Helper"
PLUGIN_DESCRIPTION = "Browse, modify, and create SignalK paths for testing and simulation"

#: Source label stamped on injected values, and the PUT source filter.
SOURCE_LABEL = "whatif-helper"
SOURCE_SUFFIX = f".{SOURCE_LABEL}"

DEFAULT_CONTEXT = "vessels.self"
WILDCARD = "*"

DEFAULT_API_PREFIX = f"/plugins/{PLUGIN_ID}"
DEFAULT_STREAM_PATH = f"{DEFAULT_API_PREFIX}/stream"
VESSEL_API_PATH = "/signalk/v1/api/vessels/self"

# Keys inside a tree node that carry framing rather than child paths.
NON_DATA_KEYS: frozenset[str] = frozenset({"meta", "timestamp", "$source", "source", "values", "pgn", "sentence"})

PATH_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9]*|[0-9]+)(\.([a-zA-Z][a-zA-Z0-9]*|[0-9]+))*$")

# ------------------------------------------------------------------
# SignalK base units offered by the create form
# ------------------------------------------------------------------

AVAILABLE_UNITS: tuple[tuple[str, str], ...] = (
    ("m/s", "Speed (meters per second)"),
    ("rad", "Angle (radians)"),
    ("K", "Temperature (kelvin)"),
    ("m", "Distance (meters)"),
    ("Pa", "Pressure (pascals)"),
    ("Hz", "Frequency (hertz)"),
    ("V", "Voltage (volts)"),
    ("A", "Current (amperes)"),
    ("W", "Power (watts)"),
    ("J", "Energy (joules)"),
    ("C", "Charge (coulombs)"),
    ("kg", "Mass (kilograms)"),
    ("m3", "Volume (cubic meters)"),
    ("m3/s", "Flow rate (cubic meters per second)"),
    ("ratio", "Ratio (0-1)"),
    ("s", "Time (seconds)"),
    ("bool", "Boolean (true/false)"),
    ("", "No unit (dimensionless)"),
)


def is_valid_path(path: str) -> bool:
    """Return ``True`` when *path* is a well-formed dot-separated SignalK path."""
    return PATH_PATTERN.fullmatch(path) is not None
