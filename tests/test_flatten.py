from __future__ import annotations

from pywhatif.flatten import flatten_tree, meta_of, source_of
from pywhatif.models import PathMeta


def _tree() -> dict:
    return {
        "navigation": {
            "speedOverGround": {
                "value": 3.2,
                "timestamp": "2024-01-01T00:00:00.000Z",
                "$source": "nmea.GP",
                "meta": {"units": "m/s", "description": "SOG"},
                "values": {"nmea.GP": {"value": 3.2}},
            },
            "position": {
                "value": {"latitude": 60.1, "longitude": 24.9},
                "source": {"label": "gps", "type": "NMEA0183"},
                "pgn": {"value": 129025},
            },
        },
        "name": {"value": None},
        "uuid": "urn:mrn:signalk:uuid:1",
    }


def test_flatten_tree_returns_one_snapshot_per_leaf() -> None:
    snapshots = {s.path: s for s in flatten_tree(_tree())}
    assert set(snapshots) == {"navigation.speedOverGround", "navigation.position", "name"}


def test_flatten_tree_skips_framing_keys() -> None:
    paths = [s.path for s in flatten_tree(_tree())]
    assert not any(".values" in path or ".pgn" in path or ".meta" in path for path in paths)


def test_flatten_tree_reads_value_source_and_meta() -> None:
    snapshots = {s.path: s for s in flatten_tree(_tree())}

    sog = snapshots["navigation.speedOverGround"]
    assert sog.value == 3.2
    assert sog.source == "nmea.GP"
    assert sog.timestamp == "2024-01-01T00:00:00.000Z"
    assert sog.meta is not None and sog.meta.units == "m/s"

    position = snapshots["navigation.position"]
    assert position.value == {"latitude": 60.1, "longitude": 24.9}
    assert position.source == "gps"
    assert position.meta is None

    assert snapshots["name"].value is None


def test_flatten_tree_walks_below_leaves() -> None:
    tree = {"electrical": {"value": 1, "batteries": {"house": {"voltage": {"value": 12.6}}}}}
    paths = [s.path for s in flatten_tree(tree)]
    assert paths == ["electrical", "electrical.batteries.house.voltage"]


def test_flatten_tree_custom_meta_wins() -> None:
    custom = {"navigation.speedOverGround": PathMeta(units="kn", display_name="Speed")}
    snapshots = {s.path: s for s in flatten_tree(_tree(), custom_meta=custom)}

    meta = snapshots["navigation.speedOverGround"].meta
    assert meta is not None
    assert meta.units == "kn"
    assert meta.description == "SOG"
    assert meta.display_name == "Speed"


def test_flatten_tree_ignores_root_value() -> None:
    assert flatten_tree({"value": 5}) == []


def test_source_of_prefers_dollar_source() -> None:
    assert source_of({"$source": "a", "source": {"label": "b"}}) == "a"
    assert source_of({"source": {"label": "b"}}) == "b"
    assert source_of({"value": 1}) is None
    assert source_of(None) is None


def test_meta_of_treats_malformed_meta_as_absent() -> None:
    assert meta_of({"zones": "not-a-list"}) is None
    assert meta_of({}) is None
    assert meta_of("units") is None


def test_meta_of_keeps_unknown_keys() -> None:
    meta = meta_of({"units": "K", "displayUnits": {"category": "temperature"}})
    assert meta is not None
    assert meta.to_wire()["displayUnits"] == {"category": "temperature"}
