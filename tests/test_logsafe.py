from __future__ import annotations

from pywhatif._logsafe import loggable


def test_loggable_renders_compact_json() -> None:
    assert loggable({"path": "a.b", "value": [1, 2]}) == '{"path":"a.b","value":[1,2]}'


def test_loggable_truncates_long_values() -> None:
    text = loggable("x" * 600, max_length=10)
    assert text.startswith('"' + "x" * 9)
    assert text.endswith("<truncated>")


def test_loggable_falls_back_to_repr() -> None:
    assert loggable({1, 2}) in ('"{1, 2}"', '"{2, 1}"')
