#!/usr/bin/env python3
"""Serve the what-if helper on top of an in-memory SignalK tree.

Useful for exercising the REST routes and the live stream without a real
SignalK server. The tree can be seeded from a JSON file holding a vessel
document in full format (``navigation.speedOverGround.value`` ...).

Configuration comes from ``WHATIF_*`` environment variables; the read-back
is disabled unless ``--verify`` is given because there is no server API to
read back from.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from aiohttp import web  # noqa: E402

from pywhatif import MemoryHost, WhatIfConfig, WhatIfHelper  # noqa: E402

_DEFAULT_TREE: dict[str, Any] = {
    "navigation": {
        "speedOverGround": {"value": 3.2, "$source": "demo.GP", "meta": {"units": "m/s"}},
        "headingTrue": {"value": 1.57, "$source": "demo.GP", "meta": {"units": "rad"}},
    },
    "environment": {
        "depth": {"belowKeel": {"value": 12.4, "$source": "demo.DBT", "meta": {"units": "m"}}},
    },
}


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the what-if helper against an in-memory tree.")
    parser.add_argument("--host", default="127.0.0.1", help="Listen address.")
    parser.add_argument("--port", type=int, default=3000, help="Listen port.")
    parser.add_argument("--tree", type=Path, help="JSON file with the initial vessel tree.")
    parser.add_argument("--self-id", default=None, help="Vessel id (urn:mrn:...) used for the delta context.")
    parser.add_argument("--verify", action="store_true", help="Keep the HTTP read-back enabled.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _load_tree(path: Path | None) -> dict[str, Any]:
    if path is None:
        return _DEFAULT_TREE
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise SystemExit(f"{path}: expected a JSON object")
    return data


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = WhatIfConfig.from_env(server_port=args.port, verify_enabled=args.verify)
    host = MemoryHost(_load_tree(args.tree), self_id=args.self_id)
    helper = WhatIfHelper(host, config)

    app = web.Application()
    helper.setup(app)

    print(f"[server] REST under http://{args.host}:{args.port}{config.api_prefix}")
    print(f"[server] stream at ws://{args.host}:{args.port}{config.stream_path}")
    web.run_app(app, host=args.host, port=args.port, print=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
