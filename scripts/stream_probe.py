#!/usr/bin/env python3
"""Watch the what-if helper live stream.

Connects to the WebSocket stream, subscribes to the given paths (``*`` for
everything) and prints every message until interrupted or ``--duration``
elapses.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import aiohttp  # noqa: E402

from pywhatif import WhatIfConfig  # noqa: E402

_LOG = logging.getLogger("stream_probe")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print messages from the what-if helper live stream.")
    parser.add_argument("paths", nargs="*", default=["*"], help="Paths to subscribe to (default: *).")
    parser.add_argument("--url", help="Full ws:// URL; defaults to the configured server and stream path.")
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument("--json", action="store_true", help="Pretty-print message payloads.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    return parser.parse_args()


def _stream_url(config: WhatIfConfig) -> str:
    scheme = "wss" if config.ssl else "ws"
    return f"{scheme}://{config.server_host}:{config.server_port}{config.stream_path}"


def _print_message(data: dict, pretty: bool) -> None:
    kind = data.get("type")
    if pretty:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    elif kind == "full":
        print(f"[probe] full: {len(data.get('paths') or [])} paths")
        for entry in data.get("paths") or []:
            print(f"[probe]   {entry.get('path')} = {entry.get('value')!r}")
    elif kind == "update":
        entry = data.get("path") or {}
        print(f"[probe] update: {entry.get('path')} = {entry.get('value')!r} ({entry.get('source')})")
    else:
        print(f"[probe] {kind}: {data.get('message', data)}")


async def _probe(url: str, paths: list[str], duration: int, pretty: bool) -> int:
    deadline = time.monotonic() + duration if duration > 0 else None
    received = 0
    async with aiohttp.ClientSession() as session, session.ws_connect(url) as ws:
        print(f"[probe] Connected to {url}")
        await ws.send_json({"type": "subscribe", "paths": paths})
        while True:
            timeout = None if deadline is None else max(deadline - time.monotonic(), 0)
            if timeout == 0:
                break
            try:
                msg = await ws.receive(timeout=timeout)
            except TimeoutError:
                break
            if msg.type == aiohttp.WSMsgType.TEXT:
                received += 1
                _print_message(json.loads(msg.data), pretty)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                _LOG.debug("Stream closed: %s", msg)
                break
    print(f"[probe] {received} messages received")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    url = args.url or _stream_url(WhatIfConfig.from_env())
    try:
        return asyncio.run(_probe(url, args.paths, args.duration, args.json))
    except KeyboardInterrupt:
        return 0
    except aiohttp.ClientError as exc:  # pragma: no cover - network interaction
        print(f"[probe] Connection failed: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
