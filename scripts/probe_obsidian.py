#!/usr/bin/env python3
"""Check that Obsidian's debug endpoint is reachable and usable.

Usage:
    python3 scripts/probe_obsidian.py                 # list targets, evaluate a smoke expression
    python3 scripts/probe_obsidian.py --eval "app.vault.getName()"
    python3 scripts/probe_obsidian.py --console 5     # collect console output for 5s
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from mcp_servers.obsidian_cdp import CdpConfig, CdpError, CdpSession  # noqa: E402

logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("mcp.obsidian.probe")


async def _probe(args: argparse.Namespace) -> int:
    config = CdpConfig.from_env()
    if args.port:
        config.debug_port = int(args.port)

    async with CdpSession(config) as session:
        targets = await session.list_targets()
        for t in targets:
            print(f"{t.type:<16} {t.id:<36} {t.title!r} {t.url}")

        await session.connect(args.ws_url)
        value = await session.evaluate(args.eval, await_promise=True)
        print(json.dumps(value, ensure_ascii=False, indent=2))

        if args.console > 0:
            await asyncio.sleep(args.console)
            for ev in session.recent_events():
                print(f"[{ev.type}] {ev.text}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--port", type=int, default=None, help="debug port (default: OBSIDIAN_DEBUG_PORT or 9222)")
    parser.add_argument("--ws-url", default=None, help="connect to this webSocketDebuggerUrl instead of discovering")
    parser.add_argument("--eval", default="navigator.userAgent", help="expression to evaluate")
    parser.add_argument("--console", type=float, default=0.0, help="seconds to collect console output")
    args = parser.parse_args()

    try:
        return asyncio.run(_probe(args))
    except CdpError as exc:
        logger.error("probe_failed: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
