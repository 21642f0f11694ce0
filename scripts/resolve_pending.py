#!/usr/bin/env python3
"""
Resolve reels that are still pending, e.g. after the server restarted while
background scrapes were in flight.

Usage:
    python scripts/resolve_pending.py
    python scripts/resolve_pending.py --failed --delay 5 --limit 20
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import reels
from app.database import init_db
from app.tasks import process_reel

logger = logging.getLogger("resolve_pending")


async def resolve_all(include_failed: bool, delay: float, limit: int, notify: bool) -> dict:
    """Resolve pending reels one at a time, oldest first; optionally retry failed ones."""
    targets = reels.list_reels(status="pending", limit=limit, oldest_first=True)
    if include_failed:
        for reel in reels.list_reels(status="failed", limit=limit, oldest_first=True):
            if reels.reset_for_retry(reel["id"]):
                targets.append(reel)
    targets.sort(key=lambda r: r["id"])

    summary = {"processed": 0, "success": 0, "failed": 0}
    for i, reel in enumerate(targets, start=1):
        logger.info(f"[{i}/{len(targets)}] {reel['source_url']}")
        status = await process_reel(reel["id"], notify=notify)
        summary["processed"] += 1
        if status in ("success", "failed"):
            summary[status] += 1
        if delay and i < len(targets):
            # Instagram rate limits rapid sequential requests
            await asyncio.sleep(delay)
    return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Resolve pending (and optionally failed) reels")
    parser.add_argument("--failed", action="store_true", help="Also retry reels that failed")
    parser.add_argument("--delay", type=float, default=2.0, help="Seconds to wait between reels")
    parser.add_argument("--limit", type=int, default=100, help="Maximum reels per status")
    parser.add_argument("--notify", action="store_true", help="Send push notifications for successes")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()

    summary = asyncio.run(resolve_all(args.failed, args.delay, args.limit, args.notify))
    logger.info(
        f"Processed {summary['processed']}: {summary['success']} succeeded, {summary['failed']} failed"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
