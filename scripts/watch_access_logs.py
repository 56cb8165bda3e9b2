#!/usr/bin/env python3
"""
Print the most recent entrances and refresh them periodically.

Usage:
    python scripts/watch_access_logs.py                 # refresh every POLL_INTERVAL_SECONDS
    python scripts/watch_access_logs.py --once --limit 50
    python scripts/watch_access_logs.py --interval 10

Stop with Ctrl+C.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from portaria import config
from portaria.backends import create_backend
from portaria.polling import AccessLogPoller

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def print_entries(views) -> None:
    print("\n" + "=" * 60)
    print(f"{len(views)} recent entrances")
    print("=" * 60)
    for view in views:
        row = view.to_dict()
        collaborator = f" via {row['collaborator']}" if row["collaborator"] else ""
        print(
            f"{row['entry_time'][:19]}  {row['name']} [{row['national_id']}] -> "
            f"apt {row['apartment']} (authorized by {row['authorized_by']}{collaborator})"
        )


async def run(args) -> int:
    try:
        backend = create_backend(args.backend)
    except (ValueError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    poller = AccessLogPoller(
        backend.log_writer(),
        on_refresh=print_entries,
        interval=args.interval,
        limit=args.limit,
    )
    if args.once:
        return 0 if await poller.refresh() is not None else 1

    async with poller:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
    return 0


def main():
    parser = argparse.ArgumentParser(description="Watch recent visitor entrances")
    parser.add_argument("--limit", type=int, default=config.RECENT_LOG_LIMIT, help="Entries to show")
    parser.add_argument("--interval", type=float, default=config.POLL_INTERVAL_SECONDS, help="Seconds between refreshes")
    parser.add_argument("--once", action="store_true", help="Print once and exit")
    parser.add_argument("--backend", help="Override STORE_BACKEND")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
