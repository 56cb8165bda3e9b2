#!/usr/bin/env python3
"""
Check that the configured Supabase project is reachable and the photos
bucket accepts uploads.

Usage:
    SUPABASE_URL=... SUPABASE_ANON_KEY=... python scripts/check_backend.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from portaria import config
from portaria.supabase_store import SupabaseClient, check_connection, ensure_photos_bucket


async def run() -> int:
    if not config.is_supabase_configured():
        print("ERROR: SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        return 1

    client = SupabaseClient()
    connected, error = await check_connection(client)
    if not connected:
        print(f"Database: NOT reachable ({error})")
        return 1
    print("Database: connected")

    ready, problem = await ensure_photos_bucket(client)
    if not ready:
        print(f"Photos bucket: NOT ready ({problem})")
        print("Uploads will fall back to inline photos until this is fixed.")
        return 1
    print(f"Photos bucket '{config.PHOTOS_BUCKET}': ready")
    return 0


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
