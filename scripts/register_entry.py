#!/usr/bin/env python3
"""
Register a visitor entrance from the command line.

Runs the same workflow as the front-desk form: ban check, visitor lookup by
CPF, photo storage, visitor upsert and access log entry.

Usage:
    # New visitor (photo required)
    python scripts/register_entry.py --cpf 123.456.789-00 --name "Ana Rodrigues" \
        --apartment 101 --authorized-by "João Silva" --photo ana.jpg

    # Returning visitor, keeps the stored photo
    python scripts/register_entry.py --cpf 12345678900 --apartment 204 \
        --authorized-by "Maria Souza" --collaborator "Carlos"

    # Only check the banned list
    python scripts/register_entry.py --cpf 12345678900 --check-only

Backend selection comes from STORE_BACKEND / STORAGE_MODE (see portaria.config).
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from portaria.backends import create_backend
from portaria.errors import BannedVisitor, RegistrationError
from portaria.event_recorder import EventRecorder
from portaria.entrance import EntranceRequest
from portaria.photos import RawImage

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def run(args) -> int:
    try:
        backend = create_backend(args.backend, args.storage)
    except (ValueError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    workflow = backend.workflow(recorder=EventRecorder())

    try:
        status = await workflow.precheck(args.cpf)
        if status.banned:
            print(f"BANNED: {status.name or args.cpf} - {status.reason}")
            return 2
        if args.check_only:
            print("Not banned.")
            return 0

        photo = RawImage.from_file(Path(args.photo)) if args.photo else None
        request = EntranceRequest(
            national_id=args.cpf,
            name=args.name or "",
            apartment=args.apartment or "",
            authorized_by=args.authorized_by or "",
            collaborator=args.collaborator,
            photo=photo,
        )
        record = await workflow.register(request)
    except BannedVisitor as e:
        print(f"BANNED: {e}")
        return 2
    except RegistrationError as e:
        print(f"ERROR: {e}")
        return 1
    except OSError as e:
        print(f"ERROR: could not read photo: {e}")
        return 1

    if record.photo_degraded:
        print("WARNING: photo upload failed, the photo was stored inline in the visitor record")
    print(json.dumps(record.to_dict(), indent=2, ensure_ascii=False) if args.json else
          f"{record.name} entered apartment {record.apartment} (authorized by {record.authorized_by})")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Register a visitor entrance")
    parser.add_argument("--cpf", required=True, help="Visitor national ID (CPF), punctuation allowed")
    parser.add_argument("--name", help="Visitor name (required for new visitors)")
    parser.add_argument("--apartment", help="Destination apartment")
    parser.add_argument("--authorized-by", help="Resident or staff who authorized the entrance")
    parser.add_argument("--collaborator", help="Staff member facilitating the entrance")
    parser.add_argument("--photo", help="Photo file (required for new visitors)")
    parser.add_argument("--check-only", action="store_true", help="Only check the banned list")
    parser.add_argument("--backend", help="Override STORE_BACKEND")
    parser.add_argument("--storage", help="Override STORAGE_MODE")
    parser.add_argument("--json", action="store_true", help="Print the entrance record as JSON")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
