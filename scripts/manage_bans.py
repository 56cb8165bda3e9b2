#!/usr/bin/env python3
"""
Ban or unban visitors.

Usage:
    # Ban by CPF (reason required)
    python scripts/manage_bans.py ban --cpf 12345678900 --reason "Aggressive with staff"

    # Ban by visitor id
    python scripts/manage_bans.py ban --visitor-id 6f1c... --reason "Repeated noise complaints"

    # Lift a ban
    python scripts/manage_bans.py unban --cpf 12345678900

    # List banned visitors
    python scripts/manage_bans.py list
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from portaria.backends import create_backend
from portaria.errors import RegistrationError, VisitorNotFound
from portaria.event_recorder import EventRecorder
from portaria.identity import normalize_national_id

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def _visitor_id_for(backend, args) -> str:
    if args.visitor_id:
        return args.visitor_id
    national_id = normalize_national_id(args.cpf)
    result = await backend.visitors.find_by_national_id(national_id)
    if result.error:
        raise RegistrationError("Could not look up visitor", result.error)
    if result.data is None:
        raise VisitorNotFound(f"No visitor registered with national ID {national_id}")
    return result.data.id


async def run(args) -> int:
    try:
        backend = create_backend(args.backend)
    except (ValueError, OSError) as e:
        print(f"ERROR: {e}")
        return 1
    admin = backend.ban_admin(recorder=EventRecorder())

    try:
        if args.command == "list":
            banned = await admin.list_banned()
            if not banned:
                print("No banned visitors.")
            for visitor in banned:
                print(f"{visitor.national_id}  {visitor.name}  -  {visitor.ban_reason}")
            return 0

        visitor_id = await _visitor_id_for(backend, args)
        visitor = await admin.set_banned(visitor_id, args.command == "ban", args.reason)
    except RegistrationError as e:
        print(f"ERROR: {e}")
        return 1

    state = f"banned ({visitor.ban_reason})" if visitor.is_banned else "cleared"
    print(f"{visitor.name} [{visitor.national_id}] is now {state}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Manage the banned-visitor list")
    parser.add_argument("--backend", help="Override STORE_BACKEND")
    sub = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("ban", "Ban a visitor"), ("unban", "Lift a ban")):
        cmd = sub.add_parser(name, help=help_text)
        target = cmd.add_mutually_exclusive_group(required=True)
        target.add_argument("--cpf", help="Visitor national ID")
        target.add_argument("--visitor-id", help="Visitor id")
        if name == "ban":
            cmd.add_argument("--reason", required=True, help="Why the visitor is banned")
        else:
            cmd.set_defaults(reason=None)

    sub.add_parser("list", help="List banned visitors")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
