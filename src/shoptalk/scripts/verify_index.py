"""Compare cached conversation rows with the message store and optionally repair them.

Usage:
  python -m shoptalk.scripts.verify_index            # report drift, exit 1 if any
  python -m shoptalk.scripts.verify_index --repair   # rebuild drifted rows
"""

from __future__ import annotations

import argparse
import logging
import sys

from shoptalk.db.session import SessionLocal
from shoptalk.errors import MessagingError
from shoptalk.services import MessagingService


def say(msg: str) -> None:
    print(f"[verify-index] {msg}")


def fail(msg: str) -> None:
    print(f"[verify-index][FAIL] {msg}", file=sys.stderr)


def run(repair: bool = False) -> int:
    """Audit every conversation; return the number of rows still drifted."""
    with SessionLocal() as db:
        service = MessagingService(db)
        drifts = service.audit_index()
        if not drifts:
            say("conversation index matches the message store")
            return 0

        for drift in drifts:
            say(
                f"conversation {drift.conversation_id}: "
                f"cached={drift.cached} actual={drift.actual}"
            )

        if not repair:
            return len(drifts)

        remaining = 0
        for drift in drifts:
            try:
                service.rebuild_conversation(drift.conversation_id)
            except MessagingError as exc:
                fail(f"conversation {drift.conversation_id}: {exc.message}")
                remaining += 1
        say(f"repaired {len(drifts) - remaining} of {len(drifts)} conversations")
        return remaining


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Verify the conversation index")
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Rebuild conversation rows whose counters or last-message cache drifted.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable info logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    sys.exit(1 if run(repair=args.repair) else 0)


if __name__ == "__main__":
    main()
