#!/usr/bin/env python3
"""
Run the nightly subscription maintenance job outside the HTTP server.
It expires lapsed subscriptions and reconciles last month's usage snapshots.
Run it directly or from a scheduler; it prints the job summary as JSON and exits non-zero on failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.api.dependencies import get_subscription_service
from src.common.logging import configure_logging

logger = logging.getLogger("process_subscriptions")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expire lapsed subscriptions and reconcile usage snapshots")
    parser.add_argument(
        "--now",
        type=datetime.fromisoformat,
        default=None,
        help="ISO timestamp to treat as the current time (defaults to the real UTC time).",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging()

    now = args.now
    if now is not None and now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    try:
        result = get_subscription_service().process_subscriptions(now=now)
    except Exception:
        logger.exception("Subscription maintenance failed.")
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
