#!/usr/bin/env python3
"""Run the notification worker.

This worker consumes notification events from Kafka and delivers them by
email (SMTP) and WhatsApp. Channels whose settings are missing from the
environment stay disabled; their sends fail and are logged.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notifier.adapters.kafka_runtime import run_worker_forever  # noqa: E402
from notifier.config import configure_logging, load_env_file  # noqa: E402


def main() -> int:
    args = parse_args()
    load_env_file(REPO_ROOT / ".env")
    configure_logging(args.log_level)
    return run_worker_forever()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the queue receive loop for email/WhatsApp notifications."
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...).",
    )
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(main())
