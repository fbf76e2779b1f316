#!/usr/bin/env python3
"""Publish one notification event to Kafka for local testing."""

from __future__ import annotations

import argparse
import sys
import uuid
from pathlib import Path

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notifier.adapters.kafka_runtime import publish_notification_event  # noqa: E402
from notifier.config import load_env_file  # noqa: E402


def main() -> int:
    load_env_file(REPO_ROOT / ".env")
    args = parse_args()
    payload = build_payload(args)
    metadata = publish_notification_event(payload, topic=args.topic)

    print("[PUBLISHED]")
    print(f"topic={metadata['topic']}")
    print(f"partition={metadata['partition']}")
    print(f"offset={metadata['offset']}")
    print(f"userId={payload['userId']}")
    print("channels=" + ",".join(f"{item['type']}:{item['contact']}" for item in payload["channels"]))
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish one notification event for Kafka testing."
    )
    parser.add_argument(
        "--message",
        required=True,
        help="Notification body text.",
    )
    parser.add_argument(
        "--email",
        action="append",
        default=[],
        help="Add an EMAIL channel for this address. Repeatable.",
    )
    parser.add_argument(
        "--whatsapp",
        action="append",
        default=[],
        help="Add a WHATSAPP channel for this phone number. Repeatable.",
    )
    parser.add_argument(
        "--user-id",
        default=None,
        help="User id value for the event payload. Default: generated.",
    )
    parser.add_argument(
        "--topic",
        default=None,
        help="Override Kafka topic (defaults to KAFKA_TOPIC_NOTIFICATIONS).",
    )
    return parser.parse_args()


def build_payload(args: argparse.Namespace) -> dict[str, object]:
    if not args.email and not args.whatsapp:
        raise SystemExit("At least one --email or --whatsapp channel is required.")

    channels = [{"type": "EMAIL", "contact": item} for item in args.email]
    channels += [{"type": "WHATSAPP", "contact": item} for item in args.whatsapp]
    return {
        "userId": args.user_id or f"user-{uuid.uuid4().hex[:12]}",
        "notificationMessage": args.message,
        "channels": channels,
    }


if __name__ == "__main__":
    sys.exit(main())
