#!/usr/bin/env python3
"""Run one notification event through the pipeline without a queue.

By default every channel prints to the console. With `--real-senders` the
SMTP/WhatsApp settings from the environment (or `.env`) are used instead.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

# Allow running this file directly from repository root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from notifier import (  # noqa: E402
    MalformedPayloadError,
    PartialFailureError,
    SenderConfig,
    build_senders,
    process_message,
)
from notifier.adapters.fake_senders import console_senders  # noqa: E402
from notifier.config import configure_logging, load_env_file  # noqa: E402


def main() -> int:
    args = parse_args()
    configure_logging()
    raw = load_payload(args.payload_file)

    if args.real_senders:
        load_env_file(REPO_ROOT / ".env")
        senders = build_senders(SenderConfig.from_env())
    else:
        senders = console_senders()

    try:
        result = process_message(raw, senders)
    except MalformedPayloadError as exc:
        print(f"[MALFORMED] {exc}")
        return 2
    except PartialFailureError as exc:
        result = exc.result

    print("")
    print("[SUMMARY]")
    print(f"user_id={result['user_id']}")
    print(f"status={result['status']}")
    for item in result["channel_results"]:
        print(
            f"channel={item['channel']} contact={item['contact']} "
            f"requested={item['requested']} success={item['success']} error={item['error']}"
        )
    print(f"all_requested_succeeded={result['all_requested_succeeded']}")
    return 0 if result["all_requested_succeeded"] else 1


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Execute email/WhatsApp dispatch with a sample payload."
    )
    parser.add_argument(
        "--payload-file",
        type=Path,
        default=None,
        help="Optional JSON file matching the notification event shape.",
    )
    parser.add_argument(
        "--real-senders",
        action="store_true",
        help="Send through SMTP/WhatsApp using environment configuration.",
    )
    return parser.parse_args()


def load_payload(payload_file: Path | None) -> bytes:
    if payload_file is None:
        return json.dumps(sample_payload()).encode("utf-8")
    return payload_file.read_bytes()


def sample_payload() -> dict[str, Any]:
    return {
        "userId": "user-demo-1",
        "notificationMessage": "Your transfer of 120.00 was completed.",
        "channels": [
            {"type": "EMAIL", "contact": "user@example.com"},
            {"type": "WHATSAPP", "contact": "+15555550123"},
        ],
    }


if __name__ == "__main__":
    sys.exit(main())
