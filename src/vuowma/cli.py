"""
Command-line interface for VuOwma.

Provides commands for storing messages and forwarding them to the webhook,
typically from cron.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from vuowma import __version__
from vuowma.config import ForwarderSettings, set_config
from vuowma.dispatcher import BatchDispatcher
from vuowma.forwarder import ForwarderConfigError, MessageForwarder, WebhookDeliveryError
from vuowma.state.database import InvalidMessageError, init_database

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vuowma",
        description="Batch stored messages and forward them to a webhook",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--database-url",
        help="SQLAlchemy database URL (default: from VUOWMA_DATABASE_URL)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Enqueue command
    enqueue_parser = subparsers.add_parser("enqueue", help="Store a message for forwarding")
    enqueue_parser.add_argument(
        "data",
        nargs="?",
        help="JSON encoded message (read from stdin if omitted)",
    )
    enqueue_parser.add_argument(
        "--file",
        type=Path,
        help="Read the JSON encoded message from a file",
    )

    # Forward command (one pass, for cron)
    forward_parser = subparsers.add_parser("forward", help="Forward pending messages once")
    forward_parser.add_argument(
        "--webhook-url",
        help="Webhook URL (default: from VUOWMA_WEBHOOK_URL)",
    )
    forward_parser.add_argument(
        "--base-url",
        help="Public VuOwma URL (default: from VUOWMA_BASE_URL)",
    )
    forward_parser.add_argument(
        "--format",
        dest="message_format",
        help="Card format: messagecard or adaptivecard",
    )

    # Unsent command
    subparsers.add_parser("unsent", help="List batches that failed to send")

    return parser


def build_config(args: argparse.Namespace) -> ForwarderSettings:
    """Load settings, letting command-line flags take precedence."""
    overrides = {
        "database_url": args.database_url,
        "log_level": args.log_level,
        "log_json": args.log_json,
        "base_url": getattr(args, "base_url", None),
        "webhook_url": getattr(args, "webhook_url", None),
        "message_format": getattr(args, "message_format", None),
    }
    return ForwarderSettings(**{k: v for k, v in overrides.items() if v is not None})


def read_message(args: argparse.Namespace) -> str:
    """Get the message payload from the arguments, a file or stdin."""
    if args.file is not None:
        return args.file.read_text(encoding="utf-8")
    if args.data is not None:
        return args.data
    return sys.stdin.read()


def enqueue_message(args: argparse.Namespace, config: ForwarderSettings) -> int:
    """Store one message."""
    try:
        data = read_message(args)
    except OSError as e:
        logger.error("message_unreadable", path=str(args.file), error=str(e))
        return 1

    store = init_database(config)
    try:
        record = store.add_message(data)
    except InvalidMessageError as e:
        logger.error("message_rejected", error=str(e))
        return 1
    finally:
        store.disconnect()

    print(f"Stored message {record.id}")
    return 0


def forward_messages(args: argparse.Namespace, config: ForwarderSettings) -> int:
    """Run one forwarding pass."""
    try:
        forwarder = MessageForwarder.from_config(config)
    except ForwarderConfigError as e:
        logger.error("forwarder_misconfigured", error=str(e))
        return 2

    store = init_database(config)
    try:
        with forwarder:
            result = BatchDispatcher(store, forwarder).run_once()
    except WebhookDeliveryError as e:
        logger.error(
            "forward_failed",
            webhook_url=e.webhook_url,
            status=e.status_code,
            body=e.body,
        )
        return 1
    finally:
        store.disconnect()

    if result.sent:
        print(
            f"Forwarded {result.message_count} message(s)"
            f" and {len(result.resent_batches)} unsent batch(es)"
        )
    else:
        print("Nothing to forward.")
    return 0


def list_unsent(args: argparse.Namespace, config: ForwarderSettings) -> int:
    """Print the IDs of batches that have not been delivered."""
    store = init_database(config)
    try:
        unsent = store.load_unsent_batch_ids()
    finally:
        store.disconnect()

    if not unsent:
        print("No unsent batches.")
    else:
        for batch_id in unsent:
            print(batch_id)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    if args.command == "enqueue":
        return enqueue_message(args, config)
    elif args.command == "forward":
        return forward_messages(args, config)
    elif args.command == "unsent":
        return list_unsent(args, config)
    return 1


if __name__ == "__main__":
    sys.exit(main())
