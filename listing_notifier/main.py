"""Command-line entry point for manual notification runs."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from listing_notifier.config.environment import EnvironmentConfig, load_email_config
from listing_notifier.config.exceptions import ConfigurationError
from listing_notifier.config.loader import load_config
from listing_notifier.config.models import AppConfig
from listing_notifier.directory import JsonUserDirectory
from listing_notifier.domain.models import Conversation, Listing
from listing_notifier.logging import get_logger
from listing_notifier.logging.config import configure_logging
from listing_notifier.notifications.models import TransportConstructionError
from listing_notifier.notifications.resolver import TransportResolver
from listing_notifier.persistence.database import close_database, init_database
from listing_notifier.persistence.exceptions import PersistenceError
from listing_notifier.persistence.repositories import SqlAuditLog
from listing_notifier.pipeline import NotificationPipeline

logger = get_logger(__name__, component="cli")

ModelT = TypeVar("ModelT", bound=BaseModel)


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level and format.

    Priority for both: CLI > environment > settings file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    if not env_config.log_format:
        env_config.log_format = app_config.logging.format

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="listing-notifier",
        description="Listing Notifier - saved-search alerts and message notifications for private listings",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    publish = subparsers.add_parser("publish", help="Send saved-search alerts for a listing")
    publish.add_argument("--listing", type=Path, required=True, help="Listing JSON file")
    publish.add_argument("--users", type=Path, required=True, help="Users JSON file")

    message = subparsers.add_parser("message", help="Notify the other participant of a conversation")
    message.add_argument("--conversation", type=Path, required=True, help="Conversation JSON file")
    message.add_argument("--sender", required=True, help="Account id of the message sender")
    message.add_argument("--body", required=True, help="Message text")
    message.add_argument("--users", type=Path, required=True, help="Users JSON file")

    subparsers.add_parser("transport", help="Show which email transport currently resolves")

    return parser


def _load_model(path: Path, model: Type[ModelT]) -> ModelT:
    if not path.exists():
        raise ConfigurationError(f"File not found: {path}")
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            f"Invalid {model.__name__.lower()} in {path}", e
        ) from e


async def _run_publish(args: argparse.Namespace, app_config: AppConfig) -> int:
    listing = _load_model(args.listing, Listing)
    directory = JsonUserDirectory.from_file(args.users)
    pipeline = NotificationPipeline.from_config(app_config, directory, audit_log=SqlAuditLog())

    try:
        result = await pipeline.listing_published(listing)
    finally:
        await pipeline.aclose()

    print(
        f"Listing {listing.id}: {result.candidates} matches, "
        f"{result.sent} sent, {result.skipped} skipped, {result.failed} failed"
    )
    return 1 if result.failed else 0


async def _run_message(args: argparse.Namespace, app_config: AppConfig) -> int:
    conversation = _load_model(args.conversation, Conversation)
    directory = JsonUserDirectory.from_file(args.users)
    pipeline = NotificationPipeline.from_config(app_config, directory, audit_log=SqlAuditLog())

    try:
        receipt = await pipeline.conversation_notifier.notify(conversation, args.sender, args.body)
    finally:
        await pipeline.aclose()

    if receipt is None:
        print("No notification sent (recipient unresolved or delivery failed; see logs)")
        return 1
    print(f"Notified {receipt.to} via {receipt.provenance}")
    return 0


def _run_transport(app_config: AppConfig) -> int:
    resolver = TransportResolver(
        config_provider=load_email_config, delivery_config=app_config.delivery
    )
    try:
        resolved = resolver.resolve()
    except TransportConstructionError as e:
        print(f"Transport error: {e}", file=sys.stderr)
        return 1

    print(f"transport: {resolved.label}")
    print(f"sender: {resolved.sender}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the listing notifier CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=env_config.log_format,
            environment=env_config.environment,
        )

        logger.info(
            f"Listing notifier running '{args.command}'",
            extra={
                "event": "service.starting",
                "command": args.command,
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
            },
        )

        if args.command == "transport":
            return _run_transport(app_config)

        init_database(env_config.database_url)
        try:
            if args.command == "publish":
                exit_code = asyncio.run(_run_publish(args, app_config))
            else:
                exit_code = asyncio.run(_run_message(args, app_config))
        finally:
            close_database()

        logger.info(
            "Listing notifier finished",
            extra={
                "event": "service.stopping",
                "command": args.command,
                "exit_code": exit_code,
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e.message}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        logger.error(
            f"Database error: {e}",
            extra={"event": "database.error", "error_type": type(e).__name__},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
