"""Composition root for shopreferral.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here.

Module Structure:
- Configuration loading via config module
- Adapter instantiation
- Core service initialization and hook registration
- CLI entry point (one-shot or interactive)
"""

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from shopreferral.adapters.activity_log.sqlite import SQLiteActivityLog
from shopreferral.adapters.activity_log.stdlib import LoggingActivityLog
from shopreferral.adapters.cli.commands import CLICommandHandler
from shopreferral.adapters.hooks.defaults import register_host_defaults
from shopreferral.adapters.hooks.memory import InMemoryHookBus
from shopreferral.adapters.store.sqlite import SQLiteOptionStore, SQLiteOrderMetaStore
from shopreferral.config import Settings, load_settings
from shopreferral.core.coupon_gate import CouponVisibilityGate
from shopreferral.core.hooks import register_hooks
from shopreferral.core.ports import (
    ActivityLogPort,
    HookBusPort,
    OptionStorePort,
    OrderMetaStorePort,
)
from shopreferral.core.referral_pricing import (
    ReferralPricingCalculator,
    ReferralPricingRepository,
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record; the message is escaped by json.dumps."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("channel", "context", "order_id"):
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logging.basicConfig(level=level, handlers=[handler])


def store_today(timezone_name: str) -> Callable[[], date]:
    """Return a clock giving the current date in the store's time zone."""
    zone = ZoneInfo(timezone_name)

    def today() -> date:
        return datetime.now(zone).date()

    return today


def make_bus_factory(
    options: OptionStorePort,
    meta_store: OrderMetaStorePort,
    activity_log: ActivityLogPort,
    products_config_option: str,
    today: Callable[[], date],
) -> Callable[[], HookBusPort]:
    """Build a factory of request-scoped hook buses.

    Each bus carries the host defaults plus every registered core hook.
    """

    def build() -> HookBusPort:
        bus = InMemoryHookBus()
        register_host_defaults(bus)
        gate = CouponVisibilityGate(
            options=options,
            activity_log=activity_log,
            hook_bus=bus,
            products_config_option=products_config_option,
        )
        calculator = ReferralPricingCalculator(
            repository=ReferralPricingRepository(meta_store),
            activity_log=activity_log,
            today=today,
        )
        register_hooks(bus, gate, calculator)
        return bus

    return build


@dataclass
class Application:
    """Wired adapters and services."""

    settings: Settings
    options: SQLiteOptionStore
    meta_store: SQLiteOrderMetaStore
    activity_log: ActivityLogPort
    calculator: ReferralPricingCalculator
    bus_factory: Callable[[], HookBusPort]
    cli: CLICommandHandler

    async def close(self) -> None:
        await self.options.close()
        await self.meta_store.close()
        if isinstance(self.activity_log, SQLiteActivityLog):
            await self.activity_log.close()


def build_application(settings: Settings) -> Application:
    """Instantiate adapters and core services from settings."""
    logger = logging.getLogger(__name__)

    options = SQLiteOptionStore(settings.store_sqlite_path, pool_size=settings.store_pool_size)
    meta_store = SQLiteOrderMetaStore(
        settings.store_sqlite_path, pool_size=settings.store_pool_size
    )
    logger.info(f"Stores initialized: {settings.store_sqlite_path}")

    activity_log: ActivityLogPort
    if settings.activity_log_backend == "sqlite":
        activity_log = SQLiteActivityLog(
            settings.store_sqlite_path, pool_size=settings.store_pool_size
        )
        logger.info("Activity log: SQLite")
    else:
        activity_log = LoggingActivityLog()
        logger.info("Activity log: logging")

    today = store_today(settings.timezone)
    calculator = ReferralPricingCalculator(
        repository=ReferralPricingRepository(meta_store),
        activity_log=activity_log,
        today=today,
    )
    bus_factory = make_bus_factory(
        options=options,
        meta_store=meta_store,
        activity_log=activity_log,
        products_config_option=settings.products_config_option,
        today=today,
    )
    cli = CLICommandHandler(
        bus_factory=bus_factory,
        calculator=calculator,
        activity_log=activity_log,
        options=options,
        meta_store=meta_store,
        products_config_option=settings.products_config_option,
    )

    return Application(
        settings=settings,
        options=options,
        meta_store=meta_store,
        activity_log=activity_log,
        calculator=calculator,
        bus_factory=bus_factory,
        cli=cli,
    )


async def execute_command(
    cli_handler: CLICommandHandler,
    command: str,
    args: dict[str, Any],
) -> dict[str, Any]:
    """Execute a CLI command.

    Raises:
        ValueError: If command is not recognized or a required argument is missing.
    """
    if command == "process_order":
        if "order_id" not in args:
            raise ValueError("Missing required parameter: order_id")
        return await cli_handler.process_order(
            order_id=args["order_id"],
            referral_code=args.get("referral_code"),
        )

    elif command == "pricing_info":
        if "order_id" not in args:
            raise ValueError("Missing required parameter: order_id")
        return await cli_handler.pricing_info(
            order_id=args["order_id"],
            output_format=args.get("format", "json"),
        )

    elif command == "check_cart":
        return await cli_handler.check_cart(
            product_ids=args.get("product_ids", []),
            page=args.get("page", "cart"),
            is_admin=args.get("is_admin", False),
        )

    elif command == "set_products":
        return await cli_handler.set_products_config(args.get("product_ids", []))

    elif command == "logs":
        return await cli_handler.recent_logs(
            limit=args.get("limit", 50),
            level=args.get("level"),
            channel=args.get("channel"),
        )

    else:
        raise ValueError(f"Unknown command: {command}. Use 'help' for available commands.")


def _print_cli_help() -> None:
    """Print CLI help message."""
    help_text = """
Available Commands (JSON format):

  process_order
    Fire the order-processed event. Required: order_id. Optional: referral_code

    Example: process_order {"order_id": 1234, "referral_code": "PARRAIN42"}

  pricing_info
    Show the stored referral discount window. Required: order_id

    Example: pricing_info {"order_id": 1234, "format": "text"}

  check_cart
    Simulate a cart or checkout request.
    Optional: product_ids, page (cart, checkout, other), is_admin

    Example: check_cart {"product_ids": [42, 7], "page": "checkout"}

  set_products
    Replace the products that disable coupons.

    Example: set_products {"product_ids": [42]}

  logs
    List recent activity log entries. Optional: limit, level, channel

    Example: logs {"channel": "coupon-manager"}

  help
    Show this help message.

  exit
    Exit the CLI.
    """
    print(help_text)


def _parse_args(args_str: str) -> dict[str, Any]:
    args = json.loads(args_str) if args_str else {}
    if not isinstance(args, dict):
        raise ValueError("Arguments must be a JSON object")
    return args


async def _run_cli_interactive(cli_handler: CLICommandHandler) -> None:
    """Run interactive CLI loop."""
    logger = logging.getLogger(__name__)
    logger.info("Starting interactive CLI. Type 'help' for available commands or 'exit' to quit.")

    loop = asyncio.get_running_loop()

    while True:
        try:
            command_line = await loop.run_in_executor(None, input, "shopreferral> ")
        except EOFError:
            logger.info("EOF received, exiting CLI")
            break

        command_line = command_line.strip()
        if not command_line:
            continue

        if command_line.lower() == "exit":
            logger.info("Exiting CLI")
            break

        if command_line.lower() == "help":
            _print_cli_help()
            continue

        parts = command_line.split(maxsplit=1)
        command = parts[0].lower()

        try:
            args = _parse_args(parts[1] if len(parts) > 1 else "")
        except (json.JSONDecodeError, ValueError):
            logger.error("Invalid JSON arguments. Use 'help' for command syntax.")
            continue

        try:
            result = await execute_command(cli_handler, command, args)
        except ValueError as e:
            result = {"status": "error", "message": str(e)}
        print(json.dumps(result, indent=2, default=str))


async def bootstrap(argv: list[str]) -> int:
    """Load configuration, wire adapters, and run the requested command.

    With no arguments the interactive CLI starts; otherwise argv is
    `<command> [json-args]` and the result is printed as JSON.

    Returns:
        Process exit code.
    """
    settings = load_settings()
    configure_logging(
        "DEBUG" if settings.debug else settings.log_level,
        settings.log_format,
    )
    logger = logging.getLogger(__name__)

    app = build_application(settings)
    try:
        if not argv:
            await _run_cli_interactive(app.cli)
            return 0

        try:
            args = _parse_args(argv[1] if len(argv) > 1 else "")
            result = await execute_command(app.cli, argv[0].lower(), args)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Command failed: {e}")
            result = {"status": "error", "message": str(e)}

        print(json.dumps(result, indent=2, default=str))
        return 0 if result.get("status") == "success" else 1
    finally:
        await app.close()


def main() -> None:
    """Application entry point.

    Exit codes:
        0: Success
        1: Command error or fatal error
        130: Interrupted by user (SIGINT/KeyboardInterrupt)
    """
    logger = logging.getLogger(__name__)
    try:
        sys.exit(asyncio.run(bootstrap(sys.argv[1:])))
    except KeyboardInterrupt:
        logger.warning("Shutdown requested by user (SIGINT)")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
