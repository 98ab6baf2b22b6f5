"""
Command line.

    orderflow serve [--host 0.0.0.0] [--port 8000]
    orderflow sweep-intents [--stale-after SECONDS]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta

from kungfu import Ok, Error

from orderflow.config import Settings, get_settings
from orderflow.log import configure_logging
from orderflow.wiring import open_services


def serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn

    uvicorn.run(
        "orderflow.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


async def sweep(settings: Settings, stale_after: int) -> int:
    async with open_services(settings) as services:
        result = await services.orders.sweep_intents(timedelta(seconds=stale_after))

    match result:
        case Ok(report):
            print(
                f"completed={report.completed} abandoned={report.abandoned} "
                f"restore_failures={report.restore_failures} skipped={report.skipped}"
            )
            return 0
        case Error(e):
            print(f"sweep failed: {e}", file=sys.stderr)
            return 1


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number of seconds, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="orderflow", description="Order lifecycle service")
    commands = parser.add_subparsers(dest="command", required=True)

    serve_cmd = commands.add_parser("serve", help="run the HTTP API")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)

    sweep_cmd = commands.add_parser("sweep-intents", help="recover abandoned order intents once")
    sweep_cmd.add_argument(
        "--stale-after",
        type=positive_int,
        default=settings.INTENT_STALE_AFTER_SECONDS,
        metavar="SECONDS",
        help="age at which a pending intent counts as abandoned",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    args = build_parser(settings).parse_args(argv)

    if args.command == "serve":
        return serve(settings, args.host, args.port)
    return asyncio.run(sweep(settings, args.stale_after))


if __name__ == "__main__":
    sys.exit(main())
