"""
Command line entry point.

    python -m history_replicator ingest              # poll upstream forever
    python -m history_replicator backfill --max-cycles 10
    python -m history_replicator fetch-latest        # latest hour, once
    python -m history_replicator serve               # read API only
    python -m history_replicator run                 # ingestion + read API
"""

import argparse
import asyncio
import contextlib
import sys

from history_replicator.config.state import ConfigState, load_config
from history_replicator.exceptions import ConfigurationError, CursorPersistenceError
from history_replicator.infrastructure.observability import (
    configure_metrics_file,
    get_infrastructure_logger,
    setup_logging,
)
from history_replicator.runtime import Runtime, build_runtime


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="history_replicator",
        description="Replicate upstream interval history into several stores",
    )
    parser.add_argument("--config-dir", default=None, help="Directory with *.yaml config")
    parser.add_argument("--log-level", default=None, help="Override logging level")
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="JSON (default) or console log output",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("ingest", help="Run the ingestion loop forever")
    backfill = sub.add_parser("backfill", help="Catch up with upstream, then exit")
    backfill.add_argument("--max-cycles", type=int, default=None)
    sub.add_parser("fetch-latest", help="Fetch and replicate the latest hour once")
    sub.add_parser("serve", help="Run the read API")
    sub.add_parser("run", help="Run ingestion and the read API together")
    return parser


def configure(args: argparse.Namespace) -> ConfigState:
    settings = load_config(args.config_dir)
    if args.log_level:
        settings.logging.level = args.log_level
    if args.json_logs is not None:
        settings.logging.json_logs = args.json_logs

    setup_logging(level=settings.logging.level, json_logs=settings.logging.json_logs)
    configure_metrics_file(settings.metrics.metrics_file)
    return settings


async def _serve(runtime: Runtime) -> None:
    import uvicorn

    from history_replicator_api.main import create_app

    app = create_app(runtime.settings, runtime=runtime)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=runtime.settings.api.host,
            port=runtime.settings.api.port,
            log_config=None,
        )
    )
    await server.serve()


async def _run_command(command: str, settings: ConfigState, max_cycles: int | None) -> int:
    logger = get_infrastructure_logger("cli", command=command)
    runtime = await build_runtime(settings)
    try:
        if command == "ingest":
            await runtime.loop.run_forever()
        elif command == "backfill":
            results = await runtime.loop.catch_up(max_cycles=max_cycles)
            if results and not results[-1].ok:
                return 1
        elif command == "fetch-latest":
            result = await runtime.loop.fetch_latest()
            return 0 if result.ok else 1
        elif command == "serve":
            await _serve(runtime)
        elif command == "run":
            stop = asyncio.Event()
            ingestion = asyncio.create_task(runtime.loop.run_forever(stop))
            try:
                await _serve(runtime)
            finally:
                stop.set()
                ingestion.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await ingestion
        logger.info("command_finished")
        return 0
    finally:
        await runtime.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = configure(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(
            _run_command(args.command, settings, getattr(args, "max_cycles", None))
        )
    except CursorPersistenceError as e:
        print(f"Cursor error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
