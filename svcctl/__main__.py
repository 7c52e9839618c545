"""Command-line entry point.

Usage:
    python -m svcctl serve [--port PORT] [--bootstrap] [--stop-on-exit]
    python -m svcctl start NAME [NAME ...] [--timeout SECONDS]
    python -m svcctl stop NAME [NAME ...]
    python -m svcctl status [NAME ...] [--json]

Services are read from the JSON file named by --services (or
SVCCTL_SERVICES in the environment / .env).  Services started by one
invocation keep running after it exits; any later invocation can stop them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import uvicorn

from .config import Config
from .errors import ServiceError
from .formatter import JsonFormatter, TextFormatter
from .registry import ServiceRegistry
from .server import create_server

log = logging.getLogger(__name__)


async def _serve(registry: ServiceRegistry, config: Config, port: int, bootstrap: bool, stop_on_exit: bool) -> None:
    server = create_server(registry, port=port, start_timeout=config.start_timeout)

    if bootstrap:
        await registry.bootstrap(timeout=config.start_timeout)

    app = server.streamable_http_app()
    uvi = uvicorn.Server(uvicorn.Config(app, host="127.0.0.1", port=port, log_level="info"))

    # uvicorn.Server.serve() installs its own SIGINT/SIGTERM handlers;
    # _serve() leaves ours in place so shutdown also covers --stop-on-exit.
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    serve_task = asyncio.create_task(uvi._serve())
    await shutdown.wait()
    log.info("Signal received, shutting down")

    uvi.should_exit = True
    await serve_task
    if stop_on_exit:
        log.info("Stopping all managed services")
        await registry.stop_all()


async def _start(registry: ServiceRegistry, names: list[str], timeout: float) -> int:
    rc = 0
    for name in names:
        try:
            await registry.get(name).start(timeout=timeout)
        except (KeyError, ServiceError, OSError) as exc:
            log.error("%s: %s", name, exc)
            rc = 1
    return rc


async def _stop(registry: ServiceRegistry, names: list[str]) -> int:
    rc = 0
    for name in names:
        try:
            await registry.get(name).stop()
        except (KeyError, OSError) as exc:
            log.error("%s: %s", name, exc)
            rc = 1
    return rc


async def _status(registry: ServiceRegistry, names: list[str], as_json: bool) -> int:
    try:
        services = [registry.get(n) for n in names] if names else [registry.get(n) for n in registry.names()]
    except KeyError as exc:
        log.error("%s", exc.args[0])
        return 1
    statuses = [await svc.status() for svc in services]
    formatter = JsonFormatter(indent=2) if as_json else TextFormatter()
    print(formatter.format_many(statuses))
    return 0 if all(s.ready for s in statuses) else 3


class _SuppressDisconnect(logging.Filter):
    """Downgrade the MCP SDK's traceback for clients that hang up early."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.exc_info and record.exc_info[1] is not None:
            if "ClosedResourceError" in str(record.exc_info[1]):
                record.levelno = logging.DEBUG
                record.levelname = "DEBUG"
                record.msg = "Client disconnected before response completed"
                record.args = None
                record.exc_info = None
                record.exc_text = None
        return True


def main(argv: list[str] | None = None) -> int:
    try:
        config = Config.from_env()
    except ServiceError as exc:
        print(f"svcctl: {exc}", file=sys.stderr)
        return 2

    parser = argparse.ArgumentParser(prog="svcctl", description="Local service lifecycle manager")
    parser.add_argument(
        "--services", type=Path, default=config.services_path,
        help=f"Services config file (default: {config.services_path})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the MCP tool server")
    serve.add_argument("--port", type=int, default=config.port, help=f"Port to listen on (default: {config.port})")
    serve.add_argument("--bootstrap", action="store_true", help="Start every configured service first")
    serve.add_argument("--stop-on-exit", action="store_true", help="Stop every configured service on shutdown")

    start = sub.add_parser("start", help="Start services and wait until ready")
    start.add_argument("names", nargs="+")
    start.add_argument("--timeout", type=float, default=config.start_timeout)

    stop = sub.add_parser("stop", help="Stop services")
    stop.add_argument("names", nargs="+")

    status = sub.add_parser("status", help="Show service status")
    status.add_argument("names", nargs="*")
    status.add_argument("--json", action="store_true", help="Machine-readable output")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [svcctl] %(levelname)s %(message)s",
    )
    logging.getLogger("mcp.server.streamable_http_manager").addFilter(_SuppressDisconnect())

    try:
        registry = ServiceRegistry.from_file(args.services, config)
    except ServiceError as exc:
        log.error("%s", exc)
        return 2

    if args.command == "serve":
        log.info("Starting svcctl on http://127.0.0.1:%d/mcp", args.port)
        asyncio.run(_serve(registry, config, args.port, args.bootstrap, args.stop_on_exit))
        return 0
    if args.command == "start":
        return asyncio.run(_start(registry, args.names, args.timeout))
    if args.command == "stop":
        return asyncio.run(_stop(registry, args.names))
    return asyncio.run(_status(registry, args.names, args.json))


if __name__ == "__main__":
    sys.exit(main())
