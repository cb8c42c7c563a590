"""Command line entry point: ``python -m alert_monitor.cli <command>``."""

import argparse
import asyncio
import json
from typing import Any, Optional, Sequence

import structlog

from .config import MonitorSettings, load_config
from .errors import AlertMonitorError
from .fetch import probe_fetch, probe_map
from .logging_setup import configure_logging
from .scheduler import DEFAULT_MUTE_MINUTES
from .service import AlertMonitor, build_monitor

logger = structlog.get_logger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def _serve_forever(monitor: AlertMonitor) -> int:
    monitor.scheduler.start()
    started = monitor.scheduler.start_active()
    if not started:
        logger.warning("No active endpoints; scheduler is idle until one is activated")
    try:
        await asyncio.Event().wait()
    finally:
        monitor.scheduler.shutdown()
    return 0


async def _run_command(args: argparse.Namespace, settings: MonitorSettings) -> int:
    monitor = build_monitor(settings)
    try:
        command = args.command
        if command == "run":
            return await _serve_forever(monitor)

        if command == "list":
            active = set(monitor.registry.active_tags())
            _print(
                [
                    {
                        "tag": tag,
                        "active": tag in active,
                        "api_endpoint": cfg.api_endpoint,
                        "interval_ms": cfg.check_interval_ms,
                    }
                    for tag, cfg in monitor.registry.get_all().items()
                ]
            )
            return 0

        if command == "check":
            outcome = await monitor.scheduler.run_now(args.tag)
            _print({"tag": args.tag, "outcome": outcome.value})
            return 0

        if command == "state":
            state = await monitor.mutes.get_state(args.tag)
            _print(state.to_document())
            return 0

        if command == "mute":
            state = await monitor.mutes.mute_items(args.tag, args.minutes)
        elif command == "unmute":
            state = await monitor.mutes.unmute_items(args.tag)
        elif command == "reset":
            state = await monitor.mutes.reset_items(args.tag)
        elif command == "mute-api":
            state = await monitor.mutes.mute_api(args.tag)
        elif command == "unmute-api":
            state = await monitor.mutes.unmute_api(args.tag)
        elif command == "activate":
            monitor.registry.add_active_tag(args.tag)
            _print({"tag": args.tag, "active": True})
            return 0
        elif command == "deactivate":
            monitor.registry.remove_active_tag(args.tag)
            _print({"tag": args.tag, "active": False})
            return 0
        elif command == "test-fetch":
            _print(await probe_fetch(monitor.data_source, monitor.registry.get(args.tag)))
            return 0
        elif command == "test-map":
            _print(await probe_map(monitor.data_source, monitor.registry.get(args.tag)))
            return 0
        else:
            raise ValueError(f"Unknown command: {command}")

        _print(state.to_document())
        return 0
    finally:
        await monitor.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="API item alert monitor")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $ALERT_MONITOR_CONFIG)")
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Start schedulers for every active endpoint and run until interrupted")
    sub.add_parser("list", help="List configured endpoints")

    for name, help_text in (
        ("check", "Run one tick for an endpoint"),
        ("state", "Show notification state"),
        ("unmute", "Unmute item alerts"),
        ("reset", "Unmute and clear processed item history"),
        ("mute-api", "Mute API failure alerts"),
        ("unmute-api", "Unmute API failure alerts"),
        ("activate", "Add an endpoint to the active set"),
        ("deactivate", "Remove an endpoint from the active set"),
        ("test-fetch", "Fetch the endpoint once and print the raw response"),
        ("test-map", "Fetch the endpoint once and print the mapped items"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("tag")

    mute = sub.add_parser("mute", help="Mute item alerts for a number of minutes")
    mute.add_argument("tag")
    mute.add_argument("--minutes", type=float, default=DEFAULT_MUTE_MINUTES)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_config(args.config)
    configure_logging(args.log_level or settings.log_level, settings.log_format)

    try:
        return asyncio.run(_run_command(args, settings))
    except (AlertMonitorError, ValueError) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
