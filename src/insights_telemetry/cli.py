#!/usr/bin/env python3
"""
CLI tool for sending telemetry by hand.

Usage:
    python -m insights_telemetry.cli event Get-Report -p Target=docs -m Duration=1.5
    python -m insights_telemetry.cli exception "disk full" --bucket Export-Data
    python -m insights_telemetry.cli preview Get-Report -p Target=docs
    python -m insights_telemetry.cli config
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from colorama import Fore, Style, just_fix_windows_console

from .client import TelemetryClient
from .config import TelemetrySettings
from .errors import TelemetryError


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def parse_pairs(pairs: list[str] | None, option: str) -> dict[str, str]:
    """Parse repeated KEY=VALUE arguments."""
    result: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"{option} expects KEY=VALUE, got {pair!r}")
        result[key] = value
    return result


def parse_metrics(pairs: list[str] | None) -> dict[str, float]:
    metrics = {}
    for key, value in parse_pairs(pairs, "--metric").items():
        try:
            metrics[key] = float(value)
        except ValueError:
            raise ValueError(f"--metric {key} must be numeric, got {value!r}") from None
    return metrics


def load_settings(args) -> TelemetrySettings:
    if args.config:
        if args.config.endswith((".yaml", ".yml")):
            return TelemetrySettings.from_yaml(args.config)
        return TelemetrySettings.from_json(args.config)
    return TelemetrySettings()


def _synchronous(args) -> bool | None:
    return True if args.sync else None


def cmd_event(args, client: TelemetryClient) -> int:
    properties = parse_pairs(args.property, "--property")
    metrics = parse_metrics(args.metric)
    client.emit_event(args.name, properties, metrics, _synchronous(args))
    print(colorize(f"Event '{args.name}' handed to telemetry", Fore.GREEN))
    return 0


def cmd_exception(args, client: TelemetryClient) -> int:
    properties = parse_pairs(args.property, "--property")
    try:
        raise RuntimeError(args.message)
    except RuntimeError as e:
        client.emit_exception(e, args.bucket, properties, _synchronous(args))
    print(colorize("Exception event handed to telemetry", Fore.GREEN))
    return 0


def cmd_preview(args, client: TelemetryClient) -> int:
    properties = parse_pairs(args.property, "--property")
    metrics = parse_metrics(args.metric)
    event = client.builder.custom_event(args.name, properties, metrics)
    print(json.dumps(event.to_dict(), indent=2))
    return 0


def cmd_config(args, settings: TelemetrySettings) -> int:
    for key in (
        "DisableTelemetry",
        "DisablePiiProtection",
        "SuppressTelemetryReminder",
        "WebRequestTimeoutSec",
        "DefaultNoStatus",
        "DeliveryIsolation",
        "ShowProgress",
        "IngestionUrl",
    ):
        print(f"{colorize(key, Fore.CYAN)}: {settings.get(key)}")
    key_set = bool(settings.application_insights_key)
    print(f"{colorize('ApplicationInsightsKey', Fore.CYAN)}: {'<set>' if key_set else '<not set>'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Send Application Insights telemetry events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        help="YAML or JSON settings file (default: INSIGHTS_* environment)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_common(sub):
        sub.add_argument("-p", "--property", action="append", metavar="KEY=VALUE")
        sub.add_argument("--sync", action="store_true", help="Send on the calling thread")

    # event command
    event_parser = subparsers.add_parser("event", help="Send a custom event")
    event_parser.add_argument("name", help="Event name")
    event_parser.add_argument("-m", "--metric", action="append", metavar="KEY=NUMBER")
    add_common(event_parser)

    # exception command
    exc_parser = subparsers.add_parser("exception", help="Send an exception event")
    exc_parser.add_argument("message", help="Exception message")
    exc_parser.add_argument("--bucket", help="Error bucket")
    add_common(exc_parser)

    # preview command
    preview_parser = subparsers.add_parser("preview", help="Print an event without sending it")
    preview_parser.add_argument("name", help="Event name")
    preview_parser.add_argument("-p", "--property", action="append", metavar="KEY=VALUE")
    preview_parser.add_argument("-m", "--metric", action="append", metavar="KEY=NUMBER")

    # config command
    subparsers.add_parser("config", help="Show effective settings")

    args = parser.parse_args(argv)

    just_fix_windows_console()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args)
        if args.command == "config":
            return cmd_config(args, settings)

        client = TelemetryClient(settings=settings)
        if args.command == "event":
            return cmd_event(args, client)
        elif args.command == "exception":
            return cmd_exception(args, client)
        elif args.command == "preview":
            return cmd_preview(args, client)
    except (TelemetryError, ValueError, OSError) as e:
        print(colorize(f"Error: {e}", Fore.RED), file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
