#!/usr/bin/env python3
import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from .client import BluOSClient
from .config import Config, load_config_from_json
from .decoder import SHAPES, decode_file
from .discovery import DiscoveryCoordinator, SyncStatusResolver
from .errors import BluOSError

_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _print_json(obj: Any) -> None:
    if dataclasses.is_dataclass(obj):
        obj = dataclasses.asdict(obj)
    elif isinstance(obj, list):
        obj = [dataclasses.asdict(item) for item in obj]
    print(json.dumps(obj, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bluos_client")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to a JSON configuration file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (overrides config file)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    discover = commands.add_parser("discover", help="Find players on the local network")
    discover.add_argument("--timeout", type=float, help="Seconds to listen for players")

    for name, help_text in (
        ("status", "Show the player status"),
        ("playlist", "Show the play queue"),
        ("sync-status", "Show the player identity"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("host")

    browse = commands.add_parser("browse", help="Browse the player's music sources")
    browse.add_argument("host")
    browse.add_argument("--key", help="Browse key from a previous response")
    browse.add_argument("--query", help="Search term, used with a search key")

    decode = commands.add_parser("decode", help="Decode a saved response")
    decode.add_argument("shape", choices=SHAPES)
    decode.add_argument("file", type=Path)

    return parser

# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

async def _run(args: argparse.Namespace, config: Config) -> Any:
    if args.command == "decode":
        return decode_file(args.file, args.shape)

    if args.command == "discover":
        resolver = SyncStatusResolver(timeout=config.http.timeout) if config.discovery.resolve_sync_status else None
        coordinator = DiscoveryCoordinator(
            resolver=resolver,
            service_types=config.discovery.service_types,
            request_timeout_ms=config.discovery.request_timeout_ms,
        )
        return await coordinator.discover(args.timeout or config.discovery.timeout)

    async with BluOSClient(args.host, config.http.port, timeout=config.http.timeout) as client:
        if args.command == "status":
            return await client.status()
        if args.command == "playlist":
            return await client.playlist()
        if args.command == "sync-status":
            return await client.sync_status()
        return await client.browse(key=args.key, query=args.query)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    config = load_config_from_json(args.config) if args.config else Config()
    if args.debug:
        config.app.debug = True

    logging.basicConfig(level=logging.DEBUG if config.app.debug else logging.INFO)
    _LOGGER.debug("Configuration loaded: %s", config)

    try:
        result = asyncio.run(_run(args, config))
    except BluOSError as err:
        _LOGGER.error("%s", err)
        return 1

    _print_json(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
