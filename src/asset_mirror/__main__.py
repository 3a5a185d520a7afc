from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from asset_mirror.cache.utils import format_epoch
from asset_mirror.config import YamlConfigLoader
from asset_mirror.config.models import AppConfig, ConfigLoadRequest
from asset_mirror.engine.impl import AssetCacheEngine
from asset_mirror.errors import AssetCacheError
from asset_mirror.logging import init_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="asset-mirror", description="Local mirror for external web assets")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    lookup_parser = subparsers.add_parser("lookup", help="Print the URL to serve for an external asset")
    lookup_parser.add_argument("url")

    fetch_parser = subparsers.add_parser("fetch", help="Mirror an external asset now")
    fetch_parser.add_argument("url")
    fetch_parser.add_argument("--type", dest="asset_type", default=None, help="File type, e.g. css or woff2")

    status_parser = subparsers.add_parser("status", help="Print the cache status of an external asset")
    status_parser.add_argument("url")

    subparsers.add_parser("list", help="List mirrored and queued assets")
    subparsers.add_parser("refresh", help="Enqueue every mirrored asset for a background refetch")
    subparsers.add_parser("purge", help="Delete all mirrored assets and rebuild the cache")
    subparsers.add_parser("drain", help="Fetch the queued assets")
    subparsers.add_parser("version", help="Print the cache state fingerprint")

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


def _print_rows(engine: AssetCacheEngine) -> None:
    rows = engine.list_entries_with_status()
    if not rows:
        print("No external assets found.")
        return
    for row in rows:
        created = format_epoch(row.created) if row.created else "-"
        expires = format_epoch(row.expires) if row.expires else "-"
        print(f"{row.status:<9} {created:<21} {expires:<21} {row.url}")


async def _run_command(args: argparse.Namespace, engine: AssetCacheEngine) -> int:
    if args.command == "lookup":
        print(engine.lookup_or_fallback(args.url))
    elif args.command == "fetch":
        print(await engine.cache_asset(args.url, args.asset_type))
    elif args.command == "status":
        print(engine.asset_status(args.url))
    elif args.command == "list":
        _print_rows(engine)
    elif args.command == "refresh":
        count = engine.trigger_refresh()
        print(f"Enqueued {count} assets for refresh.")
    elif args.command == "purge":
        count = engine.trigger_purge()
        print(f"Purged {count} assets.")
    elif args.command == "drain":
        report = await engine.drain_queue()
        if report.skipped:
            print("Skipped: another drain is running.")
            return 1
        print(f"Fetched {len(report.fetched)} assets, {len(report.failed)} failed.")
    elif args.command == "version":
        print(engine.cache_version())
    return 0


async def _main_async() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    config = await _load_config(args)
    init_logging(config.logging)
    engine = AssetCacheEngine(config.cache)
    try:
        return await _run_command(args, engine)
    except AssetCacheError as e:
        logger.error("Command failed. command=%s error=%s", args.command, e)
        return 2


def main() -> None:
    try:
        sys.exit(asyncio.run(_main_async()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
