from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import KeeperSettings, load_config
from .raffle_client import HttpRaffleClient
from .scheduler import KeeperScheduler

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )


def apply_overrides(settings: KeeperSettings, args: argparse.Namespace) -> KeeperSettings:
    updates = {}
    if args.api_url:
        updates["raffle_api_url"] = args.api_url.rstrip("/")
    if args.interval:
        updates["poll_interval_seconds"] = args.interval
    return settings.copy(**updates) if updates else settings


async def run(args: argparse.Namespace) -> Optional[int]:
    configure_logging(args.verbose)
    settings = apply_overrides(load_config(args.env_file), args)
    logger = logging.getLogger("raffle.keeper")
    logger.debug("Keeper targeting %s", settings.raffle_api_url)

    scheduler = KeeperScheduler(settings, HttpRaffleClient(settings), logger=logger)
    if not args.once:
        await scheduler.run_forever()
        return None

    result = await scheduler.run_once()
    if result is None:
        logger.info("No draw triggered.")
        return None
    logger.info("Draw triggered: request=%s players=%s", result.request_id, result.player_count)
    return result.request_id


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drives raffle upkeep on a polling interval")
    parser.add_argument("--env-file", default=None, help="Path to a .env file with keeper settings")
    parser.add_argument("--api-url", default=None, help="Override RAFFLE_API_URL")
    parser.add_argument("--interval", type=int, default=None, help="Override POLL_INTERVAL_SECONDS")
    parser.add_argument("--once", action="store_true", help="Check upkeep a single time and exit.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG instead of INFO.")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Keeper stopped.")


if __name__ == "__main__":
    main()
