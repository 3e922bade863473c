# src/lockinspiel/scripts/clock_offset.py
"""Measure the local clock offset against the configured time reference."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import timedelta

from lockinspiel.core.settings import settings
from lockinspiel.services.clock import ClientError, LockinspielClient, load_client_config


async def measure(base_url: str | None = None) -> timedelta:
    config = load_client_config()
    if base_url is not None:
        config = replace(config, base_url=base_url)
    async with LockinspielClient(config) as client:
        return await client.refresh_clock_offset()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default=None, help=f"time reference server (default: {settings.base_url})")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())

    try:
        offset = asyncio.run(measure(args.base_url))
    except ClientError as exc:
        print(f"[clock-offset] {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"[clock-offset] {offset.total_seconds():+.6f}s")


if __name__ == "__main__":
    main()
