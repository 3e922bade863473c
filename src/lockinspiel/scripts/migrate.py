# src/lockinspiel/scripts/migrate.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from lockinspiel.core.settings import settings
from lockinspiel.db.errors import StoreError
from lockinspiel.db.pool import Database


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Open the timesheet store and apply pending migrations.")
    parser.add_argument("--path", type=Path, default=None, help="storage file (default: DATABASE_PATH or the user data directory)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())

    try:
        if args.path is not None:
            database = Database(args.path, pool_size=1, echo=settings.sql_debug)
        else:
            database = Database.from_settings()
    except StoreError as exc:
        print(f"[migrate] {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        if database.applied_migrations:
            applied = ", ".join(str(index) for index in database.applied_migrations)
            print(f"[migrate] {database.path}: applied {applied}")
        else:
            print(f"[migrate] {database.path}: already up to date")
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
