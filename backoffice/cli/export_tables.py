# backoffice/cli/export_tables.py
"""
Copy the back-office tables out of MySQL.

    python -m backoffice.cli.export_tables --target-url postgresql+psycopg://...  # another SQL store
    python -m backoffice.cli.export_tables --csv-dir exports/                       # one CSV per table

Tables are read whole with pandas and written parents first, so foreign keys
in the target resolve when it enforces them.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from backoffice.logging_config import setup_logging
from backoffice.models import CORE_TABLES
from backoffice.services import config
from backoffice.storage.db import sqlalchemy_url

logger = logging.getLogger("backoffice.cli.export_tables")


def read_tables(source: Engine, tables: Iterable[str]) -> Dict[str, pd.DataFrame]:
    frames: Dict[str, pd.DataFrame] = {}
    with source.connect() as conn:
        for table in tables:
            frames[table] = pd.read_sql(text(f"SELECT * FROM `{table}`"), conn)
            logger.info("Read %s: %d rows", table, len(frames[table]))
    return frames


def write_csv(frames: Dict[str, pd.DataFrame], out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for table, df in frames.items():
        path = out_dir / f"{table}.csv"
        df.to_csv(path, index=False)
        logger.info("Wrote %s (%d rows)", path, len(df))


def write_sql(frames: Dict[str, pd.DataFrame], target: Engine, if_exists: str = "append",
              chunksize: Optional[int] = 1000) -> None:
    with target.begin() as conn:
        for table, df in frames.items():
            df.to_sql(table, conn, if_exists=if_exists, index=False, chunksize=chunksize)
            logger.info("Copied %s (%d rows)", table, len(df))


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Export back-office tables to another datastore or CSV")
    dest = ap.add_mutually_exclusive_group(required=True)
    dest.add_argument("--target-url", help="SQLAlchemy URL of the target database")
    dest.add_argument("--csv-dir", type=Path, help="Directory for one CSV file per table")
    ap.add_argument("--tables", nargs="*", default=list(CORE_TABLES), help="Subset of tables (default: all)")
    ap.add_argument("--if-exists", choices=("append", "replace", "fail"), default="append")
    args = ap.parse_args(argv)

    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    unknown = [t for t in args.tables if t not in CORE_TABLES]
    if unknown:
        logger.error("Unknown tables: %s", ", ".join(unknown))
        return 2
    tables = [t for t in CORE_TABLES if t in args.tables]

    frames = read_tables(create_engine(sqlalchemy_url()), tables)
    if args.csv_dir:
        write_csv(frames, args.csv_dir)
    else:
        write_sql(frames, create_engine(args.target_url), if_exists=args.if_exists)
    logger.info("Export finished: %d tables", len(frames))
    return 0


if __name__ == "__main__":
    sys.exit(main())
