#!/usr/bin/env python3
"""Run one incremental pair/candle sync (manual runs, systemd timers, cron).

Loads `.env` from the repository root, then reads:
    DATABASE_URL / POSTGRES_URL - Required. PostgreSQL connection string.
    HYPERLIQUID_TESTNET         - "1" to use testnet.
    SYNC_PAIRS_PER_RUN          - Pairs per run (default: 24).

Usage:
    python -m scripts.run_sync
    python -m scripts.run_sync --pairs-per-run 10 --init-db

Prints the run summary as JSON. Exit code 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.config import SyncSettings  # noqa: E402
from core.errors import ConfigError  # noqa: E402
from core.market_data.sync_job import run_sync_job  # noqa: E402


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync Hyperliquid pairs + candles into Postgres (one batch).")
    parser.add_argument(
        "--pairs-per-run",
        type=int,
        help="Override SYNC_PAIRS_PER_RUN for this run",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Apply db/schema.sql before syncing",
    )
    parser.add_argument(
        "--env-file",
        default=str(_REPO_ROOT / ".env"),
        help="Path to .env file (default: repo root .env)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    load_dotenv(args.env_file)

    try:
        settings = SyncSettings.from_env()
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.pairs_per_run is not None:
        if args.pairs_per_run < 1:
            print("ERROR: --pairs-per-run must be >= 1", file=sys.stderr)
            return 1
        settings = replace(settings, pairs_per_run=args.pairs_per_run)

    summary = run_sync_job(settings=settings, init_schema=args.init_db)

    # Keep output small and avoid printing DATABASE_URL.
    print(json.dumps(summary.to_dict(), indent=2))
    return 0 if summary.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
