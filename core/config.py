"""Environment-driven settings for the sync job and API.

Secrets (`database_url`, `cron_secret`) are never logged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from core.errors import ConfigError

DEFAULT_PAIRS_PER_RUN = 24


def resolve_database_url(env: Mapping[str, str] | None = None) -> str:
    env = os.environ if env is None else env
    url = (env.get("DATABASE_URL") or env.get("POSTGRES_URL") or "").strip()
    if not url:
        raise ConfigError("DATABASE_URL or POSTGRES_URL is required")
    if "://" not in url:
        raise ConfigError("DATABASE_URL must be a SQLAlchemy URL (e.g. postgresql://...)")
    return url


@dataclass(frozen=True)
class SyncSettings:
    database_url: str
    cron_secret: Optional[str] = None
    testnet: bool = False
    pairs_per_run: int = DEFAULT_PAIRS_PER_RUN

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "SyncSettings":
        env = os.environ if env is None else env

        raw_batch = env.get("SYNC_PAIRS_PER_RUN")
        pairs_per_run = DEFAULT_PAIRS_PER_RUN
        if raw_batch:
            try:
                pairs_per_run = int(raw_batch)
            except ValueError as exc:
                raise ConfigError(f"SYNC_PAIRS_PER_RUN must be an integer, got {raw_batch!r}") from exc
            if pairs_per_run < 1:
                raise ConfigError("SYNC_PAIRS_PER_RUN must be >= 1")

        return cls(
            database_url=resolve_database_url(env),
            cron_secret=env.get("CRON_SECRET") or None,
            testnet=env.get("HYPERLIQUID_TESTNET") == "1",
            pairs_per_run=pairs_per_run,
        )
