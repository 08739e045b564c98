"""Scheduler-facing entrypoint for one sync run.

`trigger_sync` is what cron callers hit (via `POST /sync` or
`scripts/run_sync.py`). It always returns a status code and a JSON-ready body;
no exception escapes it.
"""

from __future__ import annotations

import hmac
import logging
import os
from typing import Any, Mapping, Optional

from core.config import SyncSettings
from core.errors import ConfigError
from core.market_data.base import CandleSnapshotSource
from core.market_data.candle_sync import CandleSyncEngine
from core.market_data.hyperliquid_client import HyperliquidClient
from core.persistence.interfaces import SyncStores
from core.storage.postgres.config import PostgresConfig
from core.storage.postgres.stores import PostgresStores
from core.types import SyncRunSummary

logger = logging.getLogger(__name__)


def is_authorized(authorization: Optional[str], cron_secret: Optional[str]) -> bool:
    """Require `Bearer <secret>` only when a secret is configured."""
    if not cron_secret:
        return True
    if not authorization:
        return False
    return hmac.compare_digest(authorization.encode(), f"Bearer {cron_secret}".encode())


def run_sync_job(
    *,
    settings: SyncSettings,
    stores: SyncStores | None = None,
    client: CandleSnapshotSource | None = None,
    init_schema: bool = False,
) -> SyncRunSummary:
    """Run one sync with production wiring unless stores/client are supplied."""
    owned_stores: PostgresStores | None = None
    owned_client: HyperliquidClient | None = None
    try:
        if stores is None:
            owned_stores = PostgresStores(config=PostgresConfig(database_url=settings.database_url))
            if init_schema:
                owned_stores.ensure_schema()
            stores = owned_stores
        if client is None:
            owned_client = HyperliquidClient(testnet=settings.testnet)
            client = owned_client

        engine = CandleSyncEngine(client=client, stores=stores, pairs_per_run=settings.pairs_per_run)
        return engine.run()
    except Exception as exc:
        logger.exception("Sync job setup failed")
        return SyncRunSummary(ok=False, error=str(exc) or exc.__class__.__name__)
    finally:
        if owned_client is not None:
            owned_client.close()
        if owned_stores is not None:
            owned_stores.dispose()


def trigger_sync(
    *,
    authorization: Optional[str] = None,
    env: Mapping[str, str] | None = None,
    settings: SyncSettings | None = None,
    stores: SyncStores | None = None,
    client: CandleSnapshotSource | None = None,
) -> tuple[int, dict[str, Any]]:
    """Authorize, run one sync and return (http_status, body)."""
    if settings is None:
        env = os.environ if env is None else env
        cron_secret = env.get("CRON_SECRET") or None
    else:
        cron_secret = settings.cron_secret

    if not is_authorized(authorization, cron_secret):
        logger.warning("Rejected sync trigger with missing or invalid authorization")
        return 401, {"error": "Unauthorized"}

    if settings is None:
        try:
            settings = SyncSettings.from_env(env)
        except ConfigError as exc:
            logger.error("Sync configuration error: %s", exc)
            return 500, SyncRunSummary(ok=False, error=str(exc)).to_dict()

    # Stores built here get the idempotent DDL applied on every run.
    summary = run_sync_job(settings=settings, stores=stores, client=client, init_schema=stores is None)
    return (200 if summary.ok else 500), summary.to_dict()
