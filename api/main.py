"""FastAPI application for stored Hyperliquid pairs and candles.

Endpoints:
- GET /health - Database connectivity check
- GET /pairs - All pairs in the registry
- GET /candles - Candles for symbol/interval/time range (ms), ascending
- GET|POST /sync - Run one incremental sync (cron trigger)

Requirements:
- DATABASE_URL (or POSTGRES_URL) must be set in environment
- CRON_SECRET, when set, must be sent as `Authorization: Bearer <secret>` to /sync
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Optional

from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse

from core.market_data.sync_job import trigger_sync
from core.storage.postgres.config import PostgresConfig
from core.storage.postgres.stores import PostgresStores

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hyperliquid Candle Sync API",
    description="Read endpoints for synced pairs/candles and the sync trigger",
    version="1.0.0",
)

# Global store instance (initialized on first request)
_stores: PostgresStores | None = None
_stores_lock = threading.Lock()


def _get_stores() -> PostgresStores:
    """Get or initialize the database stores (schema applied once per process).

    Blocks on DDL round trips; call it via `asyncio.to_thread`.
    """
    global _stores
    with _stores_lock:
        if _stores is None:
            stores = PostgresStores(config=PostgresConfig.from_env())
            stores.ensure_schema()
            _stores = stores
    return _stores


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _parse_ms(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


@app.get("/health")
async def health() -> JSONResponse:
    """Report database connectivity (503 when unreachable)."""
    try:
        stores = await asyncio.to_thread(_get_stores)
        pairs = await asyncio.to_thread(stores.get_symbols)
    except Exception as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": {"connected": False, "error": str(exc)}},
        )

    return JSONResponse(
        content={"status": "ok", "database": {"connected": True, "pairs": len(pairs)}},
    )


@app.get("/pairs")
async def list_pairs() -> Any:
    """List all pairs (symbols) stored in the DB."""
    try:
        stores = await asyncio.to_thread(_get_stores)
        rows = await asyncio.to_thread(stores.get_symbols)
    except Exception as exc:
        logger.exception("Failed to list pairs")
        return _error(500, str(exc))

    return [{"symbol": row.symbol, "name": row.name} for row in rows]


@app.get("/candles")
async def list_candles(
    symbol: Optional[str] = Query(None, description="Coin, e.g. BTC"),
    interval: Optional[str] = Query(None, description="Interval, e.g. 1h (default)"),
    start: Optional[str] = Query(None, description="Start time (ms, inclusive)"),
    end: Optional[str] = Query(None, description="End time (ms, inclusive)"),
) -> Any:
    """Return [{ts_ms, open, high, low, close, volume}] ordered by ts_ms.

    Numeric values are decimal strings so NUMERIC precision survives JSON.
    """
    symbol = (symbol or "").strip()
    interval = (interval or "").strip() or "1h"
    start_ms = _parse_ms(start)
    end_ms = _parse_ms(end)

    if not symbol:
        return _error(400, "Missing query: symbol")
    if start_ms is None or end_ms is None:
        return _error(400, "Missing or invalid query: start, end (milliseconds)")

    try:
        stores = await asyncio.to_thread(_get_stores)
        candles = await asyncio.to_thread(
            stores.get_candles,
            symbol=symbol,
            timeframe=interval,
            start_ms=start_ms,
            end_ms=end_ms,
        )
    except Exception as exc:
        logger.exception("Failed to read candles for %s %s", symbol, interval)
        return _error(500, str(exc))

    return [
        {
            "ts_ms": c.ts_ms,
            "open": str(c.open),
            "high": str(c.high),
            "low": str(c.low),
            "close": str(c.close),
            "volume": str(c.volume),
        }
        for c in candles
    ]


@app.api_route("/sync", methods=["GET", "POST"])
async def sync(authorization: Optional[str] = Header(None)) -> JSONResponse:
    """Run one incremental sync slice. Blocking work runs off the event loop."""
    status_code, body = await asyncio.to_thread(trigger_sync, authorization=authorization)
    return JSONResponse(status_code=status_code, content=body)
