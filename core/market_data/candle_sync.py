"""Incremental pair/candle sync.

One call to `CandleSyncEngine.run()` handles a bounded slice of the symbol
registry so that it finishes well inside a ~5 minute execution ceiling:

1. Load the registry (bootstrap it from the exchange universe when empty).
2. Slice `pairs_per_run` symbols starting at the persisted cursor.
3. Persist the next cursor before fetching anything.
4. Fetch every configured timeframe for each symbol in the slice.
5. Upsert all normalized candles in one store call.

At ~1.2s per upstream call, 24 pairs x 9 timeframes is ~216 calls (~4.3 min).
A universe of ~250 pairs is fully covered every ceil(250 / 24) = 11 runs.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Literal, Mapping, Optional, Sequence

from core.config import DEFAULT_PAIRS_PER_RUN
from core.errors import RateLimitedError, UpstreamError
from core.market_data.base import SYNC_TIMEFRAMES, CandleSnapshotSource, TimeframeSpec
from core.market_data.sync_cursor import DEFAULT_CURSOR_KEY, SyncCursor, select_batch
from core.persistence.interfaces import SyncStores
from core.types import Candle, SyncRunSummary, Timeframe

logger = logging.getLogger(__name__)

FetchStatus = Literal["ok", "rate_limited", "upstream_error"]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for rate-limited fetches (fixed back-off, no growth)."""

    max_attempts: int = 2
    backoff_seconds: float = 15.0


@dataclass(frozen=True)
class FetchOutcome:
    status: FetchStatus
    rows: Sequence[Mapping[str, Any]] = ()
    error: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def fetch_with_retry(
    client: CandleSnapshotSource,
    *,
    symbol: str,
    interval: str,
    start_ms: int,
    end_ms: int,
    policy: RetryPolicy = RetryPolicy(),
    sleep: Callable[[float], None] = time.sleep,
) -> FetchOutcome:
    """Fetch one window, retrying the identical request only on rate limiting."""
    attempt = 0
    while True:
        attempt += 1
        try:
            rows = client.fetch_candle_snapshot(
                symbol=symbol,
                interval=interval,
                start_ms=start_ms,
                end_ms=end_ms,
            )
        except RateLimitedError as exc:
            if attempt >= policy.max_attempts:
                return FetchOutcome(status="rate_limited", error=str(exc), attempts=attempt)
            logger.info(
                "Rate limited on %s %s; backing off %.1fs (attempt %d/%d)",
                symbol,
                interval,
                policy.backoff_seconds,
                attempt,
                policy.max_attempts,
            )
            sleep(policy.backoff_seconds)
            continue
        except UpstreamError as exc:
            return FetchOutcome(status="upstream_error", error=str(exc), attempts=attempt)

        return FetchOutcome(status="ok", rows=rows, attempts=attempt)


def _to_decimal(value: Any) -> Decimal:
    """Coerce an upstream numeric field; anything unusable becomes 0."""
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        out = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not out.is_finite():
        return Decimal(0)
    return out


def _parse_ts_ms(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return None


def _resolve_ts_ms(raw: Mapping[str, Any]) -> Optional[int]:
    for field in ("T", "t"):
        ts_ms = _parse_ts_ms(raw.get(field))
        if ts_ms is not None:
            return ts_ms
    return None


def normalize_candle(symbol: str, timeframe: Timeframe, raw: Any) -> Optional[Candle]:
    """Map one raw snapshot row to a Candle, or None when it has no timestamp.

    The timestamp comes from `T`, falling back to `t` when `T` is missing
    or unparseable. OHLCV values that are
    missing or non-numeric are stored as 0 rather than rejecting the row.
    """
    if not isinstance(raw, Mapping):
        return None
    ts_ms = _resolve_ts_ms(raw)
    if ts_ms is None:
        return None
    return Candle(
        symbol=symbol,
        timeframe=timeframe,
        ts_ms=ts_ms,
        open=_to_decimal(raw.get("o")),
        high=_to_decimal(raw.get("h")),
        low=_to_decimal(raw.get("l")),
        close=_to_decimal(raw.get("c")),
        volume=_to_decimal(raw.get("v")),
    )


def _now_ms() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


class CandleSyncEngine:
    """Runs one resumable sync pass over a slice of the symbol registry."""

    def __init__(
        self,
        *,
        client: CandleSnapshotSource,
        stores: SyncStores,
        pairs_per_run: int = DEFAULT_PAIRS_PER_RUN,
        timeframes: Mapping[Timeframe, TimeframeSpec] | None = None,
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep: Callable[[float], None] = time.sleep,
        cursor_key: str = DEFAULT_CURSOR_KEY,
    ) -> None:
        if pairs_per_run < 1:
            raise ValueError("pairs_per_run must be >= 1")
        self.client = client
        self.stores = stores
        self.pairs_per_run = pairs_per_run
        self.timeframes = dict(SYNC_TIMEFRAMES if timeframes is None else timeframes)
        self.retry_policy = retry_policy
        self.cursor = SyncCursor(stores, key=cursor_key)
        self._sleep = sleep

    def resolve_universe(self, summary: SyncRunSummary) -> list[str]:
        symbols = [s.symbol for s in self.stores.get_symbols()]
        if symbols:
            return symbols

        # First run: populate the registry in full before slicing.
        assets = list(self.client.list_universe_assets())
        self.stores.upsert_symbols(symbols=assets)
        summary.pairs_fetched = len(assets)
        logger.info("Bootstrapped symbol registry with %d pairs", len(assets))
        # Re-read so this run slices in the same order later runs will.
        return [s.symbol for s in self.stores.get_symbols()]

    def fetch_symbol(self, symbol: str, *, end_ms: int, summary: SyncRunSummary) -> list[Candle]:
        candles: list[Candle] = []
        for timeframe, spec in self.timeframes.items():
            outcome = fetch_with_retry(
                self.client,
                symbol=symbol,
                interval=spec.api,
                start_ms=end_ms - spec.lookback_ms,
                end_ms=end_ms,
                policy=self.retry_policy,
                sleep=self._sleep,
            )
            if not outcome.ok:
                logger.warning("Skipping %s %s (%s): %s", symbol, timeframe, outcome.status, outcome.error)
                summary.failed_pairs.append(f"{symbol}:{timeframe}")
                continue

            dropped = 0
            for raw in outcome.rows:
                candle = normalize_candle(symbol, timeframe, raw)
                if candle is None:
                    dropped += 1
                    continue
                candles.append(candle)
            if dropped:
                logger.debug("Dropped %d %s %s rows without a timestamp", dropped, symbol, timeframe)
        return candles

    def run(self, *, now_ms: int | None = None) -> SyncRunSummary:
        """Execute one invocation. Never raises; failures land in the summary.

        Work committed before a failure (registry bootstrap, cursor advance,
        earlier candle chunks) is kept.
        """
        summary = SyncRunSummary()
        try:
            symbols = self.resolve_universe(summary)

            cursor = self.cursor.read()
            batch, next_cursor = select_batch(symbols, cursor, self.pairs_per_run)
            # Advance before fetching so a killed run cannot pin the cursor.
            self.cursor.write(next_cursor)
            summary.next_cursor = next_cursor
            logger.info(
                "Syncing %d of %d pairs from cursor %d (next cursor %d)",
                len(batch),
                len(symbols),
                cursor,
                next_cursor,
            )

            end_ms = _now_ms() if now_ms is None else int(now_ms)
            all_candles: list[Candle] = []
            for symbol in batch:
                all_candles.extend(self.fetch_symbol(symbol, end_ms=end_ms, summary=summary))

            if all_candles:
                self.stores.upsert_candles(candles=all_candles)
                summary.candles_inserted = len(all_candles)
            summary.pairs_synced = len(batch)

        except Exception as exc:
            logger.exception("Candle sync failed")
            summary.ok = False
            summary.error = str(exc) or exc.__class__.__name__
            return summary

        logger.info(
            "Candle sync ok: pairs=%d candles=%d skipped=%d next_cursor=%s",
            summary.pairs_synced,
            summary.candles_inserted,
            len(summary.failed_pairs),
            summary.next_cursor,
        )
        return summary
