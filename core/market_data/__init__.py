"""Market data ingestion: Hyperliquid client and the incremental candle sync."""

from core.market_data.base import SYNC_TIMEFRAMES, CandleSnapshotSource, TimeframeSpec
from core.market_data.candle_sync import (
    CandleSyncEngine,
    FetchOutcome,
    RetryPolicy,
    fetch_with_retry,
    normalize_candle,
)
from core.market_data.hyperliquid_client import HyperliquidClient
from core.market_data.sync_cursor import SyncCursor, select_batch

__all__ = [
    "SYNC_TIMEFRAMES",
    "CandleSnapshotSource",
    "TimeframeSpec",
    "CandleSyncEngine",
    "FetchOutcome",
    "RetryPolicy",
    "fetch_with_retry",
    "normalize_candle",
    "HyperliquidClient",
    "SyncCursor",
    "select_batch",
]
