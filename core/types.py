from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

# Intervals accepted by the Hyperliquid candleSnapshot endpoint.
Timeframe = Literal["1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "8h", "12h", "1d", "3d", "1w", "1M"]


@dataclass(frozen=True)
class Symbol:
    """Registry entry for one tradable perp."""

    symbol: str
    name: Optional[str] = None
    sz_decimals: Optional[int] = None
    max_leverage: Optional[int] = None
    only_isolated: Optional[bool] = None
    is_delisted: Optional[bool] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Candle:
    """One OHLCV point, unique on (symbol, timeframe, ts_ms)."""

    symbol: str
    timeframe: Timeframe
    ts_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.symbol, str(self.timeframe), self.ts_ms)


@dataclass
class SyncRunSummary:
    """Result of one sync invocation (not persisted)."""

    ok: bool = True
    pairs_synced: int = 0
    candles_inserted: int = 0
    next_cursor: Optional[int] = None
    pairs_fetched: Optional[int] = None
    failed_pairs: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the trigger's camelCase response keys."""
        out: dict[str, Any] = {
            "ok": self.ok,
            "pairsSynced": self.pairs_synced,
            "candlesInserted": self.candles_inserted,
            "nextCursor": self.next_cursor,
            "error": self.error,
        }
        if self.pairs_fetched is not None:
            out["pairsFetched"] = self.pairs_fetched
        if self.failed_pairs:
            out["failedPairs"] = list(self.failed_pairs)
        return out
