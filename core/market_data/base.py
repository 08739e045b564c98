"""Source interface and timeframe table for candle sync.

The sync engine depends only on `CandleSnapshotSource`, so tests and other
exchanges can stand in for `HyperliquidClient`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Protocol, Sequence

from core.types import Symbol, Timeframe


@dataclass(frozen=True)
class TimeframeSpec:
    """Specification for a synced timeframe."""

    api: str  # Exchange-specific interval identifier (e.g., "1m", "1h", "1d")
    lookback: timedelta  # History requested per run

    @property
    def lookback_ms(self) -> int:
        return int(self.lookback.total_seconds() * 1000)


class CandleSnapshotSource(Protocol):
    def list_universe_assets(self) -> Sequence[Symbol]:
        """Fetch every tradable symbol, in discovery order."""
        raise NotImplementedError

    def fetch_candle_snapshot(
        self,
        *,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> Sequence[dict[str, Any]]:
        """Fetch raw candles for a bounded window.

        Raises:
            RateLimitedError: upstream asked us to slow down
            UpstreamError: any other upstream failure
        """
        raise NotImplementedError


# Lookbacks keep each request under the 5000-candle upstream cap.
SYNC_TIMEFRAMES: dict[Timeframe, TimeframeSpec] = {
    "1m": TimeframeSpec(api="1m", lookback=timedelta(days=1)),
    "5m": TimeframeSpec(api="5m", lookback=timedelta(days=7)),
    "15m": TimeframeSpec(api="15m", lookback=timedelta(days=14)),
    "30m": TimeframeSpec(api="30m", lookback=timedelta(days=30)),
    "1h": TimeframeSpec(api="1h", lookback=timedelta(days=30)),
    "2h": TimeframeSpec(api="2h", lookback=timedelta(days=90)),
    "4h": TimeframeSpec(api="4h", lookback=timedelta(days=90)),
    "1d": TimeframeSpec(api="1d", lookback=timedelta(days=365)),
    "3d": TimeframeSpec(api="3d", lookback=timedelta(days=365)),
}
