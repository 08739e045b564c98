from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.types import Candle, Symbol


class CandleStore(Protocol):
    def upsert_candles(self, *, candles: Sequence[Candle]) -> int:
        """Insert or update candles (last write wins per key). Returns number of rows written."""

    def get_candles(
        self,
        *,
        symbol: str,
        timeframe: str,
        start_ms: int,
        end_ms: int,
    ) -> Sequence[Candle]:
        """Fetch candles for an inclusive ts_ms range, ascending."""


class SymbolStore(Protocol):
    def upsert_symbols(self, *, symbols: Sequence[Symbol]) -> int:
        """Insert or update registry entries. Returns number of affected rows."""

    def get_symbols(self) -> Sequence[Symbol]:
        """Fetch the full registry ordered by symbol."""


class SyncStateStore(Protocol):
    def get_sync_state(self, *, key: str) -> Optional[str]:
        """Fetch a raw state value, or None when absent."""

    def set_sync_state(self, *, key: str, value: str) -> None:
        """Insert or replace a state value."""


class SyncStores(CandleStore, SymbolStore, SyncStateStore, Protocol):
    """Everything the sync engine needs from persistence."""
