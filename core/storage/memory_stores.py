from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, Sequence

from core.persistence.interfaces import CandleStore, SymbolStore, SyncStateStore
from core.types import Candle, Symbol


class InMemoryStores(CandleStore, SymbolStore, SyncStateStore):
    """Dict-backed stores with the same keying rules as PostgresStores.

    Used by tests. State lives only as long as the instance.
    """

    def __init__(self) -> None:
        self.symbols: dict[str, Symbol] = {}
        self.candles: dict[tuple[str, str, int], Candle] = {}
        self.state: dict[str, str] = {}

    # ---- CandleStore

    def upsert_candles(self, *, candles: Sequence[Candle]) -> int:
        for candle in candles:
            self.candles[candle.key] = candle
        return len(candles)

    def get_candles(
        self,
        *,
        symbol: str,
        timeframe: str,
        start_ms: int,
        end_ms: int,
    ) -> Sequence[Candle]:
        rows = [
            c
            for (sym, tf, ts), c in self.candles.items()
            if sym == symbol and tf == timeframe and start_ms <= ts <= end_ms
        ]
        return sorted(rows, key=lambda c: c.ts_ms)

    # ---- SymbolStore

    def upsert_symbols(self, *, symbols: Sequence[Symbol]) -> int:
        now = datetime.now(tz=timezone.utc)
        for s in symbols:
            existing = self.symbols.get(s.symbol)
            merged = replace(s, name=s.name or s.symbol, updated_at=now)
            if existing is not None:
                merged = replace(
                    merged,
                    sz_decimals=s.sz_decimals if s.sz_decimals is not None else existing.sz_decimals,
                    max_leverage=s.max_leverage if s.max_leverage is not None else existing.max_leverage,
                    only_isolated=s.only_isolated if s.only_isolated is not None else existing.only_isolated,
                    is_delisted=s.is_delisted if s.is_delisted is not None else existing.is_delisted,
                )
            self.symbols[s.symbol] = merged
        return len(symbols)

    def get_symbols(self) -> Sequence[Symbol]:
        return [self.symbols[k] for k in sorted(self.symbols)]

    # ---- SyncStateStore

    def get_sync_state(self, *, key: str) -> Optional[str]:
        return self.state.get(key)

    def set_sync_state(self, *, key: str, value: str) -> None:
        self.state[key] = str(value)
