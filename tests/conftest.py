"""Shared test fixtures for pytest.

Provides an in-memory store, a scripted exchange client and SQLAlchemy mocks.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence
from unittest.mock import Mock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.storage.memory_stores import InMemoryStores  # noqa: E402
from core.types import Candle, Symbol  # noqa: E402


class ScriptedClient:
    """Stand-in for HyperliquidClient.

    `responses[(symbol, interval)]` is a list consumed one item per call; an
    item is either the rows to return or an exception instance to raise.
    Pairs without a script return `default_rows`.
    """

    def __init__(
        self,
        universe: Sequence[str] = (),
        responses: dict[tuple[str, str], list[Any]] | None = None,
        default_rows: list[dict[str, Any]] | None = None,
    ) -> None:
        self.universe = list(universe)
        self.responses = responses or {}
        self.default_rows = default_rows if default_rows is not None else []
        self.universe_calls = 0
        self.calls: list[dict[str, Any]] = []

    def list_universe_assets(self) -> list[Symbol]:
        self.universe_calls += 1
        return [Symbol(symbol=s, name=s) for s in self.universe]

    def fetch_candle_snapshot(self, *, symbol: str, interval: str, start_ms: int, end_ms: int) -> list[dict[str, Any]]:
        self.calls.append({"symbol": symbol, "interval": interval, "start_ms": start_ms, "end_ms": end_ms})
        script = self.responses.get((symbol, interval))
        if script:
            item = script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return list(self.default_rows)


@pytest.fixture
def stores() -> InMemoryStores:
    return InMemoryStores()


@pytest.fixture
def raw_candle() -> dict[str, Any]:
    """One candleSnapshot row as Hyperliquid returns it (numbers as strings)."""
    return {
        "t": 1704067200000,
        "T": 1704070799999,
        "s": "BTC",
        "i": "1h",
        "o": "42000.5",
        "c": "42100.0",
        "h": "42250.0",
        "l": "41900.0",
        "v": "123.45",
        "n": 1500,
    }


@pytest.fixture
def sample_candles() -> list[Candle]:
    """Five consecutive 1h BTC candles."""
    base_ms = 1704067200000
    return [
        Candle(
            symbol="BTC",
            timeframe="1h",
            ts_ms=base_ms + i * 3_600_000,
            open=Decimal("40000") + Decimal(i * 100),
            high=Decimal("40500") + Decimal(i * 100),
            low=Decimal("39500") + Decimal(i * 100),
            close=Decimal("40200") + Decimal(i * 100),
            volume=Decimal("100.5"),
        )
        for i in range(5)
    ]


@pytest.fixture
def mock_db_engine() -> Mock:
    """Mock SQLAlchemy engine for testing database operations."""
    mock_engine = Mock()
    mock_conn = Mock()
    mock_result = Mock()
    mock_result.rowcount = 1
    mock_result.fetchone.return_value = None
    mock_result.fetchall.return_value = []
    mock_conn.execute.return_value = mock_result
    mock_engine.begin.return_value.__enter__ = Mock(return_value=mock_conn)
    mock_engine.begin.return_value.__exit__ = Mock(return_value=False)
    return mock_engine


@pytest.fixture
def make_client() -> type[ScriptedClient]:
    return ScriptedClient
