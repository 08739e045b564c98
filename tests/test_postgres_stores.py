"""Tests for PostgresStores SQL behavior with a mocked SQLAlchemy engine."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import StoreError
from core.storage.postgres.config import PostgresConfig
from core.storage.postgres.stores import PostgresStores
from core.types import Candle, Symbol


def _make_candles(count: int) -> list[Candle]:
    return [
        Candle(
            symbol="BTC",
            timeframe="1m",
            ts_ms=1_700_000_000_000 + i * 60_000,
            open=Decimal("1"),
            high=Decimal("2"),
            low=Decimal("0.5"),
            close=Decimal("1.5"),
            volume=Decimal("10"),
        )
        for i in range(count)
    ]


@pytest.fixture
def pg() -> PostgresStores:
    return PostgresStores(config=PostgresConfig(database_url="postgresql://fake"))


@pytest.fixture
def sql_text() -> Mock:
    """Stand-in for sqlalchemy.text that returns the raw SQL string."""
    return Mock(side_effect=lambda sql: sql)


def _patched(pg: PostgresStores, engine: Mock, sql_text: Mock):
    return (
        patch.object(pg, "_get_engine", return_value=engine),
        patch.object(pg, "_require_sqlalchemy", return_value=(Mock(), sql_text)),
    )


def test_upsert_candles_handles_empty_list(pg: PostgresStores) -> None:
    """Verify upsert_candles returns 0 for empty candle list without DB call."""
    with patch.object(pg, "_get_engine") as mock_get_engine:
        result = pg.upsert_candles(candles=[])

    assert result == 0
    mock_get_engine.assert_not_called()


def test_upsert_candles_writes_in_chunks_of_100(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    candles = _make_candles(250)
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        result = pg.upsert_candles(candles=candles)

    assert result == 250
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    sizes = [len(call.args[1]) for call in conn.execute.call_args_list]
    assert sizes == [100, 100, 50]
    # One transaction per chunk.
    assert mock_db_engine.begin.call_count == 3


def test_upsert_candles_constructs_correct_payload(
    pg: PostgresStores,
    mock_db_engine: Mock,
    sql_text: Mock,
    sample_candles: list[Candle],
) -> None:
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        pg.upsert_candles(candles=sample_candles)

    conn = mock_db_engine.begin.return_value.__enter__.return_value
    stmt, payload = conn.execute.call_args.args
    assert "ON CONFLICT (symbol, interval, ts_ms)" in stmt
    assert "DO UPDATE SET" in stmt
    assert len(payload) == len(sample_candles)
    for item, candle in zip(payload, sample_candles):
        assert item == {
            "symbol": candle.symbol,
            "interval": "1h",
            "ts_ms": candle.ts_ms,
            "open": candle.open,
            "high": candle.high,
            "low": candle.low,
            "close": candle.close,
            "volume": candle.volume,
        }


def test_upsert_candles_failure_keeps_earlier_chunks(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    conn.execute.side_effect = [Mock(), OperationalError("INSERT", {}, Exception("server closed the connection"))]
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql, pytest.raises(StoreError, match="OperationalError"):
        pg.upsert_candles(candles=_make_candles(150))

    assert conn.execute.call_count == 2


def test_get_candles_maps_rows(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    conn.execute.return_value.fetchall.return_value = [
        ("BTC", "1h", 1000, Decimal("1"), Decimal("2"), Decimal("0.5"), Decimal("1.5"), Decimal("9")),
    ]
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        candles = pg.get_candles(symbol="BTC", timeframe="1h", start_ms=0, end_ms=2000)

    assert candles == [
        Candle(
            symbol="BTC",
            timeframe="1h",
            ts_ms=1000,
            open=Decimal("1"),
            high=Decimal("2"),
            low=Decimal("0.5"),
            close=Decimal("1.5"),
            volume=Decimal("9"),
        )
    ]
    stmt, params = conn.execute.call_args.args
    assert "ORDER BY ts_ms ASC" in stmt
    assert params == {"symbol": "BTC", "interval": "1h", "start_ms": 0, "end_ms": 2000}


def test_upsert_symbols_defaults_name_to_symbol(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        count = pg.upsert_symbols(symbols=[Symbol(symbol="BTC", max_leverage=50), Symbol(symbol="ETH", name="Ether")])

    assert count == 2
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    stmt, payload = conn.execute.call_args.args
    assert "ON CONFLICT (symbol)" in stmt
    assert payload[0]["name"] == "BTC"
    assert payload[0]["max_leverage"] == 50
    assert payload[1]["name"] == "Ether"


def test_get_symbols_maps_rows(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    conn.execute.return_value.fetchall.return_value = [
        ("BTC", "BTC", 5, 50, False, False, None),
        ("ETH", "ETH", None, None, None, None, None),
    ]
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        symbols = pg.get_symbols()

    assert [s.symbol for s in symbols] == ["BTC", "ETH"]
    assert symbols[0].sz_decimals == 5
    assert symbols[1].max_leverage is None


def test_get_sync_state_returns_none_when_absent(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        assert pg.get_sync_state(key="sync_cursor") is None


def test_get_sync_state_returns_value(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    conn = mock_db_engine.begin.return_value.__enter__.return_value
    conn.execute.return_value.fetchone.return_value = ("48",)
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        assert pg.get_sync_state(key="sync_cursor") == "48"


def test_set_sync_state_upserts_string_value(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        pg.set_sync_state(key="sync_cursor", value="24")

    conn = mock_db_engine.begin.return_value.__enter__.return_value
    stmt, params = conn.execute.call_args.args
    assert "ON CONFLICT (key)" in stmt
    assert params == {"key": "sync_cursor", "value": "24"}


def test_ensure_schema_executes_each_statement(pg: PostgresStores, mock_db_engine: Mock, sql_text: Mock) -> None:
    p_engine, p_sql = _patched(pg, mock_db_engine, sql_text)

    with p_engine, p_sql:
        pg.ensure_schema()

    conn = mock_db_engine.begin.return_value.__enter__.return_value
    statements = [call.args[0] for call in conn.execute.call_args_list]
    assert len(statements) == 5
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS pairs")
    assert any("sync_state" in s for s in statements)


def test_connection_failure_becomes_store_error(pg: PostgresStores, sql_text: Mock) -> None:
    engine = Mock()
    engine.begin.side_effect = OperationalError("connect", {}, Exception("could not connect"))
    p_engine, p_sql = _patched(pg, engine, sql_text)

    with p_engine, p_sql, pytest.raises(StoreError):
        pg.get_symbols()
