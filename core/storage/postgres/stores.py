from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from core.errors import StoreError
from core.persistence.interfaces import CandleStore, SymbolStore, SyncStateStore
from core.storage.postgres.config import PostgresConfig
from core.types import Candle, Symbol

logger = logging.getLogger(__name__)

# Rows per INSERT round trip; keeps each statement under driver parameter limits.
CANDLE_UPSERT_CHUNK_SIZE = 100

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "db" / "schema.sql"


def _chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class PostgresStores(CandleStore, SymbolStore, SyncStateStore):
    """PostgreSQL-backed persistence for pairs, candles and sync state.

    Every public method runs in its own transaction. `upsert_candles` commits
    one transaction per chunk, so a failure mid-batch leaves the earlier
    chunks committed; rewriting them later is harmless because the upsert is
    keyed on (symbol, interval, ts_ms).
    """

    def __init__(self, *, config: PostgresConfig, chunk_size: int = CANDLE_UPSERT_CHUNK_SIZE) -> None:
        self._config = config
        self._engine: Any | None = None
        self._chunk_size = chunk_size

    def _require_sqlalchemy(self) -> tuple[Any, Any]:
        try:
            from sqlalchemy import create_engine, text  # type: ignore[import-not-found]
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("SQLAlchemy is required for PostgresStores. Install the project dependencies.") from exc

        return create_engine, text

    def _get_engine(self) -> Any:
        if self._engine is None:
            create_engine, _ = self._require_sqlalchemy()
            # Do not log the URL (it may contain secrets).
            self._engine = create_engine(self._config.database_url, echo=False, pool_pre_ping=True)
        return self._engine

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        from sqlalchemy.exc import SQLAlchemyError  # type: ignore[import-not-found]

        try:
            engine = self._get_engine()
            with engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StoreError(f"Postgres operation failed: {exc.__class__.__name__}: {exc}") from exc

    def dispose(self) -> None:
        """Release pooled connections (one-shot jobs call this before exiting)."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def ensure_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Apply db/schema.sql (idempotent: CREATE ... IF NOT EXISTS)."""
        from db.init_db import iter_sql_statements

        _, text = self._require_sqlalchemy()
        sql = schema_path.read_text(encoding="utf-8")

        with self._transaction() as conn:
            for stmt in iter_sql_statements(sql):
                conn.execute(text(stmt))

    # ---- CandleStore

    def upsert_candles(self, *, candles: Sequence[Candle]) -> int:
        if not candles:
            return 0

        _, text = self._require_sqlalchemy()

        stmt = text(
            """
            INSERT INTO candles (
                symbol, interval, ts_ms,
                open, high, low, close,
                volume
            )
            VALUES (
                :symbol, :interval, :ts_ms,
                :open, :high, :low, :close,
                :volume
            )
            ON CONFLICT (symbol, interval, ts_ms)
            DO UPDATE SET
                open = EXCLUDED.open,
                high = EXCLUDED.high,
                low = EXCLUDED.low,
                close = EXCLUDED.close,
                volume = EXCLUDED.volume
            """
        )

        written = 0
        for chunk in _chunked(candles, self._chunk_size):
            payload = [
                {
                    "symbol": candle.symbol,
                    "interval": str(candle.timeframe),
                    "ts_ms": candle.ts_ms,
                    "open": candle.open,
                    "high": candle.high,
                    "low": candle.low,
                    "close": candle.close,
                    "volume": candle.volume,
                }
                for candle in chunk
            ]
            with self._transaction() as conn:
                conn.execute(stmt, payload)
            written += len(payload)

        logger.debug("Upserted %d candles in chunks of %d", written, self._chunk_size)
        return written

    def get_candles(
        self,
        *,
        symbol: str,
        timeframe: str,
        start_ms: int,
        end_ms: int,
    ) -> Sequence[Candle]:
        _, text = self._require_sqlalchemy()

        stmt = text(
            """
            SELECT
                symbol, interval, ts_ms,
                open, high, low, close,
                volume
            FROM candles
            WHERE symbol = :symbol
              AND interval = :interval
              AND ts_ms >= :start_ms
              AND ts_ms <= :end_ms
            ORDER BY ts_ms ASC
            """
        )

        with self._transaction() as conn:
            rows = conn.execute(
                stmt,
                {
                    "symbol": symbol,
                    "interval": timeframe,
                    "start_ms": start_ms,
                    "end_ms": end_ms,
                },
            ).fetchall()

        return [
            Candle(
                symbol=row[0],
                timeframe=row[1],
                ts_ms=int(row[2]),
                open=row[3],
                high=row[4],
                low=row[5],
                close=row[6],
                volume=row[7],
            )
            for row in rows
        ]

    # ---- SymbolStore

    def upsert_symbols(self, *, symbols: Sequence[Symbol]) -> int:
        if not symbols:
            return 0

        _, text = self._require_sqlalchemy()

        payload = [
            {
                "symbol": s.symbol,
                "name": s.name or s.symbol,
                "sz_decimals": s.sz_decimals,
                "max_leverage": s.max_leverage,
                "only_isolated": s.only_isolated,
                "is_delisted": s.is_delisted,
            }
            for s in symbols
        ]

        stmt = text(
            """
            INSERT INTO pairs (
                symbol, name,
                sz_decimals, max_leverage,
                only_isolated, is_delisted,
                updated_at
            )
            VALUES (
                :symbol, :name,
                :sz_decimals, :max_leverage,
                :only_isolated, :is_delisted,
                NOW()
            )
            ON CONFLICT (symbol)
            DO UPDATE SET
                name = EXCLUDED.name,
                sz_decimals = COALESCE(EXCLUDED.sz_decimals, pairs.sz_decimals),
                max_leverage = COALESCE(EXCLUDED.max_leverage, pairs.max_leverage),
                only_isolated = COALESCE(EXCLUDED.only_isolated, pairs.only_isolated),
                is_delisted = COALESCE(EXCLUDED.is_delisted, pairs.is_delisted),
                updated_at = NOW()
            """
        )

        with self._transaction() as conn:
            conn.execute(stmt, payload)

        return len(payload)

    def get_symbols(self) -> Sequence[Symbol]:
        _, text = self._require_sqlalchemy()

        stmt = text(
            """
            SELECT
                symbol, name,
                sz_decimals, max_leverage,
                only_isolated, is_delisted,
                updated_at
            FROM pairs
            ORDER BY symbol
            """
        )

        with self._transaction() as conn:
            rows = conn.execute(stmt).fetchall()

        return [
            Symbol(
                symbol=row[0],
                name=row[1],
                sz_decimals=row[2],
                max_leverage=row[3],
                only_isolated=row[4],
                is_delisted=row[5],
                updated_at=row[6],
            )
            for row in rows
        ]

    # ---- SyncStateStore

    def get_sync_state(self, *, key: str) -> Optional[str]:
        _, text = self._require_sqlalchemy()

        stmt = text("SELECT value FROM sync_state WHERE key = :key")

        with self._transaction() as conn:
            row = conn.execute(stmt, {"key": key}).fetchone()

        return None if row is None else row[0]

    def set_sync_state(self, *, key: str, value: str) -> None:
        _, text = self._require_sqlalchemy()

        stmt = text(
            """
            INSERT INTO sync_state (key, value, updated_at)
            VALUES (:key, :value, NOW())
            ON CONFLICT (key)
            DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
            """
        )

        with self._transaction() as conn:
            conn.execute(stmt, {"key": key, "value": str(value)})
