"""Tests for the scheduler-facing sync trigger."""

from __future__ import annotations

from unittest.mock import Mock, patch

from core.config import SyncSettings
from core.market_data import sync_job
from core.market_data.sync_job import is_authorized, run_sync_job, trigger_sync
from core.types import Symbol, SyncRunSummary

SETTINGS = SyncSettings(database_url="postgresql://fake", cron_secret="s3cret", pairs_per_run=2)


def _row(ts: int) -> dict:
    return {"T": ts, "o": "1", "h": "1", "l": "1", "c": "1", "v": "1"}


def test_is_authorized_without_secret_accepts_anything() -> None:
    assert is_authorized(None, None)
    assert is_authorized("Bearer whatever", "")


def test_is_authorized_requires_exact_bearer_token() -> None:
    assert is_authorized("Bearer s3cret", "s3cret")
    assert not is_authorized(None, "s3cret")
    assert not is_authorized("s3cret", "s3cret")
    assert not is_authorized("Bearer wrong", "s3cret")


def test_trigger_rejects_bad_token_before_any_work(make_client, stores) -> None:
    client = make_client(universe=["BTC"])

    status, body = trigger_sync(authorization="Bearer nope", settings=SETTINGS, stores=stores, client=client)

    assert status == 401
    assert body == {"error": "Unauthorized"}
    assert client.universe_calls == 0
    assert stores.symbols == {}


def test_trigger_checks_secret_from_env_before_config() -> None:
    status, body = trigger_sync(authorization=None, env={"CRON_SECRET": "s3cret"})

    assert status == 401
    assert body == {"error": "Unauthorized"}


def test_trigger_reports_config_error_as_failed_result() -> None:
    status, body = trigger_sync(authorization=None, env={})

    assert status == 500
    assert body["ok"] is False
    assert "DATABASE_URL" in body["error"]
    assert body["pairsSynced"] == 0
    assert body["candlesInserted"] == 0


def test_trigger_runs_sync_and_returns_summary(make_client, stores) -> None:
    client = make_client(universe=["BTC", "ETH", "SOL"], default_rows=[_row(1_700_000_000_000)])

    status, body = trigger_sync(authorization="Bearer s3cret", settings=SETTINGS, stores=stores, client=client)

    assert status == 200
    assert body["ok"] is True
    assert body["error"] is None
    assert body["pairsSynced"] == 2
    assert body["pairsFetched"] == 3
    assert body["nextCursor"] == 2
    # 2 pairs x 9 timeframes, one point each.
    assert body["candlesInserted"] == 18


def test_trigger_returns_500_when_run_fails(make_client, stores) -> None:
    stores.upsert_symbols(symbols=[Symbol(symbol="BTC")])
    stores.upsert_candles = Mock(side_effect=RuntimeError("disk full"))
    client = make_client(default_rows=[_row(1)])

    status, body = trigger_sync(authorization="Bearer s3cret", settings=SETTINGS, stores=stores, client=client)

    assert status == 500
    assert body["ok"] is False
    assert body["error"] == "disk full"


def test_run_sync_job_builds_and_releases_owned_resources() -> None:
    mock_stores = Mock()
    mock_client = Mock()
    mock_engine = Mock()
    mock_engine.run.return_value = Mock(ok=True)

    with (
        patch.object(sync_job, "PostgresStores", return_value=mock_stores) as stores_cls,
        patch.object(sync_job, "HyperliquidClient", return_value=mock_client) as client_cls,
        patch.object(sync_job, "CandleSyncEngine", return_value=mock_engine) as engine_cls,
    ):
        result = run_sync_job(settings=SETTINGS, init_schema=True)

    assert result is mock_engine.run.return_value
    stores_cls.assert_called_once()
    client_cls.assert_called_once_with(testnet=False)
    engine_cls.assert_called_once_with(client=mock_client, stores=mock_stores, pairs_per_run=2)
    mock_stores.ensure_schema.assert_called_once()
    mock_client.close.assert_called_once()
    mock_stores.dispose.assert_called_once()


def test_run_sync_job_setup_failure_is_reported() -> None:
    with patch.object(sync_job, "PostgresStores", side_effect=RuntimeError("SQLAlchemy is required")):
        summary = run_sync_job(settings=SETTINGS)

    assert not summary.ok
    assert summary.error == "SQLAlchemy is required"


def test_trigger_applies_schema_to_stores_it_builds() -> None:
    mock_stores = Mock()
    mock_engine = Mock()
    mock_engine.run.return_value = SyncRunSummary()

    with (
        patch.object(sync_job, "PostgresStores", return_value=mock_stores),
        patch.object(sync_job, "HyperliquidClient", return_value=Mock()),
        patch.object(sync_job, "CandleSyncEngine", return_value=mock_engine),
    ):
        status, body = trigger_sync(env={"DATABASE_URL": "postgresql://x/y"})

    assert status == 200
    assert body["ok"] is True
    mock_stores.ensure_schema.assert_called_once()
    mock_stores.dispose.assert_called_once()


def test_trigger_leaves_schema_of_supplied_stores_alone(make_client) -> None:
    supplied = Mock()
    supplied.get_symbols.return_value = []

    trigger_sync(authorization="Bearer s3cret", settings=SETTINGS, stores=supplied, client=make_client())

    supplied.ensure_schema.assert_not_called()
