"""Hyperliquid REST client: perp universe (meta) and candle snapshots.

Both calls go through `POST /info` and share one `RateLimitGate`, so every
request made by a client instance is spaced at least 1.2s apart.
Uses mainnet by default; pass `testnet=True` (HYPERLIQUID_TESTNET=1) for testnet.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from core.errors import RateLimitedError, UpstreamError
from core.ratelimit.gate import RateLimitGate
from core.types import Symbol

logger = logging.getLogger(__name__)

MAINNET_URL = "https://api.hyperliquid.xyz"
TESTNET_URL = "https://api.hyperliquid-testnet.xyz"

# Upstream returns at most this many candles per snapshot request.
MAX_CANDLES_PER_REQUEST = 5000


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def parse_universe(payload: Any) -> list[Symbol]:
    """Extract registry entries from a meta response.

    The payload is either a bare list or an object with a `universe` list.
    Entries are asset names or objects carrying `name`; anything without a
    usable name is dropped. Discovery order is preserved.
    """
    if isinstance(payload, list):
        universe = payload
    elif isinstance(payload, dict):
        universe = payload.get("universe") or []
    else:
        universe = []

    out: list[Symbol] = []
    for entry in universe:
        if isinstance(entry, str):
            if entry:
                out.append(Symbol(symbol=entry, name=entry))
            continue
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            continue
        out.append(
            Symbol(
                symbol=name,
                name=name,
                sz_decimals=_optional_int(entry.get("szDecimals")),
                max_leverage=_optional_int(entry.get("maxLeverage")),
                only_isolated=_optional_bool(entry.get("onlyIsolated")),
                is_delisted=_optional_bool(entry.get("isDelisted")),
            )
        )
    return out


class HyperliquidClient:
    """Rate-limited client for the Hyperliquid info endpoint."""

    DEFAULT_TIMEOUT = 20  # seconds

    def __init__(
        self,
        *,
        testnet: bool = False,
        base_url: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        gate: RateLimitGate | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url or (TESTNET_URL if testnet else MAINNET_URL)
        self.timeout = timeout
        self.gate = gate or RateLimitGate()
        self._session = session or requests.Session()
        self._session.headers.update({
            "Content-Type": "application/json",
            "User-Agent": "hl-candle-sync/1.0",
        })

    def _post_info(self, body: dict[str, Any], *, what: str) -> Any:
        self.gate.wait()
        try:
            resp = self._session.post(f"{self.base_url}/info", json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f"Hyperliquid {what} request failed: {exc}") from exc

        if resp.status_code == 429:
            raise RateLimitedError(f"Hyperliquid {what} rate limited (429)")
        if not 200 <= resp.status_code < 300:
            raise UpstreamError(f"Hyperliquid {what} failed: {resp.status_code}", status_code=resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Hyperliquid {what} returned invalid JSON") from exc

    def list_universe_assets(self) -> list[Symbol]:
        """Fetch all perp assets (with metadata) from `{"type": "meta"}`."""
        return parse_universe(self._post_info({"type": "meta"}, what="meta"))

    def list_universe(self) -> list[str]:
        """Fetch all perp symbol names, e.g. ['BTC', 'ETH', ...]."""
        return [s.symbol for s in self.list_universe_assets()]

    def fetch_candle_snapshot(
        self,
        *,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> list[dict[str, Any]]:
        """Fetch raw candles for one coin/interval window.

        Rows look like {"t": open_ms, "T": close_ms, "o", "h", "l", "c", "v", ...}
        with numeric values encoded as strings. A non-list payload yields [].

        Raises:
            RateLimitedError: on HTTP 429
            UpstreamError: on any other non-2xx status or transport failure
        """
        body = {
            "type": "candleSnapshot",
            "req": {
                "coin": symbol,
                "interval": interval,
                "startTime": int(start_ms),
                "endTime": int(end_ms),
            },
        }
        data = self._post_info(body, what="candles")
        if not isinstance(data, list):
            logger.debug("Unexpected candleSnapshot payload type for %s %s: %s", symbol, interval, type(data))
            return []
        return data

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
