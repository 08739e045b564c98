"""Error taxonomy for the pair/candle sync.

Scoped errors (`UpstreamError`, `RateLimitedError`) are handled per
(symbol, timeframe) pair inside the fetch loop. Run-level errors
(`ConfigError`, `StoreError`) end the run and are reported in the summary.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for sync errors."""


class ConfigError(SyncError):
    """Missing or malformed configuration (fatal, raised before any work)."""


class UpstreamError(SyncError):
    """Non-rate-limit failure talking to the exchange API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(UpstreamError):
    """Exchange rejected the call with HTTP 429."""

    def __init__(self, message: str = "Hyperliquid rate limit (429)"):
        super().__init__(message, status_code=429)


class StoreError(SyncError):
    """Persistence failure (fatal to the run, no rollback of committed chunks)."""
