"""Core rate limit module."""

from core.ratelimit.gate import DEFAULT_MIN_INTERVAL_SECONDS, RateLimitGate

__all__ = ["DEFAULT_MIN_INTERVAL_SECONDS", "RateLimitGate"]
