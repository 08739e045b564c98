"""Core modules for the Hyperliquid pair/candle sync service.

- market_data: exchange client, sync cursor and the incremental sync engine
- ratelimit: pacing gate shared by all calls of one client
- persistence: persistence boundary (interfaces)
- storage: PostgreSQL and in-memory implementations
"""
