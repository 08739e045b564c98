"""Persistence boundary for the sync service.

These protocols are implemented by `core.storage.PostgresStores` and by the
in-memory `core.storage.InMemoryStores`.
"""

from .interfaces import (
    CandleStore,
    SymbolStore,
    SyncStateStore,
    SyncStores,
)
