from __future__ import annotations

import logging
from typing import Sequence, TypeVar

from core.persistence.interfaces import SyncStateStore

logger = logging.getLogger(__name__)

DEFAULT_CURSOR_KEY = "sync_cursor"

T = TypeVar("T")


class SyncCursor:
    """Persisted offset into the ordered symbol registry.

    Reads and writes go straight to the state table; nothing is cached, since
    every invocation is a fresh process.
    """

    def __init__(self, store: SyncStateStore, *, key: str = DEFAULT_CURSOR_KEY) -> None:
        self._store = store
        self.key = key

    def read(self) -> int:
        raw = self._store.get_sync_state(key=self.key)
        if raw is None:
            return 0
        try:
            return int(str(raw).strip())
        except ValueError:
            logger.warning("Ignoring non-numeric %s value %r; starting from 0", self.key, raw)
            return 0

    def write(self, value: int) -> None:
        self._store.set_sync_state(key=self.key, value=str(int(value)))


def select_batch(symbols: Sequence[T], cursor: int, batch_size: int) -> tuple[list[T], int]:
    """Return this run's slice and the cursor the next run should start from.

    The slice is `symbols[cursor:cursor + batch_size]`. The next cursor is the
    end of the slice, or 0 once the slice reaches the end of the list. A
    cursor outside [0, len(symbols)) restarts the pass at 0.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    total = len(symbols)
    if total == 0:
        return [], 0
    if cursor < 0 or cursor >= total:
        cursor = 0

    batch = list(symbols[cursor : cursor + batch_size])
    next_cursor = cursor + len(batch)
    if next_cursor >= total:
        next_cursor = 0
    return batch, next_cursor
