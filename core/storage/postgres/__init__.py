"""PostgreSQL storage for pairs, candles and sync state.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Schema lives in db/schema.sql (see `PostgresStores.ensure_schema`).
"""

from .config import PostgresConfig
from .stores import PostgresStores
