"""Storage implementations of the persistence interfaces.

- postgres: PostgreSQL via SQLAlchemy (production)
- memory_stores: dict-backed, same keying rules (tests)
"""

from .memory_stores import InMemoryStores
from .postgres import PostgresConfig, PostgresStores
