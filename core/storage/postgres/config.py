from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from core.config import resolve_database_url


@dataclass(frozen=True)
class PostgresConfig:
    """Connection configuration.

    `database_url` should come from environment (DATABASE_URL or POSTGRES_URL).
    Do not log it.
    """

    database_url: str

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "PostgresConfig":
        return cls(database_url=resolve_database_url(env))
