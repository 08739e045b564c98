#!/usr/bin/env python3
"""Initialize the database schema.

Runs the SQL in db/schema.sql against the database pointed to by DATABASE_URL
(or POSTGRES_URL).

Usage:
  python -m db.init_db
"""

from __future__ import annotations

from typing import Iterable


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script into executable statements.

    Supports:
    - `--` line comments
    - quoted strings (single and double quotes)

    This is intentionally simple and designed for our schema.sql (no $$ quoting).
    """

    buf: list[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if not in_single and not in_double and ch == "-" and i + 1 < len(sql) and sql[i + 1] == "-":
            while i < len(sql) and sql[i] not in ("\n", "\r"):
                i += 1
            continue

        if ch == "'" and not in_double:
            # '' inside a single-quoted string is an escaped quote
            if in_single and i + 1 < len(sql) and sql[i + 1] == "'":
                buf.append("''")
                i += 2
                continue
            in_single = not in_single
            buf.append(ch)
            i += 1
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            i += 1
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf = []
            if stmt:
                yield stmt
            i += 1
            continue

        buf.append(ch)
        i += 1

    tail = "".join(buf).strip()
    if tail:
        yield tail


def main() -> int:
    from core.errors import ConfigError, StoreError
    from core.storage.postgres import PostgresConfig, PostgresStores

    try:
        stores = PostgresStores(config=PostgresConfig.from_env())
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        stores.ensure_schema()
    except StoreError as exc:
        raise SystemExit(f"Schema apply failed: {exc}") from exc
    finally:
        stores.dispose()

    print("Database schema applied")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
