from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator

from .connection import DBConfig, DatabaseConnection

_LINE_COMMENT = re.compile(r"(?m)^\s*--.*$")
_DB_STATEMENTS = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b.*?;\s*$")


def iter_schema_statements(sql: str) -> Iterator[str]:
    """Split schema.sql into statements.

    The schema holds DDL only (no string literals containing ';'), so a plain
    split after dropping comments and database-level statements is enough.
    """
    sql = _DB_STATEMENTS.sub("", _LINE_COMMENT.sub("", sql))
    for stmt in sql.split(";"):
        stmt = stmt.strip()
        if stmt:
            yield stmt


def ensure_database_exists(conn_factory: DatabaseConnection) -> None:
    conn = conn_factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{conn_factory.config.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def _apply_sql_file(conn_factory: DatabaseConnection, path: str | Path) -> None:
    sql = Path(path).read_text(encoding="utf-8")
    conn = conn_factory.connect()
    try:
        cur = conn.cursor()
        for stmt in iter_schema_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    conn_factory = DatabaseConnection(DBConfig.from_dict(db_config))
    ensure_database_exists(conn_factory)
    _apply_sql_file(conn_factory, schema_path)


def list_tables(db_config: dict) -> list[str]:
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
