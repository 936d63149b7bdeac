"""Database connection management and schema creation."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from sqlite3 import Connection

from beartype import beartype

from src.database.models import TABLE_INDEXES, TABLE_SCHEMAS
from src.utils.config import DB_PATH


@beartype
def get_connection(db_path: Path | str = DB_PATH) -> Connection:
    """Create and return a database connection."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


@beartype
def create_schema(conn: Connection) -> None:
    """Create tables and indexes on an open connection."""
    cursor = conn.cursor()

    for table_sql in TABLE_SCHEMAS:
        cursor.execute(table_sql)

    for index_sql in TABLE_INDEXES:
        cursor.execute(index_sql)

    conn.commit()
