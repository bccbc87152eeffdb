"""
Database connection management.

Provides SQLite connection for event persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "x402-ledger.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite connection returning rows by column name.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with ``sqlite3.Row`` rows
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn
