"""
Repository pattern for data access.

One EventStore serves both record kinds: columns are derived from the
record dataclass, so seller and buyer events share every query.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import fields
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

import structlog

from x402_ledger.core.clock import from_storage, to_storage
from x402_ledger.core.errors import NotFoundError, StoreUnavailableError, ValidationError
from x402_ledger.core.filters import QueryFilter

from .db import DEFAULT_DB_PATH, get_connection
from .models import EventRecord

log = structlog.get_logger()

INTEGER_COLUMNS = {"id", "amount_atomic", "latency_ms"}


class EventStore:
    """Append-only SQLite store for one record kind.

    Records are inserted and read, never updated. ``delete_all`` exists only
    for administrative resets of demo and test data.
    """

    def __init__(self, record_type: Type[EventRecord], db_path: str = DEFAULT_DB_PATH):
        """Initialize the store.

        Args:
            record_type: UsageEvent or SpendingEvent
            db_path: Path to SQLite database file
        """
        self.record_type = record_type
        self.db_path = db_path
        self.table = record_type.TABLE
        self.columns = [f.name for f in fields(record_type)]
        self._insert_columns = [c for c in self.columns if c != "id"]

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, translating SQLite failures to StoreUnavailableError."""
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            log.error("store_unavailable", table=self.table, error=str(e))
            raise StoreUnavailableError(f"cannot open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            log.error("store_unavailable", table=self.table, error=str(e))
            raise StoreUnavailableError(f"{self.table}: {e}") from e
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create the event table and its time index if they don't exist."""
        column_defs = []
        for name in self.columns:
            if name == "id":
                column_defs.append("id INTEGER PRIMARY KEY AUTOINCREMENT")
            elif name in ("status", "created_at"):
                column_defs.append(f"{name} TEXT NOT NULL")
            elif name in INTEGER_COLUMNS:
                column_defs.append(f"{name} INTEGER")
            else:
                column_defs.append(f"{name} TEXT")

        with self._connect() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} ({', '.join(column_defs)})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_created_at "
                f"ON {self.table} (created_at)"
            )
            conn.commit()

    def insert(self, record: EventRecord) -> int:
        """Append a record and return the id assigned to it.

        Raises:
            ValidationError: If the record already carries an id
            StoreUnavailableError: If the write fails
        """
        if record.id is not None:
            raise ValidationError("id", "is assigned by the store and must be empty")

        row = self._to_row(record)
        placeholders = ", ".join("?" for _ in self._insert_columns)
        with self._connect() as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.table} ({', '.join(self._insert_columns)}) "
                f"VALUES ({placeholders})",
                [row[c] for c in self._insert_columns],
            )
            conn.commit()
            return cursor.lastrowid

    def get(self, event_id: int) -> EventRecord:
        """Point lookup by id.

        Raises:
            NotFoundError: If no record has this id
        """
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM {self.table} WHERE id = ?", (event_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(event_id, self.record_type.KIND)
        return self._from_row(row)

    def scan(
        self,
        query: QueryFilter,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[EventRecord]:
        """Return records matching ``query``, newest first.

        Args:
            query: Filter criteria; its pagination fields are ignored
            limit: Optional maximum number of records
            offset: Number of records to skip

        Returns:
            Matching records ordered by created_at descending
        """
        where, params = self._where(query)
        sql = f"SELECT * FROM {self.table} WHERE {where} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._from_row(row) for row in rows]

    def count(self, query: QueryFilter) -> int:
        """Number of records matching ``query``."""
        where, params = self._where(query)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM {self.table} WHERE {where}", params
            ).fetchone()
        return row[0]

    def latest(self, scope_value: Optional[str], limit: int) -> List[EventRecord]:
        """Most recent records, optionally restricted to one scope value.

        The scope column is the record kind's SCOPE_FIELD (tenant for seller
        events, buyer for spending events).
        """
        sql = f"SELECT * FROM {self.table}"
        params: List[Any] = []
        if scope_value is not None:
            sql += f" WHERE {self.record_type.SCOPE_FIELD} = ?"
            params.append(scope_value)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._from_row(row) for row in rows]

    def delete_all(self) -> int:
        """Remove every record. Returns the number of rows removed."""
        with self._connect() as conn:
            cursor = conn.execute(f"DELETE FROM {self.table}")
            conn.commit()
            return cursor.rowcount

    def _where(self, query: QueryFilter) -> Tuple[str, List[Any]]:
        """Build the WHERE clause for a filter."""
        conditions = ["created_at >= ?", "created_at <= ?"]
        params: List[Any] = [to_storage(query.start), to_storage(query.end)]

        for name in ("tenant_id", "actor_id", "service_id"):
            value = getattr(query, name)
            if value is None:
                continue
            if name not in self.columns:
                raise ValidationError(name, f"not available for {self.record_type.KIND} events")
            conditions.append(f"{name} = ?")
            params.append(value)

        if query.status is not None:
            if not isinstance(query.status, self.record_type.STATUS_TYPE):
                raise ValidationError(
                    "status",
                    f"'{query.status}' is not a {self.record_type.STATUS_TYPE.__name__}"
                )
            conditions.append("status = ?")
            params.append(query.status.value)

        if query.category is not None:
            if "category" not in self.columns:
                raise ValidationError("category", f"not available for {self.record_type.KIND} events")
            conditions.append("category = ?")
            params.append(query.category.value)

        return " AND ".join(conditions), params

    def _to_row(self, record: EventRecord) -> Dict[str, Any]:
        row = {}
        for name in self.columns:
            value = getattr(record, name)
            if name in record.DATETIME_FIELDS:
                value = to_storage(value)
            elif name in record.ENUM_FIELDS and value is not None:
                value = value.value
            row[name] = value
        return row

    def _from_row(self, row: sqlite3.Row) -> EventRecord:
        values = {}
        for name in self.columns:
            value = row[name]
            if name in self.record_type.DATETIME_FIELDS:
                value = from_storage(value)
            elif name in self.record_type.ENUM_FIELDS and value is not None:
                value = self.record_type.ENUM_FIELDS[name](value)
            values[name] = value
        return self.record_type(**values)
