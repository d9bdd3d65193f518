"""
records/store.py -- SQLAlchemy Core persistence for users, procurements and sales.

Uses SQLAlchemy Core (not ORM): records travel as plain dicts keyed by column
name, and the auth layer maps user rows into its own dataclasses. Swapping
SQLite for PostgreSQL is a connection string change.

Pattern: generic Repository. One RecordStore serves all three record kinds
through the same five operations -- create, find_by_id, find_all, update,
delete -- keyed by RecordKind. Route handlers never touch SQL directly.

Security:
  All queries use bound parameters. Column names used in filters and writes
  are checked against the table definition before any SQL is built.

Integrity:
  users.username and users.email are UNIQUE. A violation surfaces as
  sqlalchemy.exc.IntegrityError; callers translate it (e.g. DuplicateIdentity).

Usage:
    store = RecordStore()                               # SQLite default
    store = RecordStore("postgresql://user:pw@host/db") # PostgreSQL
    record = store.create(RecordKind.PROCUREMENT, {...})
    store.find_all(RecordKind.SALE, {"sale_type": "Cash"})
    store.close()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, create_engine, event, text
from sqlalchemy.engine import Engine

logger = logging.getLogger("kgl.records")

_DEFAULT_DB_URL = "sqlite:///kgl_groceries.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(100), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(100), nullable=False),
    Column("role", String(20), nullable=False),
    Column("contact", String(20)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_procurements = Table(
    "procurements",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("produce_name", String(100), nullable=False),
    Column("produce_type", String(100), nullable=False),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("time", String(5), nullable=False),  # HH:MM
    Column("tonnage", Float, nullable=False),  # kg
    Column("cost", Float, nullable=False),  # UGX
    Column("dealer_name", String(100), nullable=False),
    Column("branch", String(20), nullable=False),
    Column("contact", String(20), nullable=False),
    Column("selling_price", Float, nullable=False),  # UGX
    Column("recorded_by", Integer, nullable=False),  # users.id of the Manager
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Cash and credit sales share one table; columns that do not apply to a
# sale_type stay NULL.
_sales = Table(
    "sales",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sale_type", String(10), nullable=False),  # "Cash" | "Credit"
    Column("produce_name", String(100), nullable=False),
    Column("produce_type", String(100)),
    Column("tonnage", Float, nullable=False),
    Column("amount_paid", Float),
    Column("amount_due", Float),
    Column("buyer_name", String(100), nullable=False),
    Column("nin", String(14)),
    Column("location", String(100)),
    Column("contact", String(20)),
    Column("sales_agent_name", String(100), nullable=False),
    Column("sales_agent_id", Integer, nullable=False),  # users.id of the Sales Agent
    Column("date", String(10)),
    Column("time", String(5)),
    Column("due_date", String(10)),
    Column("dispatch_date", String(10)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


class RecordKind(str, Enum):
    USER = "user"
    PROCUREMENT = "procurement"
    SALE = "sale"


_TABLES: dict[RecordKind, Table] = {
    RecordKind.USER: _users,
    RecordKind.PROCUREMENT: _procurements,
    RecordKind.SALE: _sales,
}

# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_columns(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase wire names to snake_case column names (dueDate -> due_date)."""
    return {_CAMEL_BOUNDARY.sub("_", name).lower(): value for name, value in fields.items()}


def _check_columns(table: Table, names) -> None:
    unknown = set(names) - set(table.c.keys())
    if unknown:
        raise ValueError(f"Unknown {table.name} columns: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    """Repository for every persisted record kind."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create(self, kind: RecordKind, fields: Mapping[str, Any]) -> dict:
        """Insert a record and return it as stored (id and timestamps included).

        Raises sqlalchemy.exc.IntegrityError on a UNIQUE violation.
        """
        table = _TABLES[kind]
        _check_columns(table, fields)
        now = _now_iso()
        values = {**fields, "created_at": now, "updated_at": now}
        with self.engine.connect() as conn:
            result = conn.execute(table.insert().values(**values))
            conn.commit()
            record_id = result.inserted_primary_key[0]
        logger.debug("Created %s id=%s", kind.value, record_id)
        return self.find_by_id(kind, record_id)

    def find_by_id(self, kind: RecordKind, record_id: int) -> dict | None:
        """Return the record with this id, or None."""
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == record_id)).fetchone()
        return dict(row._mapping) if row is not None else None

    def find_all(self, kind: RecordKind, filters: Mapping[str, Any] | None = None) -> list[dict]:
        """Return records matching every filter (exact match), ordered by id."""
        table = _TABLES[kind]
        stmt = table.select()
        if filters:
            _check_columns(table, filters)
            for name, value in filters.items():
                stmt = stmt.where(table.c[name] == value)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(table.c.id)).fetchall()
        return [dict(r._mapping) for r in rows]

    def update(self, kind: RecordKind, record_id: int, fields: Mapping[str, Any]) -> dict | None:
        """Apply fields to a record. Returns the updated record, or None if id is unknown.

        Raises sqlalchemy.exc.IntegrityError on a UNIQUE violation.
        """
        table = _TABLES[kind]
        _check_columns(table, fields)
        if "id" in fields or "created_at" in fields:
            raise ValueError("id and created_at are immutable")
        with self.engine.connect() as conn:
            result = conn.execute(
                table.update().where(table.c.id == record_id).values(**fields, updated_at=_now_iso())
            )
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.find_by_id(kind, record_id)

    def delete(self, kind: RecordKind, record_id: int) -> dict | None:
        """Delete a record. Returns the deleted record, or None if id is unknown."""
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().where(table.c.id == record_id)).fetchone()
            if row is None:
                return None
            conn.execute(table.delete().where(table.c.id == record_id))
            conn.commit()
        logger.debug("Deleted %s id=%s", kind.value, record_id)
        return dict(row._mapping)

    def has_records(self, kind: RecordKind) -> bool:
        """Return True if at least one record of this kind exists."""
        table = _TABLES[kind]
        with self.engine.connect() as conn:
            row = conn.execute(table.select().limit(1)).fetchone()
        return row is not None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
