"""Key-value persistence for dashboard records.

The dashboard keeps each collection as a JSON array under a fixed key
(``transactions``, ``movies``, ``notes``, ``passwords``, ``stocks``), newest
first. :class:`DashboardStore` applies orchestrator results to those keys and
notifies an optional ``on_change`` callback; it never rewrites keys unrelated
to the record being stored.

Two stores implement :class:`KeyValueStore`: an in-memory dict and a
SQLAlchemy-backed table (SQLite by default).
"""

from __future__ import annotations

import datetime as dt
import json
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .api import ClassificationResult
from .logging_setup import get_logger
from .schema import (
    BalanceUpdateRecord,
    DashboardRecord,
    ExtractedTransaction,
    TransactionRecord,
    coerce_date,
    coerce_number,
)

STORAGE_KEYS: dict[str, str] = {
    "transaction": "transactions",
    "movie": "movies",
    "note": "notes",
    "password": "passwords",
    "investment": "stocks",
}

TRANSACTIONS_KEY = STORAGE_KEYS["transaction"]

_logger = get_logger("dashboard_ingest.storage")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


# ---------------------------------------------------------------------------
# SQLAlchemy-backed store
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class KvEntry(Base):
    __tablename__ = "dashboard_kv"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class SqlKeyValueStore:
    """Key-value store in a single ``dashboard_kv`` table."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self._engine: Engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False, class_=Session)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key: str) -> str | None:
        with self.session_scope() as session:
            return session.scalar(select(KvEntry.value).where(KvEntry.key == key))

    def set(self, key: str, value: str) -> None:
        with self.session_scope() as session:
            session.merge(KvEntry(key=key, value=value))

    def dispose(self) -> None:
        self._engine.dispose()


# ---------------------------------------------------------------------------
# Dashboard collections
# ---------------------------------------------------------------------------


def _load_array(kv: KeyValueStore, key: str) -> list[Any]:
    raw = kv.get(key)
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"stored value for {key!r} is not valid JSON") from e
    if not isinstance(decoded, list):
        raise ValueError(f"stored value for {key!r} is not a JSON array")
    return decoded


def _dump_array(items: Iterable[Any]) -> str:
    return json.dumps(list(items), ensure_ascii=False)


def _legacy_entry(item: Mapping[str, Any]) -> TransactionRecord:
    """Read a stored entry that no longer validates, as the dashboard sums it.

    Only ``type == "income"`` adds to the balance; anything else subtracts.
    Unreadable amounts count as 0 and unreadable dates as today.
    """

    today = dt.date.today()
    try:
        amount = coerce_number(item.get("amount")) or 0.0
    except ValueError:
        amount = 0.0
    is_income = str(item.get("type", "")).strip().casefold() == "income"
    signed = amount if is_income else -amount
    try:
        date = coerce_date(item.get("date"), today)
    except ValueError:
        date = today
    source = str(item.get("source") or "").strip() or "Unknown"
    entry_id = item.get("id")
    fields: dict[str, Any] = {
        "type": "income" if signed >= 0 else "expense",
        "source": source,
        "amount": abs(signed),
        "date": date,
    }
    if isinstance(entry_id, str) and entry_id:
        fields["id"] = entry_id
    return TransactionRecord(**fields)


class DashboardStore:
    """Applies classification and extraction results to a :class:`KeyValueStore`.

    ``on_change(key, record)`` is called once per stored record, after the
    write, so callers can refresh whatever view depends on ``key``.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        on_change: Callable[[str, DashboardRecord], None] | None = None,
    ) -> None:
        self._kv = kv
        self._on_change = on_change

    def _notify(self, key: str, records: Iterable[DashboardRecord]) -> None:
        if self._on_change is None:
            return
        for record in records:
            self._on_change(key, record)

    def load_ledger(self) -> list[TransactionRecord]:
        """Return stored transactions as records, for balance computation only.

        Entries that no longer validate are read leniently (see
        :func:`_legacy_entry`) so they still count towards the balance. The
        stored array itself is never rewritten from these records.
        """

        ledger: list[TransactionRecord] = []
        for pos, item in enumerate(_load_array(self._kv, TRANSACTIONS_KEY)):
            if not isinstance(item, Mapping):
                _logger.warning("storage:ledger_entry_skipped position=%d reason=not_an_object", pos)
                continue
            try:
                ledger.append(TransactionRecord.model_validate(item))
            except PydanticValidationError as e:
                _logger.info(
                    "storage:ledger_entry_legacy position=%d errors=%d", pos, e.error_count()
                )
                ledger.append(_legacy_entry(item))
        return ledger

    def load(self, key: str) -> list[Any]:
        return _load_array(self._kv, key)

    def _prepend(self, key: str, records: Sequence[DashboardRecord]) -> None:
        existing = _load_array(self._kv, key)
        self._kv.set(key, _dump_array([*(r.to_wire() for r in records), *existing]))

    def commit(self, result: ClassificationResult) -> list[DashboardRecord]:
        """Persist a classification result; return the records written.

        Only new records are written, prepended to the raw stored array:
        for reconciled results (forced balance, balance update) that is the
        correction followed by the transaction itself. A balance update stores
        nothing but its correction. Existing entries are left untouched.
        """

        record = result.record
        if result.ledger is not None:
            written: list[DashboardRecord] = []
            if result.correction is not None:
                written.append(result.correction)
            if isinstance(record, TransactionRecord):
                written.append(record.ledger_entry())
            if written:
                self._prepend(TRANSACTIONS_KEY, written)
            self._notify(TRANSACTIONS_KEY, written)
            return written

        if isinstance(record, BalanceUpdateRecord):
            return []
        key = STORAGE_KEYS[record.data_type]
        stored = record.ledger_entry() if isinstance(record, TransactionRecord) else record
        self._prepend(key, [stored])
        self._notify(key, [stored])
        return [stored]

    def add_transactions(self, rows: Iterable[ExtractedTransaction]) -> list[TransactionRecord]:
        """Store reviewed statement rows as transactions, in the given order."""

        records = [row.to_record() for row in rows]
        if not records:
            return []
        self._prepend(TRANSACTIONS_KEY, records)
        self._notify(TRANSACTIONS_KEY, records)
        return records


__all__ = [
    "STORAGE_KEYS",
    "DashboardStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SqlKeyValueStore",
]
