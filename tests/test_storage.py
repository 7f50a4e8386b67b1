import datetime as dt
import json

import pytest

from dashboard_ingest.api import ClassificationResult
from dashboard_ingest.reconcile import CORRECTION_SOURCE, BalanceReconciler
from dashboard_ingest.schema import (
    BalanceUpdateRecord,
    ExtractedTransaction,
    TransactionRecord,
    validate_record,
)
from dashboard_ingest.storage import (
    STORAGE_KEYS,
    DashboardStore,
    InMemoryKeyValueStore,
    SqlKeyValueStore,
)

TODAY = dt.date(2024, 3, 1)


def _store(initial=None):
    kv = InMemoryKeyValueStore(initial)
    changes: list[tuple[str, object]] = []
    store = DashboardStore(kv, on_change=lambda key, rec: changes.append((key, rec)))
    return kv, store, changes


def test_storage_keys():
    assert STORAGE_KEYS == {
        "transaction": "transactions",
        "movie": "movies",
        "note": "notes",
        "password": "passwords",
        "investment": "stocks",
    }


def test_commit_prepends_to_the_kind_key_and_notifies():
    kv, store, changes = _store({"movies": json.dumps([{"title": "Old"}])})
    movie = validate_record("movie", {"title": "Heat", "status": "watched"})

    written = store.commit(ClassificationResult(record=movie, message="ok"))

    assert written == [movie]
    stored = json.loads(kv.get("movies"))
    assert [m["title"] for m in stored] == ["Heat", "Old"]
    assert changes == [("movies", movie)]
    assert kv.get("notes") is None


def test_investments_are_stored_under_stocks():
    kv, store, _ = _store()
    inv = validate_record("investment", {"type": "STOCK", "symbol": "AAPL", "quantity": 10, "buyPrice": 150})
    store.commit(ClassificationResult(record=inv))
    assert json.loads(kv.get("stocks"))[0]["symbol"] == "AAPL"


def test_forced_balance_commit_prepends_correction_and_transaction():
    kv, store, changes = _store()
    salary = TransactionRecord(type="income", source="Salary", amount=17000, forced_balance=23000, date=TODAY)
    outcome = BalanceReconciler(today=lambda: TODAY).apply_forced_balance([], salary)
    result = ClassificationResult(
        record=salary, message="ok", correction=outcome.correction, ledger=outcome.ledger
    )

    written = store.commit(result)

    stored = json.loads(kv.get("transactions"))
    assert [t["source"] for t in stored] == [CORRECTION_SOURCE, "Salary"]
    assert all("forcedBalance" not in t for t in stored)
    assert [w.source for w in written] == [CORRECTION_SOURCE, "Salary"]
    assert [key for key, _ in changes] == ["transactions", "transactions"]

    ledger = store.load_ledger()
    assert sum(tx.signed_amount for tx in ledger) == 23000.0


def test_balance_update_stores_only_its_correction():
    kv, store, changes = _store()
    update = BalanceUpdateRecord(balance=100)
    outcome = BalanceReconciler(today=lambda: TODAY).apply_balance_update([], update)
    store.commit(ClassificationResult(record=update, correction=outcome.correction, ledger=outcome.ledger))

    stored = json.loads(kv.get("transactions"))
    assert len(stored) == 1
    assert stored[0]["source"] == CORRECTION_SOURCE
    assert changes == [("transactions", outcome.correction)]


def test_unreconciled_balance_update_writes_nothing():
    kv, store, changes = _store()
    assert store.commit(ClassificationResult(record=BalanceUpdateRecord(balance=5))) == []
    assert kv.get("transactions") is None
    assert changes == []


def test_load_ledger_reads_entries_that_no_longer_validate():
    good = {"type": "income", "source": "A", "amount": 10, "date": "2024-01-01"}
    _, store, _ = _store({"transactions": json.dumps([good, {"bogus": 1}, "junk", {"source": "B", "amount": "7"}])})
    ledger = store.load_ledger()
    assert [tx.source for tx in ledger] == ["A", "Unknown", "B"]
    assert [tx.signed_amount for tx in ledger] == [10.0, 0.0, -7.0]


def test_non_array_value_is_rejected():
    _, store, _ = _store({"notes": json.dumps({"title": "x"})})
    with pytest.raises(ValueError):
        store.load("notes")
    _, store, _ = _store({"notes": "{not json"})
    with pytest.raises(ValueError):
        store.load("notes")


def test_add_transactions_keeps_review_order():
    kv, store, changes = _store(
        {"transactions": json.dumps([{"type": "income", "source": "Old", "amount": 1, "date": "2023-12-01"}])}
    )
    rows = [
        ExtractedTransaction.model_validate({"date": "2024-01-20", "source": "B", "amount": 2, "type": "income"}),
        ExtractedTransaction.model_validate({"date": "2024-01-05", "source": "A", "amount": 1, "type": "expense"}),
    ]
    records = store.add_transactions(rows)

    assert [r.source for r in records] == ["B", "A"]
    assert [t["source"] for t in json.loads(kv.get("transactions"))] == ["B", "A", "Old"]
    assert len(changes) == 2
    assert store.add_transactions([]) == []


def test_sql_store_round_trip(tmp_path):
    kv = SqlKeyValueStore(f"sqlite:///{(tmp_path / 'kv.db').as_posix()}")
    try:
        assert kv.get("notes") is None
        kv.set("notes", "[]")
        kv.set("notes", '[{"title": "x"}]')
        assert kv.get("notes") == '[{"title": "x"}]'

        store = DashboardStore(kv)
        note = validate_record("note", {"title": "Plants", "category": "Ideas"})
        store.commit(ClassificationResult(record=note))
        assert [n["title"] for n in store.load("notes")] == ["Plants", "x"]
    finally:
        kv.dispose()


def test_sql_store_requires_url():
    with pytest.raises(ValueError):
        SqlKeyValueStore("")


def test_reconciling_keeps_legacy_entries_verbatim():
    legacy = [{"source": "Legacy", "tags": ["upi"], "amount": 10}, {"source": "", "amount": 5}]
    kv, store, _ = _store({"transactions": json.dumps(legacy)})

    ledger = store.load_ledger()
    assert sum(tx.signed_amount for tx in ledger) == -15.0

    update = BalanceUpdateRecord(balance=1000)
    outcome = BalanceReconciler(today=lambda: TODAY).apply_balance_update(ledger, update)
    written = store.commit(
        ClassificationResult(record=update, correction=outcome.correction, ledger=outcome.ledger)
    )

    stored = json.loads(kv.get("transactions"))
    assert len(stored) == 3
    assert stored[1:] == legacy
    assert stored[0]["source"] == CORRECTION_SOURCE
    assert stored[0]["type"] == "income"
    assert stored[0]["amount"] == 1015.0
    assert written == [outcome.correction]
