from unittest.mock import MagicMock

import pytest

from payfriends.db import Database
from payfriends.errors import ExpenseNotFound, StorageError


def snapshot(doc_id, data, exists=True):
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


def make_database():
    client = MagicMock()
    transactions = client.collection.return_value.document.return_value.collection.return_value
    return Database(client, "no groupcest"), transactions


def test_get_expense_reads_the_document():
    db, transactions = make_database()
    transactions.document.return_value.get.return_value = snapshot(
        "t1", {"user": "Alice", "amount": "9.00", "involved": ["Alice", "Bob", "Carol"]}
    )

    record = db.get_expense("t1")

    transactions.document.assert_called_with("t1")
    assert record.id == "t1"
    assert record.fronted_by == "Alice"
    assert record.pending == ["Bob", "Carol"]


def test_get_expense_missing_document_is_not_found():
    db, transactions = make_database()
    transactions.document.return_value.get.return_value = snapshot("t9", None, exists=False)

    with pytest.raises(ExpenseNotFound):
        db.get_expense("t9")


def test_get_expense_malformed_document_is_not_found(caplog):
    db, transactions = make_database()
    transactions.document.return_value.get.return_value = snapshot("t2", {"amount": "5.00"})

    with pytest.raises(ExpenseNotFound):
        db.get_expense("t2")
    assert "Malformed transaction t2" in caplog.text


def test_list_expenses_skips_malformed_documents():
    db, transactions = make_database()
    transactions.stream.return_value = [
        snapshot("t1", {"user": "Alice", "amount": "4.00", "involved": ["Bob"]}),
        snapshot("t2", {"amount": "5.00"}),
    ]

    records = db.list_expenses()

    assert [record.id for record in records] == ["t1"]


def test_list_expenses_wraps_client_failures():
    db, transactions = make_database()
    transactions.stream.side_effect = RuntimeError("deadline exceeded")

    with pytest.raises(StorageError):
        db.list_expenses()
