from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from tableutil import (
    MAX_TRANSACTION_ITEMS,
    ConditionFailedError,
    EmptyTransactionError,
    PendingDelete,
    PendingPut,
    PendingUpdate,
    Transaction,
    TransactionCanceledError,
    TransactionCapacityError,
    TransactionCommittedError,
    ValidationError,
)
from tableutil.mocks import FakeDynamoDBClient
from tableutil.table import TableAccessor
from tableutil.testkit import transaction_canceled


def _accessor(client: FakeDynamoDBClient) -> TableAccessor[dict[str, Any]]:
    return TableAccessor(client, table_name="people", partition_key_name="pk", sort_key_name="sk")


def _puts(table: TableAccessor[dict[str, Any]], n: int) -> list[PendingPut]:
    return [table.transactional_put({"pk": "A", "sk": str(i)}) for i in range(n)]


def test_producers_build_pending_operations() -> None:
    table = _accessor(FakeDynamoDBClient())

    put = table.transactional_put({"pk": "A", "sk": "1"})
    assert put.action == "Put"
    assert put.params == {"TableName": "people", "Item": {"pk": {"S": "A"}, "sk": {"S": "1"}}}

    insert = table.transactional_put_if_not_exists({"pk": "A", "sk": "1"})
    assert insert.params["ConditionExpression"] == "attribute_not_exists(#cond_pk)"
    assert insert.params["ExpressionAttributeNames"] == {"#cond_pk": "pk"}

    replace = table.transactional_put_if_exists({"pk": "A", "sk": "1"})
    assert replace.params["ConditionExpression"] == "attribute_exists(#cond_pk)"

    update = table.transactional_update({"pk": "A", "sk": "1"}, {"extra": "!", "gone": None})
    assert isinstance(update, PendingUpdate)
    assert update.params["UpdateExpression"] == "SET #extra = :extra REMOVE #gone"
    assert update.params["ConditionExpression"] == "attribute_exists(#cond_pk)"
    assert "ReturnValues" not in update.params

    delete = table.transactional_delete({"pk": "A", "sk": "2"})
    assert isinstance(delete, PendingDelete)
    assert delete.params == {"TableName": "people", "Key": {"pk": {"S": "A"}, "sk": {"S": "2"}}}


def test_pending_params_are_an_immutable_snapshot() -> None:
    table = _accessor(FakeDynamoDBClient())
    params: dict[str, Any] = {"TableName": "people", "Key": {"pk": {"S": "A"}}}
    pending = PendingDelete(params)

    params["Key"]["pk"] = {"S": "B"}
    assert pending.params["Key"] == {"pk": {"S": "A"}}
    with pytest.raises(TypeError):
        pending.params["TableName"] = "other"  # type: ignore[index]

    item = table.transactional_put({"pk": "A", "sk": "1"}).to_transact_item()
    item["Put"]["TableName"] = "mutated"
    assert table.transactional_put({"pk": "A", "sk": "1"}).params["TableName"] == "people"


def test_commit_sends_operations_in_order() -> None:
    client = FakeDynamoDBClient()
    table = _accessor(client)

    def check(req: Mapping[str, Any]) -> None:
        items = req["TransactItems"]
        assert [next(iter(i)) for i in items] == ["Put", "Delete", "Update"]
        assert items[0]["Put"]["Item"]["sk"] == {"S": "1"}
        assert items[1]["Delete"]["Key"]["sk"] == {"S": "2"}

    client.expect("transact_write_items", check)

    tx = Transaction.begin(
        table,
        table.transactional_put_if_not_exists({"pk": "A", "sk": "1"}),
        table.transactional_delete({"pk": "A", "sk": "2"}),
    )
    tx.add(table.transactional_update({"pk": "A", "sk": "3"}, {"n": 1}))
    tx.commit()

    assert tx.committed
    client.assert_no_pending()


def test_begin_rejects_more_than_capacity() -> None:
    table = _accessor(FakeDynamoDBClient())
    assert len(Transaction.begin(table, *_puts(table, MAX_TRANSACTION_ITEMS))) == 25

    with pytest.raises(TransactionCapacityError) as exc_info:
        Transaction.begin(table, *_puts(table, MAX_TRANSACTION_ITEMS + 1))
    assert exc_info.value.size == 26
    assert exc_info.value.limit == 25


def test_add_rejects_overflow_without_mutating_the_queue() -> None:
    table = _accessor(FakeDynamoDBClient())
    tx = Transaction.begin(table, *_puts(table, 24))

    with pytest.raises(TransactionCapacityError):
        tx.add(*_puts(table, 2))
    assert len(tx) == 24

    tx.add(*_puts(table, 1))
    assert len(tx) == 25

    with pytest.raises(TransactionCapacityError):
        tx.add(*_puts(table, 1))
    assert len(tx) == 25


def test_add_rejects_foreign_objects() -> None:
    table = _accessor(FakeDynamoDBClient())
    with pytest.raises(ValidationError, match="unsupported transaction action"):
        Transaction(table).add({"Put": {}})  # type: ignore[arg-type]


def test_commit_of_empty_transaction_fails_before_any_call() -> None:
    client = FakeDynamoDBClient()
    with pytest.raises(EmptyTransactionError):
        Transaction.begin(_accessor(client)).commit()
    assert client.calls == []


def test_committed_transaction_is_inert() -> None:
    client = FakeDynamoDBClient()
    client.expect("transact_write_items")
    table = _accessor(client)

    tx = Transaction.begin(table, *_puts(table, 1))
    tx.commit()

    with pytest.raises(TransactionCommittedError):
        tx.commit()
    with pytest.raises(TransactionCommittedError):
        tx.add(*_puts(table, 1))


def test_condition_failure_cancels_commit_and_keeps_transaction_open() -> None:
    client = FakeDynamoDBClient()
    client.expect("transact_write_items", error=transaction_canceled("None", "ConditionalCheckFailed"))
    table = _accessor(client)

    tx = Transaction.begin(table, *_puts(table, 2))
    with pytest.raises(ConditionFailedError):
        tx.commit()
    assert not tx.committed
    assert len(tx) == 2


def test_other_cancellations_carry_reason_codes() -> None:
    client = FakeDynamoDBClient()
    client.expect("transact_write_items", error=transaction_canceled("TransactionConflict", "None"))
    table = _accessor(client)

    with pytest.raises(TransactionCanceledError) as exc_info:
        Transaction.begin(table, *_puts(table, 2)).commit()
    assert exc_info.value.reason_codes == ("TransactionConflict", "None")
