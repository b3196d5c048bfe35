from __future__ import annotations

import logging
import os
import uuid
from typing import Any, TypedDict

from tableutil import ConditionFailedError, SortKeyCondition, Transaction, get_dynamodb_client, log_aws_call
from tableutil.table import TableAccessor


class Note(TypedDict, total=False):
    pk: str
    sk: str
    value: int
    tag: str


def main() -> None:
    logging.basicConfig(level=logging.DEBUG if os.environ.get("DEBUG") else logging.INFO)
    os.environ.setdefault("DYNAMODB_ENDPOINT", "http://localhost:8000")
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")

    client = get_dynamodb_client(metrics=log_aws_call)
    table_name = f"tableutil_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    def stamp(item: Any) -> Any:
        return {**item, "tag": "example"}

    notes: TableAccessor[Note] = TableAccessor(
        client,
        table_name=table_name,
        partition_key_name="pk",
        sort_key_name="sk",
        item_preprocessor=stamp,
    )
    try:
        for i in range(5):
            notes.put({"pk": "A", "sk": f"NOTE#{i}", "value": i})

        print("inserted again:", notes.put_if_not_exists({"pk": "A", "sk": "NOTE#0", "value": 99}))
        print("updated:", notes.update({"pk": "A", "sk": "NOTE#1"}, {"value": 10, "tag": None}))

        page = notes.query("A", sort=SortKeyCondition.begins_with("NOTE#"), limit=2)
        print("first page:", page.items, "cursor:", page.next_cursor)
        print("page 2:", notes.query_with_pagination("A", page_size=2, page_index=2))

        tx = Transaction.begin(notes, notes.transactional_put_if_not_exists({"pk": "B", "sk": "NOTE#0", "value": 0}))
        tx.add(notes.transactional_delete({"pk": "A", "sk": "NOTE#4"}))
        tx.commit()

        try:
            Transaction.begin(notes, notes.transactional_put_if_not_exists({"pk": "B", "sk": "NOTE#0"})).commit()
        except ConditionFailedError:
            print("second insert rejected")

        print("all:", notes.scan_all())
        print("deleted:", notes.delete_all())
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
