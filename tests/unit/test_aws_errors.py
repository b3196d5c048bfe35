from __future__ import annotations

import pytest

from tableutil import (
    AwsError,
    ConditionFailedError,
    NotFoundError,
    ThrottledError,
    TransactionCanceledError,
    ValidationError,
)
from tableutil.aws_errors import map_client_error, map_transaction_error
from tableutil.testkit import client_error, transaction_canceled


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("ConditionalCheckFailedException", ConditionFailedError),
        ("ValidationException", ValidationError),
        ("ResourceNotFoundException", NotFoundError),
        ("ProvisionedThroughputExceededException", ThrottledError),
        ("ThrottlingException", ThrottledError),
        ("RequestLimitExceeded", ThrottledError),
        ("InternalServerError", AwsError),
    ],
)
def test_map_client_error(code: str, expected: type[Exception]) -> None:
    assert isinstance(map_client_error(client_error(code, "msg")), expected)


def test_map_client_error_keeps_code_and_message() -> None:
    err = map_client_error(client_error("ItemCollectionSizeLimitExceededException", "too big"))
    assert isinstance(err, AwsError)
    assert err.code == "ItemCollectionSizeLimitExceededException"
    assert err.message == "too big"

    unknown = map_client_error(client_error("", ""))
    assert isinstance(unknown, AwsError)
    assert unknown.code == "UnknownError"


def test_map_transaction_error() -> None:
    assert isinstance(map_transaction_error(transaction_canceled("ConditionalCheckFailed")), ConditionFailedError)

    canceled = map_transaction_error(transaction_canceled("None", "TransactionConflict"))
    assert isinstance(canceled, TransactionCanceledError)
    assert canceled.reason_codes == ("None", "TransactionConflict")

    assert isinstance(map_transaction_error(client_error("ValidationException", "bad")), ValidationError)


def test_map_transaction_error_ignores_message_text() -> None:
    err = client_error(
        "TransactionCanceledException",
        "Transaction cancelled [ConditionalCheckFailed]",
        operation="TransactWriteItems",
        cancellation_reasons=["TransactionConflict"],
    )
    mapped = map_transaction_error(err)
    assert isinstance(mapped, TransactionCanceledError)
    assert mapped.reason_codes == ("TransactionConflict",)
