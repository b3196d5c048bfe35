from __future__ import annotations

from collections.abc import Sequence

from botocore.exceptions import ClientError

from .mocks import ABSENT, ANY, FakeDynamoDBClient


def client_error(
    code: str,
    message: str = "",
    *,
    operation: str = "PutItem",
    cancellation_reasons: Sequence[str] | None = None,
) -> ClientError:
    """Build a botocore `ClientError` shaped like a DynamoDB error response."""
    response: dict = {"Error": {"Code": code, "Message": message}}
    if cancellation_reasons is not None:
        response["CancellationReasons"] = [{"Code": rc} for rc in cancellation_reasons]
    return ClientError(response, operation)  # type: ignore[arg-type]


def condition_failed(operation: str = "PutItem") -> ClientError:
    return client_error(
        "ConditionalCheckFailedException",
        "The conditional request failed",
        operation=operation,
    )


def transaction_canceled(*reason_codes: str) -> ClientError:
    return client_error(
        "TransactionCanceledException",
        f"Transaction cancelled, please refer cancellation reasons for specific reasons [{', '.join(reason_codes)}]",
        operation="TransactWriteItems",
        cancellation_reasons=reason_codes,
    )


__all__ = [
    "ABSENT",
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "condition_failed",
    "transaction_canceled",
]
