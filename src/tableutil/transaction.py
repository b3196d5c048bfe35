from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Literal, Protocol

from botocore.exceptions import ClientError

from .aws_errors import map_transaction_error as _map_transaction_error
from .errors import (
    EmptyTransactionError,
    TransactionCapacityError,
    TransactionCommittedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_TRANSACTION_ITEMS = 25


def _snapshot(params: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(params)))


@dataclass(frozen=True)
class _Pending:
    action: ClassVar[str]
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", _snapshot(self.params))

    def to_transact_item(self) -> dict[str, Any]:
        return {self.action: copy.deepcopy(dict(self.params))}


@dataclass(frozen=True)
class PendingPut(_Pending):
    action: ClassVar[Literal["Put"]] = "Put"


@dataclass(frozen=True)
class PendingUpdate(_Pending):
    action: ClassVar[Literal["Update"]] = "Update"


@dataclass(frozen=True)
class PendingDelete(_Pending):
    action: ClassVar[Literal["Delete"]] = "Delete"


type PendingOperation = PendingPut | PendingUpdate | PendingDelete


class HasClient(Protocol):
    @property
    def client(self) -> Any: ...


def _checked(operations: Iterable[Any]) -> list[PendingOperation]:
    out: list[PendingOperation] = []
    for op in operations:
        if not isinstance(op, (PendingPut, PendingUpdate, PendingDelete)):
            raise ValidationError(f"unsupported transaction action: {type(op).__name__}")
        out.append(op)
    return out


class Transaction:
    """An ordered batch of pending writes committed with one TransactWriteItems call.

    Build it with `Transaction.begin(accessor, *ops)` and/or `add(*ops)`, then
    `commit()`. DynamoDB applies all operations or none of them. A transaction
    is owned by one caller at a time and cannot be reused after a successful
    commit.
    """

    def __init__(self, accessor: HasClient) -> None:
        self._accessor = accessor
        self._pending: list[PendingOperation] = []
        self._committed = False

    @classmethod
    def begin(cls, accessor: HasClient, *operations: PendingOperation) -> Transaction:
        if len(operations) > MAX_TRANSACTION_ITEMS:
            raise TransactionCapacityError(
                message=(
                    "cannot begin transaction: number of operations must be "
                    f"<= {MAX_TRANSACTION_ITEMS} (got {len(operations)})"
                ),
                size=len(operations),
                limit=MAX_TRANSACTION_ITEMS,
            )
        tx = cls(accessor)
        tx._pending.extend(_checked(operations))
        return tx

    @property
    def operations(self) -> tuple[PendingOperation, ...]:
        return tuple(self._pending)

    @property
    def committed(self) -> bool:
        return self._committed

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, *operations: PendingOperation) -> Transaction:
        self._ensure_open()
        checked = _checked(operations)
        size = len(self._pending) + len(checked)
        if size > MAX_TRANSACTION_ITEMS:
            raise TransactionCapacityError(
                message=(
                    "cannot add operations: number of operations must be "
                    f"<= {MAX_TRANSACTION_ITEMS} (would be {size})"
                ),
                size=size,
                limit=MAX_TRANSACTION_ITEMS,
            )
        self._pending.extend(checked)
        return self

    def commit(self) -> None:
        self._ensure_open()
        if not self._pending:
            raise EmptyTransactionError("cannot commit transaction: it has no operations")

        transact_items = [op.to_transact_item() for op in self._pending]
        logger.debug(
            "committing transaction with %d operations: %s",
            len(transact_items),
            [op.action for op in self._pending],
        )
        try:
            self._accessor.client.transact_write_items(TransactItems=transact_items)
        except ClientError as err:
            raise _map_transaction_error(err) from err

        self._committed = True

    def _ensure_open(self) -> None:
        if self._committed:
            raise TransactionCommittedError("transaction has already been committed")
