from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .errors import (
    AwsError,
    ConditionFailedError,
    EmptyTransactionError,
    NotFoundError,
    TableUtilError,
    ThrottledError,
    TransactionCanceledError,
    TransactionCapacityError,
    TransactionCommittedError,
    UpdateResultEmptyError,
    ValidationError,
)
from .marshal import ItemMarshaller, MarshalOptions
from .pagination import Page, PaginationDriver
from .query import SortKeyCondition
from .transaction import (
    MAX_TRANSACTION_ITEMS,
    PendingDelete,
    PendingOperation,
    PendingPut,
    PendingUpdate,
    Transaction,
)
from .update_clause import UpdateClause, build_update_clause

if TYPE_CHECKING:
    from .runtime import (
        AwsCallMetric,
        create_boto3_config,
        get_dynamodb_client,
        instrument_boto3_client,
        is_lambda_environment,
        log_aws_call,
    )
    from .table import TableAccessor


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "TableAccessor":
        from .table import TableAccessor

        return TableAccessor
    if name in {
        "AwsCallMetric",
        "create_boto3_config",
        "get_dynamodb_client",
        "instrument_boto3_client",
        "is_lambda_environment",
        "log_aws_call",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AwsCallMetric",
    "AwsError",
    "ConditionFailedError",
    "EmptyTransactionError",
    "ItemMarshaller",
    "MAX_TRANSACTION_ITEMS",
    "MarshalOptions",
    "NotFoundError",
    "Page",
    "PaginationDriver",
    "PendingDelete",
    "PendingOperation",
    "PendingPut",
    "PendingUpdate",
    "SortKeyCondition",
    "TableAccessor",
    "TableUtilError",
    "ThrottledError",
    "Transaction",
    "TransactionCanceledError",
    "TransactionCapacityError",
    "TransactionCommittedError",
    "UpdateClause",
    "UpdateResultEmptyError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "build_update_clause",
    "create_boto3_config",
    "get_dynamodb_client",
    "instrument_boto3_client",
    "is_lambda_environment",
    "log_aws_call",
]
