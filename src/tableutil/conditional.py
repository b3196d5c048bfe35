from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .errors import ConditionFailedError, UpdateResultEmptyError, ValidationError
from .marshal import ItemMarshaller
from .update_clause import build_update_clause

logger = logging.getLogger(__name__)

KEY_NAME_REF = "#cond_pk"


def item_exists_condition(name_ref: str = KEY_NAME_REF) -> str:
    return f"attribute_exists({name_ref})"


def item_not_exists_condition(name_ref: str = KEY_NAME_REF) -> str:
    return f"attribute_not_exists({name_ref})"


def guard_name_ref(taken: Mapping[str, str], key_name: str) -> str:
    """Pick a placeholder for `key_name` that no entry of `taken` maps elsewhere."""
    ref = KEY_NAME_REF
    n = 0
    while taken.get(ref, key_name) != key_name:
        n += 1
        ref = f"{KEY_NAME_REF}{n}"
    return ref


def and_condition(base: str, extra: str | None) -> str:
    if not extra or not extra.strip():
        return base
    return f"{base} AND ({extra})"


class ConditionalWriteExecutor:
    """Single-item writes guarded by item-existence preconditions.

    The put variants report a failed precondition as `False`; `update` raises
    `ConditionFailedError` instead, since updating implies the item exists.
    """

    def __init__(
        self,
        get_client: Callable[[], Any],
        *,
        table_name: str,
        partition_key_name: str,
        marshaller: ItemMarshaller,
    ) -> None:
        self._get_client = get_client
        self._table_name = table_name
        self._partition_key_name = partition_key_name
        self._marshaller = marshaller

    def put_request(
        self,
        item: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        if item.get(self._partition_key_name) is None:
            raise ValidationError(f"item is missing partition key: {self._partition_key_name}")

        req: dict[str, Any] = {"TableName": self._table_name, "Item": self._marshaller.to_item(item)}
        if condition_expression:
            req["ConditionExpression"] = condition_expression
        if expression_attribute_names:
            req["ExpressionAttributeNames"] = dict(expression_attribute_names)
        if expression_attribute_values:
            req["ExpressionAttributeValues"] = self._marshaller.serialize_values(expression_attribute_values)
        return req

    def guarded_put_request(self, item: Mapping[str, Any], *, must_exist: bool) -> dict[str, Any]:
        return self.put_request(
            item,
            condition_expression=item_exists_condition() if must_exist else item_not_exists_condition(),
            expression_attribute_names={KEY_NAME_REF: self._partition_key_name},
        )

    def update_request(
        self,
        key: Mapping[str, Any],
        attributes: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any]:
        clause = build_update_clause(attributes)
        if clause.is_empty:
            raise ValidationError("no updates provided")

        # Caller names may reuse the guard placeholder but never rebind it.
        pk = self._partition_key_name
        guard_ref = guard_name_ref(clause.attribute_names, pk)
        caller_names = dict(expression_attribute_names or {})
        if caller_names.get(guard_ref, pk) != pk:
            raise ValidationError(f"expression attribute name collision: {guard_ref}")
        names, values = clause.merged({guard_ref: pk, **caller_names}, expression_attribute_values)

        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._marshaller.to_item(key),
            "UpdateExpression": clause.expression,
            "ConditionExpression": and_condition(item_exists_condition(guard_ref), condition_expression),
            "ExpressionAttributeNames": names,
        }
        if values:
            req["ExpressionAttributeValues"] = self._marshaller.serialize_values(values)
        if return_values is not None:
            req["ReturnValues"] = return_values
        return req

    def put(self, request: Mapping[str, Any]) -> None:
        try:
            self._get_client().put_item(**request)
        except ClientError as err:
            raise _map_client_error(err) from err

    def put_if_not_exists(self, item: Mapping[str, Any]) -> bool:
        return self._guarded_put(self.guarded_put_request(item, must_exist=False))

    def put_if_exists(self, item: Mapping[str, Any]) -> bool:
        return self._guarded_put(self.guarded_put_request(item, must_exist=True))

    def update(
        self,
        key: Mapping[str, Any],
        attributes: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        req = self.update_request(
            key,
            attributes,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            return_values="ALL_NEW",
        )

        try:
            resp = self._get_client().update_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

        attrs = resp.get("Attributes")
        if not attrs:
            raise UpdateResultEmptyError("update result is empty")
        return self._marshaller.from_item(attrs)

    def _guarded_put(self, request: Mapping[str, Any]) -> bool:
        try:
            self.put(request)
        except ConditionFailedError:
            logger.debug("conditional put on %s rejected: %s", self._table_name, request["ConditionExpression"])
            return False
        return True
