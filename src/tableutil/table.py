from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, cast

from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .conditional import ConditionalWriteExecutor
from .errors import ValidationError
from .marshal import ItemMarshaller, MarshalOptions
from .pagination import Page, PaginationDriver, decode_cursor, encode_cursor
from .query import SortKeyCondition, build_key_condition, projection_expression
from .transaction import PendingDelete, PendingPut, PendingUpdate

logger = logging.getLogger(__name__)

type Item = dict[str, Any]
type ItemPreprocessor = Callable[[Mapping[str, Any]], Mapping[str, Any]]


class TableAccessor[T: Mapping[str, Any]]:
    """Convenience wrapper around a DynamoDB client bound to one table.

    Adds insert-only / update-only puts, partial updates computed from an
    attribute map, scan/query helpers that follow continuation tokens, and
    producers of pending operations for `Transaction`.

    The type parameter is a hint for callers (e.g. a `TypedDict`); items are
    plain dicts at runtime.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        table_name: str,
        partition_key_name: str,
        sort_key_name: str | None = None,
        marshal_options: MarshalOptions | None = None,
        item_preprocessor: ItemPreprocessor | None = None,
        client_factory: Callable[[], Any] | None = None,
        indexes: Mapping[str, tuple[str, str | None]] | None = None,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")
        if not partition_key_name:
            raise ValueError("partition_key_name is required")

        self.table_name = table_name
        self.partition_key_name = partition_key_name
        self.sort_key_name = sort_key_name
        self.marshal_options = marshal_options or MarshalOptions()
        self.item_preprocessor = item_preprocessor
        self.indexes: dict[str, tuple[str, str | None]] = dict(indexes or {})

        self._client: Any | None = client
        self._client_factory = client_factory
        self._marshaller = ItemMarshaller(self.marshal_options)
        self._writer = ConditionalWriteExecutor(
            lambda: self.client,
            table_name=table_name,
            partition_key_name=partition_key_name,
            marshaller=self._marshaller,
        )
        self._scanner = PaginationDriver(self._scan_page, operation=f"scan {table_name}")
        self._querier = PaginationDriver(self._query_page, operation=f"query {table_name}")

    @property
    def client(self) -> Any:
        if self._client is None:
            if self._client_factory is not None:
                self._client = self._client_factory()
            else:
                from .runtime import get_dynamodb_client

                self._client = get_dynamodb_client()
        return self._client

    @property
    def key_attributes(self) -> tuple[str, ...]:
        if self.sort_key_name:
            return (self.partition_key_name, self.sort_key_name)
        return (self.partition_key_name,)

    def preprocess_item(self, item: Mapping[str, Any]) -> Mapping[str, Any]:
        if self.item_preprocessor is not None:
            return self.item_preprocessor(item)
        return item

    def put(
        self,
        item: T,
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> None:
        req = self._writer.put_request(
            self.preprocess_item(item),
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        self._writer.put(req)

    def put_if_not_exists(self, item: T) -> bool:
        """Insert `item` unless an item with the same key exists.

        Returns False (without raising) when the key is already taken.
        """
        return self._writer.put_if_not_exists(self.preprocess_item(item))

    def put_if_exists(self, item: T) -> bool:
        """Replace an existing item; returns False when no item has this key."""
        return self._writer.put_if_exists(self.preprocess_item(item))

    def get(self, key: Mapping[str, Any], *, consistent_read: bool = False) -> T | None:
        try:
            resp = self.client.get_item(
                TableName=self.table_name,
                Key=self._marshaller.to_item(self._checked_key(key)),
                ConsistentRead=consistent_read,
            )
        except ClientError as err:
            raise _map_client_error(err) from err

        item = resp.get("Item")
        if not item:
            return None
        return cast(T, self._marshaller.from_item(item))

    def update(
        self,
        key: Mapping[str, Any],
        attributes: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> T:
        """Update attributes of an existing item and return the new image.

        Attributes set to None are removed. Never creates the item: a missing
        target, or a false `condition_expression`, raises ConditionFailedError.
        """
        return cast(
            T,
            self._writer.update(
                self._checked_key(key),
                attributes,
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            ),
        )

    def delete(
        self,
        key: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> None:
        req = self._delete_request(
            key,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        try:
            self.client.delete_item(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

    def scan(
        self,
        *,
        index_name: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> Page[T]:
        req = self._scan_request(
            index_name=index_name,
            limit=limit,
            cursor=cursor,
            consistent_read=consistent_read,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        items, last_key = self._scanner.fetch_once(req, req.get("ExclusiveStartKey"))
        return self._page(items, last_key)

    def scan_all(
        self,
        *,
        index_name: str | None = None,
        limit: int | None = None,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> list[T]:
        req = self._scan_request(
            index_name=index_name,
            limit=limit,
            consistent_read=consistent_read,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        return self._decode(self._scanner.collect(req))

    def query(
        self,
        partition: Any,
        *,
        sort: SortKeyCondition | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> Page[T]:
        req = self._query_request(
            partition,
            sort=sort,
            index_name=index_name,
            limit=limit,
            cursor=cursor,
            scan_forward=scan_forward,
            consistent_read=consistent_read,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        items, last_key = self._querier.fetch_once(req, req.get("ExclusiveStartKey"))
        return self._page(items, last_key)

    def query_with_pagination(
        self,
        partition: Any,
        *,
        page_size: int,
        page_index: int,
        sort: SortKeyCondition | None = None,
        index_name: str | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> list[T]:
        """Return one page (0-based `page_index`) of a query.

        Preceding pages are walked with a key-only projection. An index past
        the last page returns an empty list.
        """
        if page_size <= 0:
            raise ValidationError("page_size must be > 0")
        if page_index < 0:
            raise ValidationError("page_index must be >= 0")

        common: dict[str, Any] = {
            "sort": sort,
            "index_name": index_name,
            "scan_forward": scan_forward,
            "consistent_read": consistent_read,
            "filter_expression": filter_expression,
            "expression_attribute_names": expression_attribute_names,
            "expression_attribute_values": expression_attribute_values,
        }
        req = self._query_request(partition, projection=projection, **common)
        skip_req = self._query_request(partition, projection=self._skip_projection(index_name), **common)

        items = self._querier.fetch_page(req, skip_request=skip_req, page_size=page_size, page_index=page_index)
        return self._decode(items)

    def query_all(
        self,
        partition: Any,
        *,
        sort: SortKeyCondition | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> list[T]:
        req = self._query_request(
            partition,
            sort=sort,
            index_name=index_name,
            limit=limit,
            scan_forward=scan_forward,
            consistent_read=consistent_read,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        return self._decode(self._querier.collect(req))

    def transactional_put(
        self,
        item: T,
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> PendingPut:
        return PendingPut(
            self._writer.put_request(
                self.preprocess_item(item),
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            )
        )

    def transactional_put_if_not_exists(self, item: T) -> PendingPut:
        return PendingPut(self._writer.guarded_put_request(self.preprocess_item(item), must_exist=False))

    def transactional_put_if_exists(self, item: T) -> PendingPut:
        return PendingPut(self._writer.guarded_put_request(self.preprocess_item(item), must_exist=True))

    def transactional_update(
        self,
        key: Mapping[str, Any],
        attributes: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> PendingUpdate:
        return PendingUpdate(
            self._writer.update_request(
                self._checked_key(key),
                attributes,
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            )
        )

    def transactional_delete(
        self,
        key: Mapping[str, Any],
        *,
        condition_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> PendingDelete:
        return PendingDelete(
            self._delete_request(
                key,
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            )
        )

    def delete_all(self, *, sort_key_name: str | None = None) -> int:
        """Delete every item in the table, one request per item.

        Meant for test fixtures; it scans the whole table. Pass `sort_key_name`
        when the accessor was built without one for a table that has a range key.
        """
        sort_key_name = sort_key_name or self.sort_key_name
        attrs = [self.partition_key_name] + ([sort_key_name] if sort_key_name else [])
        keys = self.scan_all(projection=attrs)
        for key in keys:
            self.delete(key)
        logger.debug("deleted %d items from %s", len(keys), self.table_name)
        return len(keys)

    def _checked_key(self, key: Mapping[str, Any]) -> Mapping[str, Any]:
        for attr in self.key_attributes:
            if key.get(attr) is None:
                raise ValidationError(f"key is missing attribute: {attr}")
        # Without sort_key_name the range key of the table is unknown.
        extra = set(key) - set(self.key_attributes)
        if self.sort_key_name is not None and extra:
            raise ValidationError(f"key has non-key attributes: {sorted(extra)}")
        return key

    def _delete_request(
        self,
        key: Mapping[str, Any],
        *,
        condition_expression: str | None,
        expression_attribute_names: Mapping[str, str] | None,
        expression_attribute_values: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": self._marshaller.to_item(self._checked_key(key)),
        }
        if condition_expression:
            req["ConditionExpression"] = condition_expression
        if expression_attribute_names:
            req["ExpressionAttributeNames"] = dict(expression_attribute_names)
        if expression_attribute_values:
            req["ExpressionAttributeValues"] = self._marshaller.serialize_values(expression_attribute_values)
        return req

    def _scan_request(
        self,
        *,
        index_name: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self.table_name, "ConsistentRead": consistent_read}
        self._apply_read_options(
            req,
            {},
            {},
            index_name=index_name,
            limit=limit,
            cursor=cursor,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        return req

    def _query_request(
        self,
        partition: Any,
        *,
        sort: SortKeyCondition | None = None,
        index_name: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
        projection: list[str] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: Mapping[str, str] | None = None,
        expression_attribute_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        partition_attr, sort_attr = self._resolve_index(index_name)

        key_expr, names, values = build_key_condition(
            partition_attr, partition, sort_attr, sort, self._marshaller.serialize
        )
        req: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": key_expr,
            "ScanIndexForward": scan_forward,
            "ConsistentRead": consistent_read,
        }
        self._apply_read_options(
            req,
            names,
            values,
            index_name=index_name,
            limit=limit,
            cursor=cursor,
            projection=projection,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        return req

    def _apply_read_options(
        self,
        req: dict[str, Any],
        names: dict[str, str],
        values: dict[str, Any],
        *,
        index_name: str | None,
        limit: int | None,
        cursor: str | None,
        projection: list[str] | None,
        filter_expression: str | None,
        expression_attribute_names: Mapping[str, str] | None,
        expression_attribute_values: Mapping[str, Any] | None,
    ) -> None:
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be > 0")

        if index_name is not None:
            req["IndexName"] = index_name
        if limit is not None:
            req["Limit"] = limit
        if cursor is not None:
            try:
                req["ExclusiveStartKey"] = decode_cursor(cursor)
            except Exception as err:
                raise ValidationError("invalid cursor") from err
        if projection is not None:
            req["ProjectionExpression"] = projection_expression(projection, names)
        if filter_expression:
            req["FilterExpression"] = filter_expression

        for k, v in (expression_attribute_names or {}).items():
            if k in names and names[k] != v:
                raise ValidationError(f"expression attribute name collision: {k}")
            names[k] = v
        for k, v in self._marshaller.serialize_values(expression_attribute_values or {}).items():
            if k in values:
                raise ValidationError(f"expression attribute value collision: {k}")
            values[k] = v

        if names:
            req["ExpressionAttributeNames"] = names
        if values:
            req["ExpressionAttributeValues"] = values

    def _scan_page(self, req: dict[str, Any]) -> Mapping[str, Any]:
        try:
            return self.client.scan(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

    def _query_page(self, req: dict[str, Any]) -> Mapping[str, Any]:
        try:
            return self.client.query(**req)
        except ClientError as err:
            raise _map_client_error(err) from err

    def _decode(self, items: list[dict[str, Any]]) -> list[T]:
        return [cast(T, self._marshaller.from_item(item)) for item in items]

    def _page(self, items: list[dict[str, Any]], last_key: Mapping[str, Any] | None) -> Page[T]:
        return Page(items=self._decode(items), next_cursor=encode_cursor(last_key) if last_key else None)

    def _resolve_index(self, index_name: str | None) -> tuple[str, str | None]:
        if index_name is None:
            return self.partition_key_name, self.sort_key_name
        try:
            return self.indexes[index_name]
        except KeyError:
            raise ValidationError(f"unknown index: {index_name}") from None

    def _skip_projection(self, index_name: str | None) -> list[str]:
        attrs = list(self.key_attributes)
        if index_name is not None:
            for attr in self._resolve_index(index_name):
                if attr is not None and attr not in attrs:
                    attrs.append(attr)
        return attrs
