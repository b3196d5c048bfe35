from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class SortKeyCondition:
    op: str
    values: tuple[Any, ...]

    @staticmethod
    def eq(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="=", values=(value,))

    @staticmethod
    def lt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<", values=(value,))

    @staticmethod
    def lte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<=", values=(value,))

    @staticmethod
    def gt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">", values=(value,))

    @staticmethod
    def gte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">=", values=(value,))

    @staticmethod
    def between(low: Any, high: Any) -> SortKeyCondition:
        return SortKeyCondition(op="between", values=(low, high))

    @staticmethod
    def begins_with(prefix: Any) -> SortKeyCondition:
        return SortKeyCondition(op="begins_with", values=(prefix,))


def build_key_condition(
    partition_attr: str,
    partition: Any,
    sort_attr: str | None,
    sort: SortKeyCondition | None,
    serialize: Callable[[Any], Any],
) -> tuple[str, dict[str, str], dict[str, Any]]:
    if partition is None:
        raise ValidationError("partition is required")

    names: dict[str, str] = {"#k_pk": partition_attr}
    values: dict[str, Any] = {":k_pk": serialize(partition)}
    expr = "#k_pk = :k_pk"
    if sort is None:
        return expr, names, values

    if sort_attr is None:
        raise ValidationError("a sort condition requires sort_key_name")
    names["#k_sk"] = sort_attr

    op = sort.op
    if op in {"=", "<", "<=", ">", ">="}:
        if len(sort.values) != 1:
            raise ValidationError("invalid sort key condition")
        values[":k_sk"] = serialize(sort.values[0])
        return f"{expr} AND #k_sk {op} :k_sk", names, values
    if op == "between":
        if len(sort.values) != 2:
            raise ValidationError("invalid sort key condition")
        values[":k_sk1"] = serialize(sort.values[0])
        values[":k_sk2"] = serialize(sort.values[1])
        return f"{expr} AND #k_sk BETWEEN :k_sk1 AND :k_sk2", names, values
    if op == "begins_with":
        if len(sort.values) != 1:
            raise ValidationError("invalid sort key condition")
        values[":k_sk"] = serialize(sort.values[0])
        return f"{expr} AND begins_with(#k_sk, :k_sk)", names, values
    raise ValidationError(f"unsupported sort key operator: {op}")


def projection_expression(attributes: list[str] | tuple[str, ...], names: dict[str, str]) -> str:
    if not attributes:
        raise ValidationError("projection must name at least one attribute")

    refs: list[str] = []
    for i, attr in enumerate(attributes):
        ref = f"#p{i}"
        names[ref] = attr
        refs.append(ref)
    return ", ".join(refs)
