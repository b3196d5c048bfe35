from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, is_dataclass
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .errors import ValidationError


@dataclass(frozen=True)
class MarshalOptions:
    convert_empty_values: bool = True
    remove_none_values: bool = False
    convert_floats: bool = True
    convert_dataclasses: bool = True


class ItemMarshaller:
    """Converts between Python values and DynamoDB attribute values."""

    def __init__(self, options: MarshalOptions | None = None) -> None:
        self.options = options or MarshalOptions()
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def to_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in self._as_mapping(item).items():
            if value is None and self.options.remove_none_values:
                continue
            out[name] = self.serialize(value)
        return out

    def from_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {name: self._deserializer.deserialize(av) for name, av in item.items()}

    def serialize(self, value: Any) -> Any:
        return self._serializer.serialize(self._normalize(value))

    def serialize_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self.serialize(v) for k, v in values.items()}

    def _as_mapping(self, item: Any) -> Mapping[str, Any]:
        if isinstance(item, Mapping):
            return item
        if self.options.convert_dataclasses and is_dataclass(item) and not isinstance(item, type):
            return asdict(item)
        raise ValidationError(f"item must be a mapping, got {type(item).__name__}")

    def _normalize(self, value: Any) -> Any:
        opts = self.options

        if isinstance(value, bool) or value is None:
            return value
        if isinstance(value, float):
            if not opts.convert_floats:
                return value
            return Decimal(str(value))
        if isinstance(value, (str, bytes, bytearray)):
            if opts.convert_empty_values and len(value) == 0:
                return None
            return value
        if isinstance(value, (set, frozenset)):
            if opts.convert_empty_values and len(value) == 0:
                return None
            if opts.convert_floats:
                return {Decimal(str(v)) if isinstance(v, float) else v for v in value}
            return set(value)
        if isinstance(value, Mapping):
            return {
                k: self._normalize(v)
                for k, v in value.items()
                if not (v is None and opts.remove_none_values)
            }
        if isinstance(value, (list, tuple)):
            return [self._normalize(v) for v in value]
        if opts.convert_dataclasses and is_dataclass(value) and not isinstance(value, type):
            return self._normalize(asdict(value))
        return value
