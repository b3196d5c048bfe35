from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError


@dataclass(frozen=True)
class UpdateClause:
    """Partial-attribute update in DynamoDB expression form.

    `None` values become REMOVE actions; everything else becomes a SET action.
    """

    set_expressions: tuple[str, ...] = ()
    remove_expressions: tuple[str, ...] = ()
    attribute_names: Mapping[str, str] = field(default_factory=dict)
    attribute_values: Mapping[str, Any] = field(default_factory=dict)

    @property
    def expression(self) -> str:
        set_part = "SET " + ", ".join(self.set_expressions) if self.set_expressions else ""
        remove_part = "REMOVE " + ", ".join(self.remove_expressions) if self.remove_expressions else ""
        return f"{set_part} {remove_part}".strip()

    @property
    def is_empty(self) -> bool:
        return not self.set_expressions and not self.remove_expressions

    def merged(
        self,
        names: Mapping[str, str] | None = None,
        values: Mapping[str, Any] | None = None,
    ) -> tuple[dict[str, str], dict[str, Any]]:
        out_names = dict(self.attribute_names)
        out_values = dict(self.attribute_values)

        for k, v in (names or {}).items():
            if k in out_names and out_names[k] != v:
                raise ValidationError(f"expression attribute name collision: {k}")
            out_names[k] = v

        for k, v in (values or {}).items():
            if k in out_values:
                raise ValidationError(f"expression attribute value collision: {k}")
            out_values[k] = v

        return out_names, out_values


def build_update_clause(attributes: Mapping[str, Any]) -> UpdateClause:
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    sets: list[str] = []
    removals: list[str] = []

    for attr_name, value in attributes.items():
        name_ref = f"#{attr_name}"
        value_ref = f":{attr_name}"
        names[name_ref] = attr_name

        if value is None:
            removals.append(name_ref)
            continue

        sets.append(f"{name_ref} = {value_ref}")
        values[value_ref] = value

    return UpdateClause(
        set_expressions=tuple(sets),
        remove_expressions=tuple(removals),
        attribute_names=names,
        attribute_values=values,
    )
