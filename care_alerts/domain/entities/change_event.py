"""Domain entity describing a row change emitted by the database change feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


USERS_TABLE = "users"
ALERTS_TABLE = "alerts"
DELIVERIES_TABLE = "deliveries"
INVENTORY_TABLE = "inventory"


@dataclass(frozen=True)
class ChangeEvent:
    """A single row change, discriminated by ``table`` and ``change_type``."""

    table: str
    row: Mapping[str, Any] = field(default_factory=dict)
    change_type: ChangeType = ChangeType.INSERT
    old_row: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "change_type", ChangeType(self.change_type))

    def value(self, key: str) -> Any:
        """Return ``row[key]`` or ``None`` when the row is missing the field."""

        if not isinstance(self.row, Mapping):
            return None
        return self.row.get(key)

    def text(self, key: str) -> str | None:
        """Return ``row[key]`` as a stripped string, or ``None`` when blank."""

        value = self.value(key)
        if value is None:
            return None
        text = str(value).strip()
        return text or None


__all__ = [
    "ChangeEvent",
    "ChangeType",
    "USERS_TABLE",
    "ALERTS_TABLE",
    "DELIVERIES_TABLE",
    "INVENTORY_TABLE",
]
