"""Typed envelope around the platform's loosely-typed JSON entity bodies."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Fields that are only meaningful inside the installation an entity came from.
SOURCE_LOCAL_FIELDS = ("id", "createdTime", "tenantId")


class EntityKind(str, Enum):
    """Entity kinds the tool walks, valued as the platform's entity types."""

    TENANT = "TENANT"
    USER = "USER"
    CUSTOMER = "CUSTOMER"
    RULE_CHAIN = "RULE_CHAIN"
    WIDGETS_BUNDLE = "WIDGETS_BUNDLE"
    WIDGET_TYPE = "WIDGET_TYPE"
    DASHBOARD = "DASHBOARD"
    DEVICE = "DEVICE"


def _unwrap_id(value: Any) -> str | None:
    """Platform IDs arrive as ``{"entityType": ..., "id": "<uuid>"}``."""
    if isinstance(value, dict):
        return value.get("id")
    return value


@dataclass
class Entity:
    """A platform record: a few known top-level fields over an opaque payload.

    The payload is kept verbatim so that re-serialization is lossless for
    everything the tool does not interpret.
    """

    kind: EntityKind
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, kind: EntityKind, data: dict[str, Any]) -> "Entity":
        return cls(kind=kind, payload=copy.deepcopy(data))

    @property
    def id(self) -> str | None:
        return _unwrap_id(self.payload.get("id"))

    @property
    def name(self) -> str:
        """Human-readable display name; not guaranteed to be unique."""
        for key in ("name", "title", "email"):
            value = self.payload.get(key)
            if value:
                return str(value)
        return self.id or ""

    @property
    def tenant_id(self) -> str | None:
        return _unwrap_id(self.payload.get("tenantId"))

    def to_json(self) -> dict[str, Any]:
        return copy.deepcopy(self.payload)

    def stripped(self) -> dict[str, Any]:
        """Return the payload without ID, creation time and tenant ID."""
        return strip_source_fields(self.payload)


def strip_source_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Deep-copy ``data`` without the fields listed in SOURCE_LOCAL_FIELDS."""
    result = copy.deepcopy(data)
    for key in SOURCE_LOCAL_FIELDS:
        result.pop(key, None)
    return result


@dataclass
class Page:
    """One page of a paginated listing."""

    data: list[Entity] = field(default_factory=list)
    total_elements: int = 0
    has_next: bool = False
