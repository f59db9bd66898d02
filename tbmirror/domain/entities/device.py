"""Domain entities for device attribute bundles and the device backup file."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

VOLATILE_ATTRIBUTE_FIELDS = ("lastUpdateTs",)


class AttributeScope(str, Enum):
    """Attribute namespaces, valued as the platform's scope names."""

    SERVER = "SERVER_SCOPE"
    SHARED = "SHARED_SCOPE"
    CLIENT = "CLIENT_SCOPE"

    @property
    def file_key(self) -> str:
        """Key of this scope inside a device backup file."""
        return self.name.lower()


def strip_volatile(attributes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop last-update timestamps; they are not meaningful to restore."""
    return [
        {k: v for k, v in item.items() if k not in VOLATILE_ATTRIBUTE_FIELDS}
        for item in attributes
    ]


@dataclass
class DeviceBackup:
    """Composite device record stored at ``devices/<deviceName>.json``.

    File shape::

        {"accessToken": "...",
         "attributes": {"server": [{"key": .., "value": ..}], "shared": [..], "client": [..]}}

    Files are read back through ``parse_device_file``, which validates them.
    """

    access_token: str | None
    attributes: dict[AttributeScope, list[dict[str, Any]]] = field(
        default_factory=lambda: {scope: [] for scope in AttributeScope}
    )

    def to_json(self) -> dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "attributes": {
                scope.file_key: strip_volatile(self.attributes.get(scope, []))
                for scope in AttributeScope
            },
        }

    def attribute_map(self, scope: AttributeScope) -> dict[str, Any]:
        """Collapse a scope's ``[{key, value}]`` list into a ``{key: value}`` map."""
        return {item["key"]: item.get("value") for item in self.attributes.get(scope, [])}
