"""Pydantic schemas for files read back from a backup tree."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tbmirror.domain.entities import AttributeScope, DeviceBackup


class AttributeEntrySchema(BaseModel):
    """One ``{key, value}`` attribute; extra fields such as lastUpdateTs are dropped."""
    key: str
    value: Any = None


class DeviceAttributesSchema(BaseModel):
    server: list[AttributeEntrySchema] = Field(default_factory=list)
    shared: list[AttributeEntrySchema] = Field(default_factory=list)
    client: list[AttributeEntrySchema] = Field(default_factory=list)


class DeviceFileSchema(BaseModel):
    """Shape of ``devices/<deviceName>.json``."""
    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")
    attributes: DeviceAttributesSchema = Field(default_factory=DeviceAttributesSchema)


def parse_device_file(data: Any) -> DeviceBackup:
    """Validate a decoded device file and build the domain record.

    Raises:
        pydantic.ValidationError: If the file does not have the device file shape.
    """
    parsed = DeviceFileSchema.model_validate(data)
    return DeviceBackup(
        access_token=parsed.access_token,
        attributes={
            scope: [entry.model_dump() for entry in getattr(parsed.attributes, scope.file_key)]
            for scope in AttributeScope
        },
    )
