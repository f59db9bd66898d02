from tbmirror.application.schemas.backup_files import (
    AttributeEntrySchema,
    DeviceAttributesSchema,
    DeviceFileSchema,
    parse_device_file,
)

__all__ = [
    "AttributeEntrySchema",
    "DeviceAttributesSchema",
    "DeviceFileSchema",
    "parse_device_file",
]
