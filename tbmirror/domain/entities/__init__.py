from .entity import Entity, EntityKind, Page, SOURCE_LOCAL_FIELDS, strip_source_fields
from .device import AttributeScope, DeviceBackup, strip_volatile
from .outcome import DeviceRestoreState, ItemOutcome, OutcomeStatus, RunReport
from .session import Authority, Session

__all__ = [
    "Entity",
    "EntityKind",
    "Page",
    "SOURCE_LOCAL_FIELDS",
    "strip_source_fields",
    "AttributeScope",
    "DeviceBackup",
    "strip_volatile",
    "DeviceRestoreState",
    "ItemOutcome",
    "OutcomeStatus",
    "RunReport",
    "Authority",
    "Session",
]
