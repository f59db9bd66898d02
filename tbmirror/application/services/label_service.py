"""Relabel dashboard widgets from a device's ``LABELS`` attribute."""

import json
import logging
from typing import Any

from tbmirror.application.interfaces import EntityClient
from tbmirror.application.services.reference_resolver import ReferenceResolver
from tbmirror.domain.entities import Entity, EntityKind, Session
from tbmirror.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)

LABELS_ATTRIBUTE = "LABELS"
VALUE_WIDGET_TYPES = ("latest", "timeseries")


def relabel_widget(widget: dict[str, Any], labels: dict[str, str]) -> None:
    """Apply ``labels`` (data-key name -> display label) to one widget in place.

    Keys without a mapping keep their current label.
    """
    config = widget.setdefault("config", {})
    widget_type = widget.get("type")

    if widget_type == "rpc":
        settings = config.get("settings") or {}
        key = settings.get("valueKey") or settings.get("valueAttribute")
        config["title"] = labels.get(key) or config.get("title")

    elif widget_type in VALUE_WIDGET_TYPES:
        datasources = config.get("datasources") or []
        if len(datasources) == 1:
            data_keys = datasources[0].get("dataKeys") or []
            if data_keys:
                config["title"] = labels.get(data_keys[0].get("name")) or config.get("title")
        else:
            for datasource in datasources:
                for data_key in datasource.get("dataKeys") or []:
                    data_key["label"] = labels.get(data_key.get("name")) or data_key.get("label")


class LabelService:
    """Rewrites widget titles/labels of a dashboard from device-held metadata."""

    def __init__(self, client: EntityClient, resolver: ReferenceResolver):
        self._client = client
        self._resolver = resolver

    async def label(self, session: Session, dashboard_name: str, device_name: str) -> Entity:
        """Relabel ``dashboard_name`` using the ``LABELS`` attribute of ``device_name``.

        Raises:
            EntityNotFoundError: If the dashboard, the device or its
                ``LABELS`` attribute does not exist.
        """
        dashboard = await self._resolver.require(session, EntityKind.DASHBOARD, dashboard_name.lower())
        device = await self._resolver.require(session, EntityKind.DEVICE, device_name.lower())

        labels = await self._load_labels(session, device)
        body = (await self._client.get(session, EntityKind.DASHBOARD, dashboard.id)).to_json()

        widgets = (body.get("configuration") or {}).get("widgets") or {}
        for widget in widgets.values():
            relabel_widget(widget, labels)
        logger.info("Relabeled %d widgets of dashboard '%s'", len(widgets), dashboard.name)

        return await self._client.update(session, EntityKind.DASHBOARD, body)

    async def _load_labels(self, session: Session, device: Entity) -> dict[str, str]:
        attributes = await self._client.get_device_attributes(
            session, device.id, keys=[LABELS_ATTRIBUTE]
        )
        entry = next((a for a in attributes if a.get("key") == LABELS_ATTRIBUTE), None)
        if entry is None:
            raise EntityNotFoundError(f"{LABELS_ATTRIBUTE} attribute of device", device.name)

        value = entry.get("value")
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, dict):
            raise ValueError(f"{LABELS_ATTRIBUTE} of device {device.name} is not a mapping")
        return value
