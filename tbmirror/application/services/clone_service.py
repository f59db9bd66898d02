"""Clone a dashboard onto another device."""

import logging

from tbmirror.application.interfaces import EntityClient
from tbmirror.application.services.reference_resolver import ReferenceResolver
from tbmirror.domain.entities import Entity, EntityKind, Session
from tbmirror.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)


class CloneService:
    """Creates a copy of a dashboard whose first entity alias targets a given device."""

    def __init__(self, client: EntityClient, resolver: ReferenceResolver):
        self._client = client
        self._resolver = resolver

    async def clone(
        self,
        session: Session,
        dashboard_name: str,
        device_name: str,
        new_name: str | None = None,
    ) -> Entity:
        """Clone ``dashboard_name`` onto ``device_name``.

        The copy is named ``new_name``, or after the device when omitted.
        Lookups are case-normalized.

        Raises:
            EntityNotFoundError: If the dashboard, the device or the
                dashboard's first entity alias does not exist.
        """
        dashboard = await self._resolver.require(session, EntityKind.DASHBOARD, dashboard_name.lower())
        device = await self._resolver.require(session, EntityKind.DEVICE, device_name.lower())
        cloned_name = new_name or device.name

        body = (await self._client.get(session, EntityKind.DASHBOARD, dashboard.id)).to_json()
        configuration = body.setdefault("configuration", {})
        aliases = configuration.get("entityAliases") or {}
        if not aliases:
            raise EntityNotFoundError("Entity alias of dashboard", dashboard.name)

        first_alias = aliases[next(iter(aliases))]
        alias_filter = first_alias.setdefault("filter", {})
        alias_filter.setdefault("singleEntity", {})["id"] = device.id
        first_alias["alias"] = device.name

        body["name"] = body["title"] = cloned_name
        default_state = (configuration.get("states") or {}).get("default")
        if isinstance(default_state, dict):
            default_state["name"] = cloned_name
        body.pop("id", None)

        created = await self._client.create(session, EntityKind.DASHBOARD, body)
        logger.info("Dashboard '%s' cloned as '%s' for device '%s'", dashboard.name, cloned_name, device.name)
        return created
