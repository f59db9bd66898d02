"""ThingsBoard REST client — implements the EntityClient interface.

Communicates with the platform REST API (``<base_url>/api``) using httpx.
The session token is sent per request as ``X-Authorization: Bearer <token>``;
the client itself holds no credential.
"""

import json
import logging
from typing import Any

import httpx

from tbmirror.application.interfaces import EntityClient
from tbmirror.domain.entities import AttributeScope, Entity, EntityKind, Page, Session
from tbmirror.domain.exceptions import AuthenticationError, PlatformError

logger = logging.getLogger(__name__)

# Paginated listing endpoint per kind (tenant-admin scope unless noted).
_LIST_PATHS: dict[EntityKind, str] = {
    EntityKind.RULE_CHAIN: "/ruleChains",
    EntityKind.DASHBOARD: "/tenant/dashboards",
    EntityKind.DEVICE: "/tenant/devices",
    EntityKind.CUSTOMER: "/customers",
    EntityKind.TENANT: "/tenantInfos",  # system administrator only
}

# Full-body endpoint per kind; ``{id}`` is substituted.
_GET_PATHS: dict[EntityKind, str] = {
    EntityKind.RULE_CHAIN: "/ruleChain/{id}/metadata",
    EntityKind.DASHBOARD: "/dashboard/{id}",
    EntityKind.DEVICE: "/device/{id}",
    EntityKind.CUSTOMER: "/customer/{id}",
    EntityKind.USER: "/user/{id}",
    EntityKind.TENANT: "/tenant/{id}",
}

# Create / save endpoint per kind.
_SAVE_PATHS: dict[EntityKind, str] = {
    EntityKind.RULE_CHAIN: "/ruleChain",
    EntityKind.WIDGETS_BUNDLE: "/widgetsBundle",
    EntityKind.WIDGET_TYPE: "/widgetType",
    EntityKind.DASHBOARD: "/dashboard",
    EntityKind.DEVICE: "/device",
    EntityKind.CUSTOMER: "/customer",
}

_USER_OWNER_SEGMENTS = {
    EntityKind.CUSTOMER: "customer",
    EntityKind.TENANT: "tenant",
}


class ThingsBoardClient(EntityClient):
    """Infrastructure adapter — connects to the platform REST API.

    Uses one pooled ``httpx.AsyncClient`` for the lifetime of the adapter;
    call ``aclose()`` (or use ``async with``) when done.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "ThingsBoardClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ── Transport ───────────────────────────────────────────────────

    @staticmethod
    def _get_headers(token: str) -> dict[str, str]:
        return {
            "X-Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: dict[str, Any] | None = None,
        payload: Any = None,
    ) -> Any:
        """Send one request and return its decoded JSON body (None when empty)."""
        url = f"{self._base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug("%s %s params=%s", method, path, params)

        try:
            response = await self._http_client.request(
                method, url, headers=self._get_headers(token), params=params, json=payload
            )
        except httpx.TransportError as e:
            raise PlatformError(
                status_code=503,
                message=f"Cannot reach the platform at {self._base_url}: {e}",
            ) from e

        if response.status_code >= 400:
            self._raise_platform_error(response)

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _raise_platform_error(response: httpx.Response) -> None:
        """Raise PlatformError (or AuthenticationError) from a failed response."""
        error_code: int | None = None
        try:
            data = response.json()
            message = data.get("message") or response.text
            error_code = data.get("errorCode")
        except (json.JSONDecodeError, AttributeError):
            message = response.text

        if response.status_code == 401:
            raise AuthenticationError(message=message or "Authentication failed")

        raise PlatformError(
            status_code=response.status_code,
            message=message,
            error_code=error_code,
        )

    @staticmethod
    def _to_page(kind: EntityKind, data: Any) -> Page:
        if isinstance(data, list):
            # Unpaginated endpoints (e.g. widget bundles) return a bare list
            return Page(
                data=[Entity.from_json(kind, item) for item in data],
                total_elements=len(data),
                has_next=False,
            )
        items = data.get("data", []) if data else []
        return Page(
            data=[Entity.from_json(kind, item) for item in items],
            total_elements=data.get("totalElements", len(items)) if data else 0,
            has_next=bool(data.get("hasNext")) if data else False,
        )

    # ── Identity ────────────────────────────────────────────────────

    async def current_user(self, token: str) -> Entity:
        data = await self._request("GET", "/auth/user", token)
        return Entity.from_json(EntityKind.USER, data)

    async def issue_token(self, session: Session, user_id: str) -> str:
        data = await self._request("GET", f"/user/{user_id}/token", session.token)
        return data["token"]

    # ── Generic entities ────────────────────────────────────────────

    async def list_page(
        self,
        session: Session,
        kind: EntityKind,
        *,
        page: int = 0,
        page_size: int = 1000,
        text_search: str | None = None,
    ) -> Page:
        if kind == EntityKind.WIDGETS_BUNDLE:
            data = await self._request("GET", "/widgetsBundles", session.token)
            return self._to_page(kind, data)

        path = _LIST_PATHS.get(kind)
        if path is None:
            raise ValueError(f"Listing is not supported for {kind.value}")
        data = await self._request(
            "GET",
            path,
            session.token,
            params={"pageSize": page_size, "page": page, "textSearch": text_search},
        )
        return self._to_page(kind, data)

    async def list_all(
        self,
        session: Session,
        kind: EntityKind,
        *,
        page_size: int = 1000,
    ) -> list[Entity]:
        entities: list[Entity] = []
        page_number = 0
        while True:
            page = await self.list_page(session, kind, page=page_number, page_size=page_size)
            entities.extend(page.data)
            if not page.has_next:
                break
            page_number += 1
        logger.debug("Listed %d %s entities", len(entities), kind.value)
        return entities

    async def get(self, session: Session, kind: EntityKind, entity_id: str) -> Entity:
        path = _GET_PATHS.get(kind)
        if path is None:
            raise ValueError(f"Fetching is not supported for {kind.value}")
        data = await self._request("GET", path.format(id=entity_id), session.token)
        return Entity.from_json(kind, data)

    async def create(
        self,
        session: Session,
        kind: EntityKind,
        body: dict[str, Any],
        *,
        access_token: str | None = None,
    ) -> Entity:
        params = {"accessToken": access_token} if access_token else None
        data = await self._request(
            "POST", _SAVE_PATHS[kind], session.token, params=params, payload=body
        )
        return Entity.from_json(kind, data or body)

    async def update(self, session: Session, kind: EntityKind, body: dict[str, Any]) -> Entity:
        # The platform saves by POST; the body's ``id`` selects update over create
        data = await self._request("POST", _SAVE_PATHS[kind], session.token, payload=body)
        return Entity.from_json(kind, data or body)

    async def list_users(
        self, session: Session, owner_kind: EntityKind, owner_id: str
    ) -> list[Entity]:
        segment = _USER_OWNER_SEGMENTS[owner_kind]
        users: list[Entity] = []
        page_number = 0
        while True:
            data = await self._request(
                "GET",
                f"/{segment}/{owner_id}/users",
                session.token,
                params={"pageSize": 1000, "page": page_number},
            )
            page = self._to_page(EntityKind.USER, data)
            users.extend(page.data)
            if not page.has_next:
                return users
            page_number += 1

    async def list_widget_types(
        self, session: Session, bundle_alias: str, *, is_system: bool = False
    ) -> list[Entity]:
        data = await self._request(
            "GET",
            "/widgetTypes",
            session.token,
            params={"isSystem": str(is_system).lower(), "bundleAlias": bundle_alias},
        )
        return [Entity.from_json(EntityKind.WIDGET_TYPE, item) for item in data or []]

    # ── Devices ─────────────────────────────────────────────────────

    async def get_device_attributes(
        self,
        session: Session,
        device_id: str,
        scope: AttributeScope | None = None,
        keys: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        path = f"/plugins/telemetry/DEVICE/{device_id}/values/attributes"
        if scope is not None:
            path = f"{path}/{scope.value}"
        data = await self._request(
            "GET", path, session.token, params={"keys": ",".join(keys)} if keys else None
        )
        return list(data or [])

    async def set_device_attributes(
        self,
        session: Session,
        device_id: str,
        scope: AttributeScope,
        attributes: dict[str, Any],
    ) -> None:
        await self._request(
            "POST",
            f"/plugins/telemetry/{device_id}/{scope.value}",
            session.token,
            payload=attributes,
        )

    async def get_device_credentials(self, session: Session, device_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/device/{device_id}/credentials", session.token)

    async def set_device_credentials(
        self, session: Session, credentials: dict[str, Any]
    ) -> dict[str, Any]:
        data = await self._request(
            "POST", "/device/credentials", session.token, payload=credentials
        )
        return data or credentials
