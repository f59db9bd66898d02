"""Shared fixtures: an in-memory platform implementing the EntityClient port."""

import copy
import itertools
from collections import defaultdict
from typing import Any

import pytest

from tbmirror.application.interfaces import EntityClient
from tbmirror.domain.entities import (
    AttributeScope,
    Authority,
    Entity,
    EntityKind,
    Page,
    Session,
)
from tbmirror.domain.exceptions import AuthenticationError, PlatformError
from tbmirror.infrastructure.storage import LocalTreeStore

TENANT_ID = "tenant-1"
SYSTEM_TENANT_ID = "13814000-1dd2-11b2-8080-808080808080"
DUPLICATE_CODE = 31


def ref(kind: EntityKind, entity_id: str) -> dict[str, str]:
    return {"entityType": kind.value, "id": entity_id}


class FakePlatform(EntityClient):
    """In-memory fake of the platform for unit testing."""

    def __init__(self, tenant_id: str = TENANT_ID):
        self.tenant_id = tenant_id
        self.entities: dict[EntityKind, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.attributes: dict[str, dict[AttributeScope, dict[str, Any]]] = defaultdict(
            lambda: {scope: {} for scope in AttributeScope}
        )
        self.credentials: dict[str, dict[str, Any]] = {}
        self.widget_types: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.users: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.failing_ids: set[str] = set()
        self.create_errors: dict[str, PlatformError] = {}
        self.calls: list[tuple] = []
        self.valid_tokens: set[str] = {"token"}
        self._ids = itertools.count(1)

    # ── Seeding helpers ──

    def add(self, kind: EntityKind, body: dict[str, Any], tenant_id: str | None = None) -> dict:
        entity_id = f"{kind.value.lower()}-{next(self._ids)}"
        stored = {
            "id": ref(kind, entity_id),
            "createdTime": 1600000000000,
            "tenantId": ref(EntityKind.TENANT, tenant_id or self.tenant_id),
            **copy.deepcopy(body),
        }
        self.entities[kind][entity_id] = stored
        return stored

    def add_device(
        self,
        name: str,
        token: str = "tok",
        attributes: dict[AttributeScope, dict[str, Any]] | None = None,
    ) -> dict:
        device = self.add(EntityKind.DEVICE, {"name": name, "type": "default"})
        device_id = device["id"]["id"]
        self.credentials[device_id] = {
            "id": ref(EntityKind.DEVICE, f"cred-{device_id}"),
            "deviceId": device["id"],
            "credentialsType": "ACCESS_TOKEN",
            "credentialsId": token,
        }
        for scope, values in (attributes or {}).items():
            self.attributes[device_id][scope].update(values)
        return device

    def by_name(self, kind: EntityKind, name: str) -> list[dict]:
        return [
            e for e in self.entities[kind].values()
            if Entity.from_json(kind, e).name == name
        ]

    def called(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    def _check(self, session: Session) -> None:
        if session.token not in self.valid_tokens:
            raise AuthenticationError("Token has expired")

    # ── EntityClient ──

    async def current_user(self, token: str) -> Entity:
        if token not in self.valid_tokens:
            raise AuthenticationError()
        return Entity.from_json(
            EntityKind.USER,
            {
                "id": ref(EntityKind.USER, "user-admin"),
                "email": "admin@example.com",
                "authority": Authority.TENANT_ADMIN.value,
                "tenantId": ref(EntityKind.TENANT, self.tenant_id),
            },
        )

    async def list_page(self, session, kind, *, page=0, page_size=1000, text_search=None) -> Page:
        self._check(session)
        self.calls.append(("list_page", kind, page, page_size, text_search))
        items = sorted(
            self.entities[kind].values(),
            key=lambda e: Entity.from_json(kind, e).name.lower(),
        )
        if text_search:
            needle = text_search.lower()
            items = [e for e in items if needle in Entity.from_json(kind, e).name.lower()]
        start = page * page_size
        chunk = items[start:start + page_size]
        return Page(
            data=[Entity.from_json(kind, e) for e in chunk],
            total_elements=len(items),
            has_next=start + page_size < len(items),
        )

    async def list_all(self, session, kind, *, page_size=1000) -> list[Entity]:
        entities: list[Entity] = []
        page_number = 0
        while True:
            page = await self.list_page(session, kind, page=page_number, page_size=page_size)
            entities.extend(page.data)
            if not page.has_next:
                return entities
            page_number += 1

    async def get(self, session, kind, entity_id) -> Entity:
        self._check(session)
        self.calls.append(("get", kind, entity_id))
        if entity_id in self.failing_ids:
            raise PlatformError(500, "Internal server error")
        if entity_id not in self.entities[kind]:
            raise PlatformError(404, f"{kind.value} not found", error_code=32)
        return Entity.from_json(kind, self.entities[kind][entity_id])

    async def create(self, session, kind, body, *, access_token=None) -> Entity:
        self._check(session)
        self.calls.append(("create", kind, copy.deepcopy(body), access_token))
        name = Entity.from_json(kind, body).name
        if name in self.create_errors:
            raise self.create_errors[name]
        if kind == EntityKind.DEVICE:
            if self.by_name(EntityKind.DEVICE, name):
                raise PlatformError(
                    400, "Device with such name already exists!", error_code=DUPLICATE_CODE
                )
            device = self.add_device(name, token=access_token or f"generated-{name}")
            return Entity.from_json(kind, device)
        return Entity.from_json(kind, self.add(kind, body))

    async def update(self, session, kind, body) -> Entity:
        self._check(session)
        self.calls.append(("update", kind, copy.deepcopy(body)))
        entity_id = body["id"]["id"]
        self.entities[kind][entity_id] = copy.deepcopy(body)
        return Entity.from_json(kind, body)

    async def list_users(self, session, owner_kind, owner_id) -> list[Entity]:
        self._check(session)
        return [Entity.from_json(EntityKind.USER, u) for u in self.users[owner_id]]

    async def list_widget_types(self, session, bundle_alias, *, is_system=False) -> list[Entity]:
        self._check(session)
        return [Entity.from_json(EntityKind.WIDGET_TYPE, w) for w in self.widget_types[bundle_alias]]

    async def get_device_attributes(self, session, device_id, scope=None, keys=None):
        self._check(session)
        scopes = [scope] if scope else list(AttributeScope)
        result = []
        for s in scopes:
            for key, value in self.attributes[device_id][s].items():
                if keys and key not in keys:
                    continue
                result.append({"key": key, "value": value, "lastUpdateTs": 1600000000000})
        return result

    async def set_device_attributes(self, session, device_id, scope, attributes) -> None:
        self._check(session)
        self.calls.append(("set_device_attributes", device_id, scope, dict(attributes)))
        self.attributes[device_id][scope].update(attributes)

    async def get_device_credentials(self, session, device_id):
        self._check(session)
        return copy.deepcopy(self.credentials[device_id])

    async def set_device_credentials(self, session, credentials):
        self._check(session)
        self.calls.append(("set_device_credentials", copy.deepcopy(credentials)))
        self.credentials[credentials["deviceId"]["id"]] = copy.deepcopy(credentials)
        return credentials

    async def issue_token(self, session, user_id) -> str:
        self._check(session)
        token = f"token-{user_id}"
        self.valid_tokens.add(token)
        self.calls.append(("issue_token", user_id))
        return token


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def session() -> Session:
    return Session(token="token", authority=Authority.TENANT_ADMIN, tenant_id=TENANT_ID)


@pytest.fixture
def store(tmp_path) -> LocalTreeStore:
    return LocalTreeStore(tmp_path)
