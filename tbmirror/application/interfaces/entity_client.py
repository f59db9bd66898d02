"""Abstract platform client interface — port for the platform REST adapter."""

from abc import ABC, abstractmethod
from typing import Any

from tbmirror.domain.entities import AttributeScope, Entity, EntityKind, Page, Session


class EntityClient(ABC):
    """Port — defines what the walk needs from the managed platform.

    Every call takes the ``Session`` it runs under; implementations must not
    keep a current credential of their own.
    """

    @abstractmethod
    async def current_user(self, token: str) -> Entity:
        """Return the user the token was issued for (authority, tenant)."""
        ...

    @abstractmethod
    async def list_page(
        self,
        session: Session,
        kind: EntityKind,
        *,
        page: int = 0,
        page_size: int = 1000,
        text_search: str | None = None,
    ) -> Page:
        """Return one page of summaries of ``kind`` visible to the session.

        Raises:
            PlatformError: If the platform rejects the request.
        """
        ...

    @abstractmethod
    async def list_all(
        self,
        session: Session,
        kind: EntityKind,
        *,
        page_size: int = 1000,
    ) -> list[Entity]:
        """Return every summary of ``kind``, following pages until exhausted."""
        ...

    @abstractmethod
    async def get(self, session: Session, kind: EntityKind, entity_id: str) -> Entity:
        """Fetch the full body of one entity."""
        ...

    @abstractmethod
    async def create(
        self,
        session: Session,
        kind: EntityKind,
        body: dict[str, Any],
        *,
        access_token: str | None = None,
    ) -> Entity:
        """Create an entity; devices may be given their initial access token."""
        ...

    @abstractmethod
    async def update(self, session: Session, kind: EntityKind, body: dict[str, Any]) -> Entity:
        """Save an existing entity (the body carries its ID)."""
        ...

    @abstractmethod
    async def list_users(
        self, session: Session, owner_kind: EntityKind, owner_id: str
    ) -> list[Entity]:
        """Return the users attached to a tenant or customer."""
        ...

    @abstractmethod
    async def list_widget_types(
        self, session: Session, bundle_alias: str, *, is_system: bool = False
    ) -> list[Entity]:
        """Return the widget type bodies contained in a widget bundle."""
        ...

    @abstractmethod
    async def get_device_attributes(
        self,
        session: Session,
        device_id: str,
        scope: AttributeScope | None = None,
        keys: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return ``[{key, value, lastUpdateTs}]`` for one scope or all scopes."""
        ...

    @abstractmethod
    async def set_device_attributes(
        self,
        session: Session,
        device_id: str,
        scope: AttributeScope,
        attributes: dict[str, Any],
    ) -> None:
        """Write a ``{key: value}`` map into one attribute scope."""
        ...

    @abstractmethod
    async def get_device_credentials(self, session: Session, device_id: str) -> dict[str, Any]:
        """Return the device credential object (``credentialsId`` is the access token)."""
        ...

    @abstractmethod
    async def set_device_credentials(
        self, session: Session, credentials: dict[str, Any]
    ) -> dict[str, Any]:
        """Overwrite a device credential object."""
        ...

    @abstractmethod
    async def issue_token(self, session: Session, user_id: str) -> str:
        """Issue a session token for another user (system-admin only)."""
        ...
