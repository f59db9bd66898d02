"""Service wiring — connects infrastructure adapters to the application layer."""

from pathlib import Path

from tbmirror.application.interfaces import EntityClient, TreeStore
from tbmirror.application.services import (
    CloneService,
    Converter,
    Exporter,
    Importer,
    LabelService,
    ReferenceResolver,
)
from tbmirror.config import Settings, get_settings
from tbmirror.domain.entities import Authority, Session
from tbmirror.infrastructure.platform import ThingsBoardClient
from tbmirror.infrastructure.storage import LocalTreeStore, snapshot_stamp


def get_platform_client(settings: Settings | None = None) -> ThingsBoardClient:
    """Provides a platform client for the configured installation."""
    settings = settings or get_settings()
    return ThingsBoardClient(settings.api_url, timeout=settings.request_timeout)


async def open_session(client: EntityClient, settings: Settings | None = None) -> Session:
    """Builds the explicit Session for the configured token.

    Raises:
        ConfigurationError: If no token is configured.
        AuthenticationError: If the platform rejects the token.
    """
    settings = settings or get_settings()
    token = settings.require_token()
    user = await client.current_user(token)
    return Session(
        token=token,
        authority=Authority(user.payload.get("authority", Authority.TENANT_ADMIN.value)),
        tenant_id=user.tenant_id,
        user_id=user.id,
    )


def get_resolver(client: EntityClient, settings: Settings | None = None) -> ReferenceResolver:
    settings = settings or get_settings()
    return ReferenceResolver(client, page_size=settings.resolve_page_size)


def backup_root(settings: Settings, output: str | None = None) -> Path:
    """``<output or backup_dir>/<host>/<YYMMDDHHmmss>``."""
    return Path(output or settings.backup_dir) / settings.host / snapshot_stamp()


def convert_root(settings: Settings, output: str | None = None) -> Path:
    return Path(output or settings.convert_dir) / snapshot_stamp()


def get_exporter(
    client: EntityClient, store: TreeStore, settings: Settings | None = None
) -> Exporter:
    """Provides an Exporter writing into ``store``."""
    settings = settings or get_settings()
    return Exporter(
        client,
        store,
        list_page_size=settings.list_page_size,
        max_concurrency=settings.max_concurrency,
        item_timeout=settings.item_timeout,
    )


def get_importer(
    client: EntityClient, store: TreeStore, settings: Settings | None = None
) -> Importer:
    """Provides an Importer reading from ``store``."""
    settings = settings or get_settings()
    return Importer(
        client,
        store,
        get_resolver(client, settings),
        duplicate_error_code=settings.duplicate_error_code,
        default_device_type=settings.default_device_type,
        max_concurrency=settings.max_concurrency,
        item_timeout=settings.item_timeout,
    )


def get_clone_service(client: EntityClient, settings: Settings | None = None) -> CloneService:
    return CloneService(client, get_resolver(client, settings))


def get_label_service(client: EntityClient, settings: Settings | None = None) -> LabelService:
    return LabelService(client, get_resolver(client, settings))


def get_converter(source: str | Path, target: str | Path, settings: Settings | None = None) -> Converter:
    settings = settings or get_settings()
    return Converter(
        LocalTreeStore(source),
        LocalTreeStore(target),
        max_concurrency=settings.max_concurrency,
    )
