"""Importer — replays a tenant's backup tree into the target installation.

References embedded in dashboards (device aliases, assigned customers) are
re-resolved by display name against the target, since IDs are only valid
inside the installation they were exported from. Each file is processed
independently; one failure never aborts the rest of the directory.
"""

import logging
from collections.abc import Iterable
from typing import Any

from tbmirror.application.interfaces import EntityClient, TreeStore
from tbmirror.application.schemas import parse_device_file
from tbmirror.application.services.fan_out import fan_out
from tbmirror.application.services.reference_resolver import ReferenceResolver
from tbmirror.application.services.tree_paths import (
    RESTORE_CATEGORIES,
    TENANTS_DIR,
    Category,
    decode_json,
    is_json_file,
    join,
    name_from_file,
)
from tbmirror.domain.entities import (
    AttributeScope,
    DeviceBackup,
    DeviceRestoreState,
    EntityKind,
    ItemOutcome,
    OutcomeStatus,
    RunReport,
    Session,
    strip_source_fields,
)
from tbmirror.domain.exceptions import AuthenticationError, PlatformError, TreeStoreError
from tbmirror.infrastructure.logging.colored_logger import WalkLogger, WalkStage

logger = logging.getLogger(__name__)

SINGLE_ENTITY_FILTER = "singleEntity"


class Importer:
    """Application service — restores widgets, devices and dashboards from a backup tree."""

    def __init__(
        self,
        client: EntityClient,
        store: TreeStore,
        resolver: ReferenceResolver,
        *,
        duplicate_error_code: int = 31,
        default_device_type: str = "default",
        max_concurrency: int = 8,
        item_timeout: float | None = None,
    ):
        self._client = client
        self._store = store
        self._resolver = resolver
        self._duplicate_error_code = duplicate_error_code
        self._device_type = default_device_type
        self._limit = max_concurrency
        self._timeout = item_timeout
        self._log = WalkLogger("Importer")

    # ── Entry point ─────────────────────────────────────────────────

    async def import_tree(
        self,
        session: Session,
        tree_dir: str,
        categories: Iterable[Category] | None = None,
    ) -> RunReport:
        """Restore the selected categories (all restorable ones by default).

        Widgets and devices are restored before dashboards so that device
        aliases can resolve against devices created by the same run.

        Raises:
            TreeStoreError: If the input or a selected category directory is missing.
        """
        selected = list(categories or []) or list(RESTORE_CATEGORIES)
        tree_dir = await self.resolve_tree_dir(tree_dir)
        logger.info("Restoring %s from %s", ", ".join(c.value for c in selected), tree_dir)

        for category in selected:
            if category == Category.RULE_CHAINS:
                continue
            if not self._store.is_dir(join(tree_dir, category.value)):
                raise TreeStoreError(
                    f'Input directory does not contain any "{category.value}/" directory.'
                )

        report = RunReport()
        if Category.RULE_CHAINS in selected:
            self._log.warning("Restoring rule chains is not supported; they are export-only")
            report.add(
                ItemOutcome.skipped(Category.RULE_CHAINS.value, "*", "restore not supported")
            )
        if Category.WIDGETS in selected:
            report.extend(await self.restore_widgets(session, join(tree_dir, Category.WIDGETS.value)))
        if Category.DEVICES in selected:
            report.extend(await self.restore_devices(session, join(tree_dir, Category.DEVICES.value)))
        if Category.DASHBOARDS in selected:
            report.extend(
                await self.restore_dashboards(session, join(tree_dir, Category.DASHBOARDS.value))
            )
        return report

    async def resolve_tree_dir(self, tree_dir: str) -> str:
        """Return the tenant directory to restore from.

        Accepts either a tenant directory or a snapshot root holding exactly
        one ``tenants/<name>/`` directory.

        Raises:
            TreeStoreError: If the directory does not exist or is ambiguous.
        """
        if not self._store.is_dir(tree_dir):
            raise TreeStoreError("Input directory does not exist.")
        if any(self._store.is_dir(join(tree_dir, c.value)) for c in Category):
            return tree_dir

        tenants_dir = join(tree_dir, TENANTS_DIR)
        if not self._store.is_dir(tenants_dir):
            return tree_dir
        tenant_dirs = [
            join(tenants_dir, name)
            for name in await self._store.list_dir(tenants_dir)
            if self._store.is_dir(join(tenants_dir, name))
        ]
        if len(tenant_dirs) > 1:
            raise TreeStoreError(
                "Input directory holds several tenants; pass one tenant directory with -i."
            )
        return tenant_dirs[0] if tenant_dirs else tree_dir

    async def _json_files(self, directory: str) -> list[str]:
        return [
            name
            for name in await self._store.list_dir(directory)
            if is_json_file(name) and not self._store.is_dir(join(directory, name))
        ]

    async def _read_json(self, path: str) -> Any:
        return decode_json(await self._store.read_bytes(path))

    # ── Widgets ─────────────────────────────────────────────────────

    async def restore_widgets(self, session: Session, directory: str) -> list[ItemOutcome]:
        category = Category.WIDGETS.value
        files = await self._json_files(directory)

        async def worker(filename: str) -> ItemOutcome:
            title = name_from_file(filename)
            widget_types = await self._read_json(join(directory, filename))
            if isinstance(widget_types, dict):
                widget_types = widget_types.get("widgetTypes", [])

            bundle = await self._client.create(
                session, EntityKind.WIDGETS_BUNDLE, {"title": title, "alias": title.lower()}
            )
            bundle_alias = bundle.payload.get("alias") or title.lower()

            errors: list[str] = []
            for widget_type in widget_types:
                body = strip_source_fields(widget_type)
                body["bundleAlias"] = bundle_alias
                try:
                    await self._client.create(session, EntityKind.WIDGET_TYPE, body)
                except AuthenticationError:
                    raise
                except PlatformError as e:
                    self._log.step_error(
                        WalkStage.WIDGETS, f"Widget type '{body.get('name')}' failed", error=e
                    )
                    errors.append(str(body.get("name")))

            if errors:
                return ItemOutcome.failed(
                    category, title, f"{len(errors)} of {len(widget_types)} widget types failed"
                )
            self._log.detail(f"Widget bundle '{title}' restored", types=len(widget_types))
            return ItemOutcome(category, title)

        with self._log.timed_step(WalkStage.WIDGETS, "Restoring widget bundles", files=len(files)):
            return await self._fan_out(files, worker, category)

    # ── Devices ─────────────────────────────────────────────────────

    async def restore_devices(self, session: Session, directory: str) -> list[ItemOutcome]:
        category = Category.DEVICES.value
        files = await self._json_files(directory)

        async def worker(filename: str) -> ItemOutcome:
            backup = parse_device_file(await self._read_json(join(directory, filename)))
            return await self.restore_device(session, name_from_file(filename), backup)

        with self._log.timed_step(WalkStage.DEVICES, "Restoring devices", files=len(files)):
            return await self._fan_out(files, worker, category)

    async def restore_device(
        self, session: Session, name: str, backup: DeviceBackup
    ) -> ItemOutcome:
        """Create the device, or repair the credential of an existing one, then its attributes.

        Only the configured "already exists" error code leads to the repair
        path; any other creation error fails the device and skips its
        attributes.
        """
        category = Category.DEVICES.value
        state = DeviceRestoreState.CREATING
        problems: list[str] = []

        try:
            created = await self._client.create(
                session,
                EntityKind.DEVICE,
                {"name": name, "type": self._device_type},
                access_token=backup.access_token,
            )
            device_id = created.id
            state = DeviceRestoreState.CREATED
        except AuthenticationError:
            raise
        except PlatformError as e:
            if e.error_code != self._duplicate_error_code:
                self._log.step_error(WalkStage.DEVICES, f"Device '{name}' not created", error=e)
                return ItemOutcome(
                    category, name, OutcomeStatus.FAILED, detail=e.message,
                    state=DeviceRestoreState.FAILED,
                )
            state = DeviceRestoreState.DUPLICATE_DETECTED

            existing = await self._resolver.resolve(session, EntityKind.DEVICE, name)
            if existing is None:
                return ItemOutcome(
                    category, name, OutcomeStatus.FAILED,
                    detail="device reported as existing but not found by name",
                    state=DeviceRestoreState.FAILED,
                )
            device_id = existing.id
            state = DeviceRestoreState.LOCATED

            try:
                if await self._repair_credentials(session, device_id, backup.access_token):
                    state = DeviceRestoreState.CREDENTIAL_REPAIRED
            except AuthenticationError:
                raise
            except PlatformError as repair_error:
                self._log.step_error(
                    WalkStage.DEVICES, f"Access token of '{name}' not restored", error=repair_error
                )
                problems.append(f"credentials: {repair_error.message}")

        for scope in AttributeScope:
            attributes = backup.attribute_map(scope)
            if not attributes:
                continue
            try:
                await self._client.set_device_attributes(session, device_id, scope, attributes)
            except AuthenticationError:
                raise
            except PlatformError as e:
                self._log.step_error(
                    WalkStage.DEVICES, f"{scope.value} attributes of '{name}' not restored", error=e
                )
                problems.append(f"{scope.file_key}: {e.message}")

        if problems:
            return ItemOutcome(
                category, name, OutcomeStatus.FAILED, detail="; ".join(problems), state=state
            )
        self._log.detail(f"Device '{name}' restored", state=state.value)
        return ItemOutcome(category, name, state=state)

    async def _repair_credentials(
        self, session: Session, device_id: str, access_token: str | None
    ) -> bool:
        """Point the device credential at ``access_token``; False when nothing changed."""
        if not access_token:
            return False
        credentials = await self._client.get_device_credentials(session, device_id)
        if credentials.get("credentialsId") == access_token:
            return False
        await self._client.set_device_credentials(
            session, {**credentials, "credentialsId": access_token}
        )
        return True

    # ── Dashboards ──────────────────────────────────────────────────

    async def restore_dashboards(self, session: Session, directory: str) -> list[ItemOutcome]:
        category = Category.DASHBOARDS.value
        files = await self._json_files(directory)

        async def worker(filename: str) -> ItemOutcome:
            body = strip_source_fields(await self._read_json(join(directory, filename)))
            unresolved = await self.rewrite_device_aliases(session, body)
            await self.rewrite_assigned_customers(session, body)
            created = await self._client.create(session, EntityKind.DASHBOARD, body)
            name = created.name or name_from_file(filename)
            if unresolved:
                return ItemOutcome(
                    category, name, detail=f"unresolved device aliases: {', '.join(unresolved)}"
                )
            return ItemOutcome(category, name)

        with self._log.timed_step(WalkStage.DASHBOARDS, "Restoring dashboards", files=len(files)):
            return await self._fan_out(files, worker, category)

    async def rewrite_device_aliases(self, session: Session, dashboard: dict[str, Any]) -> list[str]:
        """Point single-device entity aliases at the target's devices, by alias name.

        Aliases that cannot be resolved keep their stale ID. Returns their names.
        """
        configuration = dashboard.get("configuration") or {}
        aliases = configuration.get("entityAliases") or {}
        unresolved: list[str] = []

        for alias in aliases.values():
            alias_filter = alias.get("filter") or {}
            single = alias_filter.get(SINGLE_ENTITY_FILTER) or {}
            if alias_filter.get("type") != SINGLE_ENTITY_FILTER:
                continue
            if single.get("entityType") != EntityKind.DEVICE.value:
                continue

            alias_name = alias.get("alias", "")
            device_id = await self._resolver.resolve_id(session, EntityKind.DEVICE, alias_name)
            if device_id is None:
                self._log.warning(f"Device alias '{alias_name}' left unresolved")
                unresolved.append(alias_name)
                continue
            single["id"] = device_id
        return unresolved

    async def rewrite_assigned_customers(self, session: Session, dashboard: dict[str, Any]) -> None:
        """Re-point assigned customers by title; drop the ones the target lacks."""
        assigned = dashboard.get("assignedCustomers")
        if not assigned:
            return

        kept: list[dict[str, Any]] = []
        for assignment in assigned:
            title = assignment.get("title", "")
            customer_id = await self._resolver.resolve_id(session, EntityKind.CUSTOMER, title)
            if customer_id is None:
                self._log.warning(f"Customer '{title}' not found; assignment dropped")
                continue
            customer_ref = dict(assignment.get("customerId") or {"entityType": "CUSTOMER"})
            customer_ref["id"] = customer_id
            kept.append({**assignment, "customerId": customer_ref})
        dashboard["assignedCustomers"] = kept

    # ── Helpers ─────────────────────────────────────────────────────

    async def _fan_out(self, files: list[str], worker, category: str) -> list[ItemOutcome]:
        return await fan_out(
            files,
            worker,
            category=category,
            name_of=name_from_file,
            limit=self._limit,
            timeout=self._timeout,
        )
