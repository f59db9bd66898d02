"""Exporter — walks the platform's entity hierarchy into the backup tree.

Per tenant::

    tenants/<tenant>.json
    tenants/<tenant>/{ruleChains,widgets,dashboards,devices,customers}/<name>.json
    tenants/<tenant>/customers/<customer>/<user>.json
    tenants/<tenant>/tenantAdmins/<user>.json      (system administrator walks)

Every category directory is wiped before it is populated, so a snapshot
never carries entities left over from a previous run.
"""

import asyncio
import logging
from collections.abc import Awaitable

from tbmirror.application.interfaces import EntityClient, TreeStore
from tbmirror.application.services.fan_out import fan_out
from tbmirror.application.services.tree_paths import (
    TENANT_ADMINS_DIR,
    TENANTS_DIR,
    Category,
    encode_json,
    file_name,
    join,
    safe_stem,
)
from tbmirror.domain.entities import (
    AttributeScope,
    DeviceBackup,
    Entity,
    EntityKind,
    ItemOutcome,
    RunReport,
    Session,
    strip_volatile,
)
from tbmirror.domain.exceptions import AuthenticationError, PlatformError
from tbmirror.infrastructure.logging.colored_logger import WalkLogger, WalkStage

logger = logging.getLogger(__name__)

_STAGES = {
    Category.RULE_CHAINS: WalkStage.RULE_CHAINS,
    Category.WIDGETS: WalkStage.WIDGETS,
    Category.DASHBOARDS: WalkStage.DASHBOARDS,
    Category.DEVICES: WalkStage.DEVICES,
    Category.CUSTOMERS: WalkStage.CUSTOMERS,
}


class Exporter:
    """Application service — full, non-incremental snapshot of a tenant (or all tenants)."""

    def __init__(
        self,
        client: EntityClient,
        store: TreeStore,
        *,
        list_page_size: int = 1000,
        max_concurrency: int = 8,
        item_timeout: float | None = None,
    ):
        self._client = client
        self._store = store
        self._page_size = list_page_size
        self._limit = max_concurrency
        self._timeout = item_timeout
        self._log = WalkLogger("Exporter")

    async def export(self, session: Session, root: str = "") -> RunReport:
        """Export everything the session can see below ``root``.

        A system administrator session walks every tenant; any other
        session exports its own tenant.
        """
        if session.is_sys_admin:
            return await self.export_system(session, root)

        tenant = await self._load_own_tenant(session)
        await self._write(join(root, TENANTS_DIR, self._file_name(tenant.name)), tenant.stripped())
        return await self.export_tenant(session, tenant, root)

    # ── System administrator walk ───────────────────────────────────

    async def export_system(self, session: Session, root: str = "") -> RunReport:
        """Export all tenants, each under a token issued for one of its admins.

        Tenants are walked one after another; each walk uses its own
        Session, never a shared credential.
        """
        report = RunReport()
        tenants = await self._client.list_all(session, EntityKind.TENANT, page_size=self._page_size)
        self._log.stats(tenants=len(tenants))

        for summary in tenants:
            try:
                report.merge(await self._export_tenant_as_admin(session, summary, root))
            except AuthenticationError:
                raise
            except Exception as e:
                self._log.step_error(WalkStage.TENANT, f"Tenant '{summary.name}' failed", error=e)
                report.add(ItemOutcome.failed("tenants", summary.name, e))
        return report

    async def _export_tenant_as_admin(
        self, session: Session, summary: Entity, root: str
    ) -> RunReport:
        report = RunReport()
        tenant = await self._client.get(session, EntityKind.TENANT, summary.id)
        tenant_dir = join(root, TENANTS_DIR, safe_stem(tenant.name))
        self._log.separator(tenant.name)

        await self._write(join(root, TENANTS_DIR, self._file_name(tenant.name)), tenant.stripped())
        report.add(ItemOutcome("tenants", tenant.name))

        admins = await self._client.list_users(session, EntityKind.TENANT, tenant.id)
        admins_dir = join(tenant_dir, TENANT_ADMINS_DIR)
        await self._store.remove_tree(admins_dir)
        await self._store.make_dirs(admins_dir)
        for admin in admins:
            await self._write(join(admins_dir, self._file_name(admin.name)), admin.stripped())
            report.add(ItemOutcome(TENANT_ADMINS_DIR, admin.name))

        if not admins:
            self._log.warning("No tenant admin to act as; categories skipped", tenant=tenant.name)
            report.add(ItemOutcome.skipped("tenants", tenant.name, "no tenant admin"))
            return report

        token = await self._client.issue_token(session, admins[0].id)
        tenant_session = session.for_tenant(token, tenant.id, admins[0].id)
        return report.merge(await self.export_tenant(tenant_session, tenant, root))

    # ── Tenant walk ─────────────────────────────────────────────────

    async def export_tenant(self, session: Session, tenant: Entity, root: str = "") -> RunReport:
        """Export the five categories of one tenant concurrently."""
        tenant_dir = join(root, TENANTS_DIR, safe_stem(tenant.name))

        for category in Category:
            category_dir = join(tenant_dir, category.value)
            await self._store.remove_tree(category_dir)
            await self._store.make_dirs(category_dir)

        with self._log.timed_step(WalkStage.TENANT, f"Exporting tenant '{tenant.name}'"):
            results = await asyncio.gather(
                self._guard(Category.RULE_CHAINS, self._export_rule_chains(session, tenant_dir)),
                self._guard(Category.WIDGETS, self._export_widgets(session, tenant_dir)),
                self._guard(Category.DASHBOARDS, self._export_dashboards(session, tenant_dir)),
                self._guard(Category.DEVICES, self._export_devices(session, tenant_dir)),
                self._guard(Category.CUSTOMERS, self._export_customers(session, tenant_dir)),
            )

        report = RunReport()
        for outcomes in results:
            report.extend(outcomes)
        self._log.stats(
            tenant=tenant.name,
            succeeded=report.succeeded,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report

    async def _guard(
        self, category: Category, work: Awaitable[list[ItemOutcome]]
    ) -> list[ItemOutcome]:
        """Turn a category-level failure (e.g. the listing call) into one failed outcome."""
        stage = _STAGES[category]
        try:
            outcomes = await work
        except AuthenticationError:
            raise
        except Exception as e:
            self._log.step_error(stage, f"Listing {category.value} failed", error=e)
            return [ItemOutcome.failed(category.value, "*", e)]
        self._log.step_complete(stage, f"{category.value} exported", count=len(outcomes))
        return outcomes

    # ── Categories ──────────────────────────────────────────────────

    async def _export_rule_chains(self, session: Session, tenant_dir: str) -> list[ItemOutcome]:
        category = Category.RULE_CHAINS.value
        summaries = await self._client.list_all(
            session, EntityKind.RULE_CHAIN, page_size=self._page_size
        )

        async def worker(summary: Entity) -> ItemOutcome:
            body = await self._client.get(session, EntityKind.RULE_CHAIN, summary.id)
            await self._write(join(tenant_dir, category, self._file_name(summary.name)), body.stripped())
            return ItemOutcome(category, summary.name)

        return await self._fan_out(summaries, worker, category)

    async def _export_widgets(self, session: Session, tenant_dir: str) -> list[ItemOutcome]:
        category = Category.WIDGETS.value
        page = await self._client.list_page(session, EntityKind.WIDGETS_BUNDLE)
        owned: list[Entity] = []
        outcomes: list[ItemOutcome] = []
        for bundle in page.data:
            if bundle.tenant_id != session.tenant_id:
                self._log.detail(f"Skipping system widget bundle '{bundle.name}'")
                outcomes.append(ItemOutcome.skipped(category, bundle.name, "system bundle"))
            else:
                owned.append(bundle)

        async def worker(bundle: Entity) -> ItemOutcome:
            widget_types = await self._client.list_widget_types(
                session, bundle.payload.get("alias", ""), is_system=False
            )
            await self._write(
                join(tenant_dir, category, self._file_name(bundle.name)),
                [widget_type.stripped() for widget_type in widget_types],
            )
            return ItemOutcome(category, bundle.name)

        return outcomes + await self._fan_out(owned, worker, category)

    async def _export_dashboards(self, session: Session, tenant_dir: str) -> list[ItemOutcome]:
        category = Category.DASHBOARDS.value
        summaries = await self._client.list_all(
            session, EntityKind.DASHBOARD, page_size=self._page_size
        )

        async def worker(summary: Entity) -> ItemOutcome:
            body = await self._client.get(session, EntityKind.DASHBOARD, summary.id)
            await self._write(join(tenant_dir, category, self._file_name(summary.name)), body.stripped())
            return ItemOutcome(category, summary.name)

        return await self._fan_out(summaries, worker, category)

    async def _export_devices(self, session: Session, tenant_dir: str) -> list[ItemOutcome]:
        category = Category.DEVICES.value
        devices = await self._client.list_all(
            session, EntityKind.DEVICE, page_size=self._page_size
        )

        async def worker(device: Entity) -> ItemOutcome:
            backup = await self.snapshot_device(session, device.id)
            await self._write(join(tenant_dir, category, self._file_name(device.name)), backup.to_json())
            return ItemOutcome(category, device.name)

        return await self._fan_out(devices, worker, category)

    async def snapshot_device(self, session: Session, device_id: str) -> DeviceBackup:
        """Collect a device's three attribute scopes and its access token."""
        scopes = list(AttributeScope)
        attribute_lists = await asyncio.gather(
            *(self._client.get_device_attributes(session, device_id, scope) for scope in scopes)
        )
        credentials = await self._client.get_device_credentials(session, device_id)
        return DeviceBackup(
            access_token=credentials.get("credentialsId"),
            attributes={
                scope: strip_volatile(attributes)
                for scope, attributes in zip(scopes, attribute_lists)
            },
        )

    async def _export_customers(self, session: Session, tenant_dir: str) -> list[ItemOutcome]:
        category = Category.CUSTOMERS.value
        summaries = await self._client.list_all(
            session, EntityKind.CUSTOMER, page_size=self._page_size
        )

        async def worker(summary: Entity) -> ItemOutcome:
            customer = await self._client.get(session, EntityKind.CUSTOMER, summary.id)
            await self._write(
                join(tenant_dir, category, self._file_name(customer.name)), customer.stripped()
            )
            users = await self._client.list_users(session, EntityKind.CUSTOMER, customer.id)
            users_dir = join(tenant_dir, category, safe_stem(customer.name))
            for user in users:
                await self._write(join(users_dir, self._file_name(user.name)), user.stripped())
            return ItemOutcome(category, customer.name, detail=f"{len(users)} users")

        return await self._fan_out(summaries, worker, category)

    # ── Helpers ─────────────────────────────────────────────────────

    async def _fan_out(self, entities: list[Entity], worker, category: str) -> list[ItemOutcome]:
        return await fan_out(
            entities,
            worker,
            category=category,
            name_of=lambda entity: entity.name,
            limit=self._limit,
            timeout=self._timeout,
        )

    def _file_name(self, name: str) -> str:
        """File name for an entity; warns when the display name had to be altered."""
        stem = safe_stem(name)
        if stem != name:
            self._log.warning(f"'{name}' saved as '{stem}.json'; a restore will use that name")
        return file_name(name)

    async def _write(self, path: str, data: object) -> None:
        await self._store.write_bytes(path, encode_json(data))
        self._log.detail(f"Saved {path}")

    async def _load_own_tenant(self, session: Session) -> Entity:
        """Fetch the session's tenant; fall back to its ID as the directory name."""
        try:
            return await self._client.get(session, EntityKind.TENANT, session.tenant_id)
        except AuthenticationError:
            raise
        except PlatformError as e:
            logger.warning("Could not read tenant %s (%s); using its ID as name", session.tenant_id, e)
            return Entity.from_json(
                EntityKind.TENANT,
                {"id": {"entityType": "TENANT", "id": session.tenant_id}, "title": session.tenant_id},
            )
