"""Local filesystem tree store for backup snapshots.

Storage layout (rooted per target installation)::

    <root>/tenants/<tenantName>.json
    <root>/tenants/<tenantName>/tenantAdmins/<userName>.json
    <root>/tenants/<tenantName>/{ruleChains,widgets,dashboards,devices,customers}/<name>.json
    <root>/tenants/<tenantName>/customers/<customerName>/<userName>.json
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path

from tbmirror.application.interfaces import TreeStore

logger = logging.getLogger(__name__)


def snapshot_stamp(now: datetime | None = None) -> str:
    """Return a digits-only local timestamp for snapshot directories: YYMMDDHHmmss."""
    return (now or datetime.now()).strftime("%y%m%d%H%M%S")


class LocalTreeStore(TreeStore):
    """Infrastructure adapter — stores the backup tree under a root directory."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        """Map a store path onto the filesystem, refusing to escape the root."""
        target = (self._root / path).resolve()
        root = self._root.resolve()
        if target != root and root not in target.parents:
            raise ValueError(f"Path escapes the tree store root: {path}")
        return target

    # ── Directories ─────────────────────────────────────────────────

    async def make_dirs(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    async def remove_tree(self, path: str) -> None:
        target = self._resolve(path)
        if target.is_dir():
            shutil.rmtree(target)
            logger.debug("Removed directory: %s", target)
        elif target.exists():
            target.unlink()

    async def list_dir(self, path: str) -> list[str]:
        target = self._resolve(path)
        return sorted(entry.name for entry in target.iterdir())

    # ── Files ───────────────────────────────────────────────────────

    async def write_bytes(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.debug("Stored file: %s (%d bytes)", target, len(content))

    async def read_bytes(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    # ── Utilities ───────────────────────────────────────────────────

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def is_dir(self, path: str) -> bool:
        return self._resolve(path).is_dir()
