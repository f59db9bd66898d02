"""Domain entity for the explicit platform session (replaces ambient auth state)."""

from dataclasses import dataclass, replace
from enum import Enum


class Authority(str, Enum):
    """Platform user authorities."""

    SYS_ADMIN = "SYS_ADMIN"
    TENANT_ADMIN = "TENANT_ADMIN"
    CUSTOMER_USER = "CUSTOMER_USER"


@dataclass(frozen=True)
class Session:
    """Credential and identity threaded explicitly through every client call.

    Immutable, so concurrent tenant walks each hold their own session
    instead of swapping a process-wide token.
    """

    token: str
    authority: Authority = Authority.TENANT_ADMIN
    tenant_id: str | None = None
    user_id: str | None = None

    @property
    def is_sys_admin(self) -> bool:
        return self.authority == Authority.SYS_ADMIN

    def for_tenant(self, token: str, tenant_id: str, user_id: str | None = None) -> "Session":
        """Derive a tenant-admin session from a token issued for one of its admins."""
        return replace(
            self,
            token=token,
            authority=Authority.TENANT_ADMIN,
            tenant_id=tenant_id,
            user_id=user_id,
        )
