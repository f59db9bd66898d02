"""Backup tree layout: category directories, file naming and JSON encoding."""

import json
from enum import Enum
from typing import Any

TENANTS_DIR = "tenants"
TENANT_ADMINS_DIR = "tenantAdmins"
JSON_SUFFIX = ".json"


class Category(str, Enum):
    """Per-tenant category directories, valued as their directory names."""

    RULE_CHAINS = "ruleChains"
    WIDGETS = "widgets"
    DASHBOARDS = "dashboards"
    DEVICES = "devices"
    CUSTOMERS = "customers"


# Categories a restore run processes when none are selected explicitly.
RESTORE_CATEGORIES = (
    Category.DASHBOARDS,
    Category.RULE_CHAINS,
    Category.WIDGETS,
    Category.DEVICES,
)


def join(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


def safe_stem(name: str) -> str:
    """Make a display name usable as a single path segment."""
    stem = name.replace("/", "_").replace("\\", "_").strip()
    if stem in ("", ".", ".."):
        return "_"
    return stem


def file_name(name: str) -> str:
    return f"{safe_stem(name)}{JSON_SUFFIX}"


def name_from_file(filename: str) -> str:
    """Recover the display name from ``<name>.json`` (keeps inner dots)."""
    if "." not in filename:
        return filename
    return filename.rsplit(".", 1)[0]


def is_json_file(filename: str) -> bool:
    return filename.endswith(JSON_SUFFIX) and not filename.startswith(".")


def encode_json(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")


def decode_json(content: bytes) -> Any:
    return json.loads(content.decode("utf-8"))
