"""Unit tests for the LocalTreeStore."""

from datetime import datetime

import pytest

from tbmirror.infrastructure.storage import LocalTreeStore, snapshot_stamp


@pytest.mark.asyncio
async def test_write_creates_parents_and_reads_back(store: LocalTreeStore):
    await store.write_bytes("tenants/Acme/devices/D1.json", b"{}")

    assert store.is_dir("tenants/Acme/devices")
    assert await store.read_bytes("tenants/Acme/devices/D1.json") == b"{}"


@pytest.mark.asyncio
async def test_list_dir_is_sorted(store: LocalTreeStore):
    await store.write_bytes("d/b.json", b"1")
    await store.write_bytes("d/a.json", b"2")
    await store.make_dirs("d/c")

    assert await store.list_dir("d") == ["a.json", "b.json", "c"]


@pytest.mark.asyncio
async def test_remove_tree(store: LocalTreeStore):
    await store.write_bytes("d/x/y.json", b"1")

    await store.remove_tree("d")
    await store.remove_tree("missing")

    assert not store.exists("d")


def test_paths_cannot_escape_root(store: LocalTreeStore):
    with pytest.raises(ValueError):
        store.exists("../outside")


def test_snapshot_stamp_is_digits_only():
    assert snapshot_stamp(datetime(2024, 3, 9, 7, 5, 1)) == "240309070501"
