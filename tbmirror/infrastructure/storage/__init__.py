"""Backup tree storage infrastructure package."""

from .local_tree_store import LocalTreeStore, snapshot_stamp

__all__ = ["LocalTreeStore", "snapshot_stamp"]
