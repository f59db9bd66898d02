from .entity_client import EntityClient
from .tree_store import TreeStore

__all__ = [
    "EntityClient",
    "TreeStore",
]
