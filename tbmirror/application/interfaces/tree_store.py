"""Abstract tree store interface (port) for backup snapshots."""

from abc import ABC, abstractmethod


class TreeStore(ABC):
    """Port for a hierarchical byte store keyed by ``/``-separated paths."""

    @abstractmethod
    async def make_dirs(self, path: str) -> None:
        """Create a directory and any missing parents."""
        ...

    @abstractmethod
    async def remove_tree(self, path: str) -> None:
        """Remove a directory and everything below it; no-op when absent."""
        ...

    @abstractmethod
    async def write_bytes(self, path: str, content: bytes) -> None:
        """Write a file, creating parent directories as needed."""
        ...

    @abstractmethod
    async def read_bytes(self, path: str) -> bytes:
        """Read a file's content."""
        ...

    @abstractmethod
    async def list_dir(self, path: str) -> list[str]:
        """Return the sorted entry names (files and directories) of a directory."""
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether a file or directory exists."""
        ...

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Check whether ``path`` is a directory."""
        ...
