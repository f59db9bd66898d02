"""Platform REST infrastructure package."""

from .thingsboard_client import ThingsBoardClient

__all__ = ["ThingsBoardClient"]
