"""Reference resolver — maps display names to live IDs on the target installation."""

import logging

from tbmirror.application.interfaces import EntityClient
from tbmirror.domain.entities import Entity, EntityKind, Session
from tbmirror.domain.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)


def kind_label(kind: EntityKind) -> str:
    """Human label for messages, e.g. ``RULE_CHAIN`` -> ``Rule chain``."""
    return kind.value.replace("_", " ").capitalize()


class ReferenceResolver:
    """Looks up live entities by display name through the platform text search.

    Names are display names, not stable keys: when several live entities
    share a name the first match wins and a warning is logged. Lookups are
    independent; nothing is cached.
    """

    def __init__(self, client: EntityClient, *, page_size: int = 1):
        self._client = client
        self._page_size = max(page_size, 1)

    async def resolve(self, session: Session, kind: EntityKind, name: str) -> Entity | None:
        """Return the live entity named ``name``, or None when there is none.

        Matching is exact, ignoring case; an exact-case match is preferred.
        The platform's text search matches substrings, so pages are followed
        until a second match shows the name is ambiguous or the search
        results run out.
        """
        folded = name.casefold()
        matches: list[Entity] = []
        page_number = 0
        while True:
            page = await self._client.list_page(
                session, kind, page=page_number, page_size=self._page_size, text_search=name
            )
            matches.extend(e for e in page.data if e.name.casefold() == folded)
            if len(matches) > 1 or not page.has_next:
                break
            page_number += 1

        exact = [e for e in matches if e.name == name]
        candidates = exact or matches

        if not candidates:
            logger.debug("%s '%s' not found on target", kind_label(kind), name)
            return None
        if len(matches) > 1:
            logger.warning(
                "%s name '%s' is not unique; using %s",
                kind_label(kind),
                name,
                candidates[0].id,
            )
        return candidates[0]

    async def resolve_id(self, session: Session, kind: EntityKind, name: str) -> str | None:
        entity = await self.resolve(session, kind, name)
        return entity.id if entity else None

    async def require(self, session: Session, kind: EntityKind, name: str) -> Entity:
        """Like ``resolve`` but raises EntityNotFoundError when nothing matches."""
        entity = await self.resolve(session, kind, name)
        if entity is None:
            raise EntityNotFoundError(kind_label(kind), name)
        return entity
