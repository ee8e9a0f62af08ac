"""
grpg_library/reference_resolver.py -- Resolve id references against the content store.

Two questions are answered here, and neither ever raises on a miss:

1. Does each id in a reference field exist in the category it should?
   (:meth:`ReferenceResolver.resolve`)
2. Does an ability's ``grantedBy`` owner exist, and does the owner list the
   ability back in its own forward field?  (:meth:`ReferenceResolver.check_granted_by`)

Back-link fields per owner type:

    race    -> mechanics.innateAbilities
    class   -> mechanics.startingAbilities
    circle  -> mechanics.signatureAbilities
    origin  -> mechanics.startingAbility

Traits and items can grant abilities but have no back-link field, so
symmetry is not checked for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from grpg_library.schema_registry import (
    ANY_CATEGORY,
    BACK_LINK_FIELDS,
    CATEGORY_FOR_TYPE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one id.

    ``actual_category`` is set when the id was not found in the expected
    category but exists elsewhere in the library.
    """

    id: str
    found: bool
    actual_category: Optional[str] = None


@dataclass(frozen=True)
class GrantedByCheck:
    ability_id: str
    owner_type: str
    owner_id: str
    owner_found: bool
    # None when the owner type has no back-link field or the owner is missing
    back_linked: Optional[bool] = None
    back_link_fields: tuple[str, ...] = ()

    @property
    def asymmetric(self) -> bool:
        return self.back_linked is False


class ReferenceResolver:
    """Read-only reference lookups over a :class:`ContentStore`."""

    def __init__(self, store):
        self.store = store

    def resolve_one(self, record_id: str, expected_category: str) -> Resolution:
        if expected_category == ANY_CATEGORY:
            return Resolution(record_id, record_id in self.store)
        if self.store.has(expected_category, record_id):
            return Resolution(record_id, True)
        elsewhere = self.store.categories_of(record_id)
        return Resolution(record_id, False, elsewhere[0] if elsewhere else None)

    def resolve(self, ids: Iterable[str], expected_category: str) -> list[tuple[str, bool]]:
        """Resolve every id in *ids* against *expected_category*.

        Returns ``(id, found)`` pairs in input order.  Use
        :meth:`resolve_detailed` to also learn where a misplaced id lives.
        """
        return [(r.id, r.found) for r in self.resolve_detailed(ids, expected_category)]

    def resolve_detailed(self, ids: Iterable[str], expected_category: str) -> list[Resolution]:
        return [self.resolve_one(record_id, expected_category) for record_id in ids]

    def check_granted_by(self, ability_id: str, granted_by: Mapping) -> Optional[GrantedByCheck]:
        """Check the owner named by an ability's ``grantedBy`` block.

        Returns ``None`` if *granted_by* is not a well-formed
        ``{type, id}`` mapping with a known owner type; shape problems are
        the structural check's concern.
        """
        if not isinstance(granted_by, Mapping):
            return None
        owner_type = granted_by.get("type")
        owner_id = granted_by.get("id")
        category = CATEGORY_FOR_TYPE.get(owner_type) if isinstance(owner_type, str) else None
        if category is None or not isinstance(owner_id, str) or not owner_id:
            return None

        if not self.store.has(category, owner_id):
            return GrantedByCheck(ability_id, owner_type, owner_id, owner_found=False)

        fields = BACK_LINK_FIELDS.get(owner_type, ())
        if not fields:
            return GrantedByCheck(ability_id, owner_type, owner_id, owner_found=True)

        owner = self.store.get(category, owner_id)
        mechanics = owner.get("mechanics") if isinstance(owner, Mapping) else None
        linked = False
        if isinstance(mechanics, Mapping):
            for name in fields:
                value = mechanics.get(name)
                if value == ability_id or (isinstance(value, list) and ability_id in value):
                    linked = True
                    break
        if not linked:
            logger.debug("'%s' names %s '%s' in grantedBy but is not listed back",
                         ability_id, owner_type, owner_id)
        return GrantedByCheck(ability_id, owner_type, owner_id, owner_found=True,
                              back_linked=linked, back_link_fields=fields)
