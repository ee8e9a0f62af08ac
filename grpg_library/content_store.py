"""
grpg_library/content_store.py -- In-memory library of records, grouped by category.

The store is an explicitly constructed object handed to the validator and
the query facade; there is no process-wide library.  It performs no
validation beyond keeping ids unique: malformed records are accepted and
left for the validator to report.

Ids are unique across the whole library by default (``unique_scope=
"global"``).  ``unique_scope="category"`` only requires uniqueness inside
each category bucket.

Usage::

    from grpg_library.content_store import ContentStore

    store = ContentStore()
    store.add("races", race_record)
    store.get("races", "race-tettari")
    store.all_of("traits")             # insertion order
    store.seal()                       # read-only from here on
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterator, Mapping, Optional

from grpg_library.exceptions import (
    DuplicateIdError,
    MissingIdError,
    RecordNotFoundError,
    StoreSealedError,
    UnknownCategoryError,
)
from grpg_library.models.attribute_mods import (
    KNOWN_ATTRIBUTES,
    AttributeMods,
    parse_attribute_mods,
)
from grpg_library.schema_registry import CATEGORIES

logger = logging.getLogger(__name__)

UNIQUE_SCOPES = ("global", "category")


class ContentStore:
    """Records keyed by id inside fixed category buckets.

    Parameters
    ----------
    unique_scope : str
        ``"global"`` (default) or ``"category"``.
    known_attributes : iterable of str, optional
        Attribute names treated as fixed mods when ``attributeMods`` blocks
        are parsed on insert.
    """

    def __init__(self, unique_scope: str = "global", known_attributes=None):
        if unique_scope not in UNIQUE_SCOPES:
            raise ValueError(
                f"unique_scope must be one of {UNIQUE_SCOPES}, got '{unique_scope}'"
            )
        self.unique_scope = unique_scope
        self._known_attributes = frozenset(known_attributes or KNOWN_ATTRIBUTES)
        self._buckets: dict[str, dict[str, dict]] = {c: {} for c in CATEGORIES}
        # id -> categories holding it, in insertion order
        self._index: dict[str, list[str]] = {}
        self._attribute_mods: dict[tuple[str, str], AttributeMods] = {}
        self._sealed = False
        self._revision = 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, category: str, record: Mapping[str, Any], key: Optional[str] = None) -> str:
        """Insert *record* into *category* and return the id it is stored under.

        The record is deep-copied; later changes to the caller's object do
        not leak into the store.  The store is unchanged if this raises.

        Parameters
        ----------
        category : str
            One of :data:`CATEGORIES`.
        record : Mapping
            Raw record data.  Not validated.
        key : str, optional
            Id to store the record under.  Defaults to ``record["id"]``.
            Library files key records by id, so the loader passes the file
            key here and the validator later checks it matches ``id``.

        Raises
        ------
        UnknownCategoryError
            *category* is not a library bucket.
        MissingIdError
            No *key* given and the record has no string ``id``.
        DuplicateIdError
            The id is already taken under the active uniqueness scope.
        StoreSealedError
            :meth:`seal` was called.
        """
        if self._sealed:
            raise StoreSealedError("The content store is sealed; no further records can be added.")
        bucket = self._bucket(category)

        if key is None:
            key = record.get("id") if isinstance(record, Mapping) else None
        if not isinstance(key, str) or not key:
            raise MissingIdError(
                f"Cannot add a record to '{category}' without an id."
            )

        holders = self._index.get(key, [])
        if key in bucket:
            raise DuplicateIdError(key, category, category)
        if self.unique_scope == "global" and holders:
            raise DuplicateIdError(key, category, holders[0])

        stored = copy.deepcopy(dict(record)) if isinstance(record, Mapping) else record
        mods = self._parse_mods(stored)

        bucket[key] = stored
        self._index.setdefault(key, []).append(category)
        if mods is not None:
            self._attribute_mods[(category, key)] = mods
        self._revision += 1
        logger.debug("Added '%s' to %s", key, category)
        return key

    def _parse_mods(self, record) -> Optional[AttributeMods]:
        mechanics = record.get("mechanics") if isinstance(record, dict) else None
        mods = mechanics.get("attributeMods") if isinstance(mechanics, dict) else None
        if not isinstance(mods, dict):
            return None
        return parse_attribute_mods(mods, self._known_attributes)

    def seal(self) -> None:
        """Make the store read-only.  Safe to share between readers afterwards."""
        self._sealed = True
        logger.debug("Content store sealed with %d records", len(self))

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def revision(self) -> int:
        """Incremented on every successful :meth:`add`."""
        return self._revision

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _bucket(self, category: str) -> dict[str, dict]:
        try:
            return self._buckets[category]
        except (KeyError, TypeError):
            raise UnknownCategoryError(category) from None

    def get(self, category: str, record_id: str) -> dict:
        """Return the record stored under *record_id* in *category*.

        Raises :class:`RecordNotFoundError` on a miss.
        """
        bucket = self._bucket(category)
        try:
            return bucket[record_id]
        except KeyError:
            raise RecordNotFoundError(record_id, category) from None

    def has(self, category: str, record_id: str) -> bool:
        return record_id in self._bucket(category)

    def all_of(self, category: str) -> list[dict]:
        """Every record in *category*, in insertion order."""
        return list(self._bucket(category).values())

    def items(self, category: str) -> list[tuple[str, dict]]:
        """``(id, record)`` pairs of *category*, in insertion order."""
        return list(self._bucket(category).items())

    @staticmethod
    def categories() -> tuple[str, ...]:
        """The fixed category names, in declaration order."""
        return CATEGORIES

    def find(self, record_id: str) -> Optional[tuple[str, dict]]:
        """Return ``(category, record)`` for *record_id* in any category, or ``None``.

        Under ``unique_scope="category"`` an id may live in several
        buckets; the first in declaration order wins.
        """
        holders = self._index.get(record_id)
        if not holders:
            return None
        category = min(holders, key=CATEGORIES.index)
        return category, self._buckets[category][record_id]

    def categories_of(self, record_id: str) -> list[str]:
        """Every category holding *record_id*, in declaration order."""
        return sorted(self._index.get(record_id, []), key=CATEGORIES.index)

    def attribute_mods(self, category: str, record_id: str) -> Optional[AttributeMods]:
        """The ``attributeMods`` block parsed at insert time, or ``None``."""
        self.get(category, record_id)
        return self._attribute_mods.get((category, record_id))

    def counts(self) -> dict[str, int]:
        return {c: len(b) for c, b in self._buckets.items()}

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __contains__(self, record_id) -> bool:
        return record_id in self._index

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def __iter__(self) -> Iterator[tuple[str, str, dict]]:
        """Yield ``(category, id, record)`` in category then insertion order."""
        for category in CATEGORIES:
            for key, record in self._buckets[category].items():
                yield category, key, record

    def __repr__(self) -> str:
        return f"ContentStore({len(self)} records, unique_scope='{self.unique_scope}')"
