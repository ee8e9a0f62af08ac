"""
grpg_library/tag_dictionary.py -- Central dictionary of filter tags.

Every tag a record carries must be defined here.  Tags use the
``category:value`` convention (``type:race``, ``faction:wardens``,
``source:supplement:wardens``); the *category* is the text before the
first colon and must agree with the entry's declared category.

The dictionary is immutable once constructed.  ``TagDictionary.default()``
returns the dictionary shipped with the core library.

Usage::

    from grpg_library.tag_dictionary import TagDictionary

    tags = TagDictionary.default()
    tags.lookup("faction:wardens").description
    "role:martial" in tags                     # True
    tags.all_categories()                      # frozenset({'type', 'role', ...})
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Iterator, Mapping

from pydantic import BaseModel, ConfigDict, Field

from grpg_library.exceptions import TagNotFoundError

logger = logging.getLogger(__name__)

# category:value, lowercase, value may itself contain further colons
TAG_NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*:[a-z0-9:-]+$")


class TagEntry(BaseModel):
    """One tag definition."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    tag_name: str = Field(alias="tagName")
    category: str
    description: str = ""

    @property
    def prefix(self) -> str:
        """Category encoded in the tag name itself (text before the first colon)."""
        return tag_prefix(self.tag_name)


def tag_prefix(tag_name: str) -> str:
    """Return the part of *tag_name* before the first ``:``, or ``""``."""
    head, sep, _ = tag_name.partition(":")
    return head if sep else ""


# ------------------------------------------------------------------
# Default dictionary
# ------------------------------------------------------------------

DEFAULT_TAGS: dict[str, dict[str, str]] = {
    # Type tags: what kind of thing is this?
    "type:race": {
        "category": "type",
        "description": "Marks a record as a Race (e.g., Tettari, Feyrdrin, Wildeman).",
    },
    "type:class": {
        "category": "type",
        "description": "Marks a record as a Class (e.g., Ranger, Warden, Arcanist).",
    },
    "type:origin": {
        "category": "type",
        "description": "Marks a record as an Origin / background-style record.",
    },
    "type:circle": {
        "category": "type",
        "description": "Marks a record as a Circle (magic / specialty groups).",
    },
    "type:trait": {
        "category": "type",
        "description": "Marks a record as an Adventuring Trait (passive bonuses).",
    },
    "type:ability": {
        "category": "type",
        "description": "Marks a record as an Adventuring Ability (active moves).",
    },
    "type:item": {
        "category": "type",
        "description": "Marks a record as an item (weapon, armor, gear, etc.).",
    },
    "type:profession": {
        "category": "type",
        "description": "Marks a record as a Profession / non-combat role.",
    },
    "type:condition": {
        "category": "type",
        "description": "Marks a record as a Status Condition.",
    },
    # Faction / alignment
    "faction:wardens": {
        "category": "faction",
        "description": "Belongs to or is strongly associated with the Wardens.",
    },
    "faction:underground": {
        "category": "faction",
        "description": "Tied to underground-focused groups, cultures, or powers.",
    },
    "faction:neutral": {
        "category": "faction",
        "description": "Deliberately neutral / unaffiliated with major factions.",
    },
    # Realm / environment
    "realm:surface": {
        "category": "realm",
        "description": "Primarily associated with surface regions of Daelinar.",
    },
    "realm:underground": {
        "category": "realm",
        "description": "Primarily associated with subterranean regions.",
    },
    "realm:astral": {
        "category": "realm",
        "description": "Associated with astral / Weave / fleet contexts.",
    },
    # Role / gameplay function
    "role:martial": {
        "category": "role",
        "description": "Focuses on physical combat, weapons, toughness.",
    },
    "role:skirmisher": {
        "category": "role",
        "description": "Mobile, hit-and-run, often ranged or agile melee.",
    },
    "role:caster": {
        "category": "role",
        "description": "Primarily interacts with the Weave / magic systems.",
    },
    "role:support": {
        "category": "role",
        "description": "Buffs allies, debuffs enemies, or controls the field.",
    },
    "role:utility": {
        "category": "role",
        "description": "Primarily provides exploration, social, or non-combat tools.",
    },
    # Power / progression
    "tier:basic": {
        "category": "tier",
        "description": "Starting-level content, safe for new characters.",
    },
    "tier:advanced": {
        "category": "tier",
        "description": "Mid-level power, requires some character progression.",
    },
    "tier:elite": {
        "category": "tier",
        "description": "High-level / rare content; powerful or campaign-defining.",
    },
    "status:core": {
        "category": "status",
        "description": "Core rulebook content; stable and part of the main game.",
    },
    "status:playtest": {
        "category": "status",
        "description": "Experimental content; subject to change or removal.",
    },
    # Source / metadata
    "source:core-rulebook": {
        "category": "source",
        "description": "Published in the main Core Rulebook.",
    },
    "source:supplement:wardens": {
        "category": "source",
        "description": "From a Wardens-focused supplement or expansion.",
    },
}


# ------------------------------------------------------------------
# TagDictionary
# ------------------------------------------------------------------

class TagDictionary:
    """Immutable mapping of tag name -> :class:`TagEntry`.

    Parameters
    ----------
    entries : iterable of TagEntry
        Tag definitions.  A later entry with the same name replaces an
        earlier one (logged at WARNING).
    """

    def __init__(self, entries=()):
        table: dict[str, TagEntry] = {}
        for entry in entries:
            if entry.tag_name in table:
                logger.warning("Tag '%s' defined more than once; keeping the last definition",
                               entry.tag_name)
            table[entry.tag_name] = entry
        self._entries = MappingProxyType(table)
        self._categories = frozenset(e.category for e in table.values())

    # -- construction ---------------------------------------------------

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping]) -> "TagDictionary":
        """Build a dictionary from the ``{tagName: {category, description}}`` shape
        used by library files.

        Raises ``pydantic.ValidationError`` if an entry is not a mapping with a
        string ``category``.
        """
        entries = []
        for tag_name, body in mapping.items():
            data = dict(body) if isinstance(body, Mapping) else {"category": body}
            data["tagName"] = tag_name
            entries.append(TagEntry.model_validate(data))
        return cls(entries)

    @classmethod
    def default(cls) -> "TagDictionary":
        """The tag dictionary shipped with the core library."""
        return cls.from_mapping(DEFAULT_TAGS)

    def extended(self, mapping: Mapping[str, Mapping]) -> "TagDictionary":
        """Return a new dictionary with *mapping* layered over this one."""
        extra = TagDictionary.from_mapping(mapping)
        return TagDictionary([*self._entries.values(), *extra._entries.values()])

    # -- lookups --------------------------------------------------------

    def lookup(self, tag_name: str) -> TagEntry:
        """Return the entry for *tag_name* or raise :class:`TagNotFoundError`."""
        try:
            return self._entries[tag_name]
        except KeyError:
            raise TagNotFoundError(tag_name) from None

    def get(self, tag_name: str, default=None):
        return self._entries.get(tag_name, default)

    def all_categories(self) -> frozenset[str]:
        """Every category used by at least one entry."""
        return self._categories

    def entries_in(self, category: str) -> list[TagEntry]:
        """All entries of *category*, in definition order."""
        return [e for e in self._entries.values() if e.category == category]

    def check_entries(self) -> list[tuple[str, str]]:
        """Return ``(tag_name, message)`` for every malformed entry.

        An entry is malformed when its name does not follow
        ``category:value`` or when its declared category disagrees with the
        name's prefix.
        """
        problems = []
        for name, entry in self._entries.items():
            if not TAG_NAME_PATTERN.match(name):
                problems.append((
                    name,
                    f"Tag '{name}' does not follow the 'category:value' naming convention.",
                ))
            elif entry.prefix != entry.category:
                problems.append((
                    name,
                    f"Tag '{name}' is declared in category '{entry.category}' "
                    f"but its name implies category '{entry.prefix}'.",
                ))
        return problems

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {
            name: {"category": e.category, "description": e.description}
            for name, e in self._entries.items()
        }

    # -- container protocol --------------------------------------------

    def __contains__(self, tag_name) -> bool:
        return tag_name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TagDictionary({len(self)} tags, {len(self._categories)} categories)"
