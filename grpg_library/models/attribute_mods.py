"""
grpg_library/models/attribute_mods.py -- Fixed, virtual and choice-group mods.

``attributeMods`` blocks on races and classes mix three kinds of key:

* a plain key naming a recognised attribute or stat (``agility: 2``) is a
  **fixed** mod, always applied;
* a plain key that is not a recognised stat (``anyAttribute: 3``) is a
  **virtual** mod whose target a character builder resolves later;
* a key ending in ``_<UPPERCASE LETTER>`` (``coldResistance_A: 15``) is a
  candidate in **choice group** ``<LETTER>``; the player picks exactly one
  candidate per group.

The suffix convention is parsed once, when a record enters the store, into
an :class:`AttributeMods` value.  This module never chooses or applies
anything.

Usage::

    from grpg_library.models.attribute_mods import parse_attribute_mods

    mods = parse_attribute_mods({"agility": 2, "anyAttribute": 1,
                                 "anyOffenseOrDefense_A": 5, "coldResistance_A": 15})
    mods.fixed_mods        # {'agility': 2}
    mods.virtual_mods      # {'anyAttribute': 1}
    mods.choice_groups     # {'A': {'anyOffenseOrDefense': 5, 'coldResistance': 15}}
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

CHOICE_SUFFIX = re.compile(r"^(?P<base>.+)_(?P<group>[A-Z])$")

ATTRIBUTES = frozenset({"strength", "agility", "willpower", "fortitude"})

RESISTANCE_ELEMENTS = ("cold", "fire", "arcane", "nature", "shadow", "light")

STATS = frozenset({
    "armor", "dodgeChance", "parryChance", "criticalChance", "wardChance",
    "bodilyFortification",
    *(f"{element}Resistance" for element in RESISTANCE_ELEMENTS),
})

KNOWN_ATTRIBUTES = ATTRIBUTES | STATS


class AttributeMods(BaseModel):
    """Parsed ``attributeMods`` block."""

    model_config = ConfigDict(frozen=True)

    fixed_mods: dict[str, Any] = Field(default_factory=dict)
    virtual_mods: dict[str, Any] = Field(default_factory=dict)
    # group letter -> {candidate key (suffix stripped) -> value}
    choice_groups: dict[str, dict[str, Any]] = Field(default_factory=dict)
    # group letter -> original keys, for error messages
    choice_keys: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.fixed_mods or self.virtual_mods or self.choice_groups)

    def undersized_groups(self, minimum: int = 2) -> list[str]:
        """Group letters with fewer than *minimum* candidates, sorted."""
        return sorted(g for g, members in self.choice_groups.items()
                      if len(members) < minimum)


def split_choice_key(key: str):
    """Return ``(base, group_letter)`` for ``foo_A`` style keys, else ``(key, None)``."""
    match = CHOICE_SUFFIX.match(key)
    if match:
        return match.group("base"), match.group("group")
    return key, None


def parse_attribute_mods(mods: Mapping, known: Iterable[str] = KNOWN_ATTRIBUTES) -> AttributeMods:
    """Split a raw ``attributeMods`` mapping into fixed, virtual and choice parts.

    Keys are coerced to ``str``; values are carried through unchanged and
    type checking belongs to the validator.

    Parameters
    ----------
    mods : Mapping
        Raw ``attributeMods`` block.
    known : iterable of str
        Attribute and stat names that count as fixed mods.

    Returns
    -------
    AttributeMods
    """
    known = frozenset(known)
    fixed: dict[str, Any] = {}
    virtual: dict[str, Any] = {}
    groups: dict[str, dict[str, Any]] = {}
    group_keys: dict[str, list[str]] = {}

    for raw_key, value in mods.items():
        key = str(raw_key)
        base, group = split_choice_key(key)
        if group is not None:
            groups.setdefault(group, {})[base] = value
            group_keys.setdefault(group, []).append(key)
        elif key in known:
            fixed[key] = value
        else:
            virtual[key] = value

    ordered = sorted(groups)
    return AttributeMods(
        fixed_mods=fixed,
        virtual_mods=virtual,
        choice_groups={g: groups[g] for g in ordered},
        choice_keys={g: tuple(group_keys[g]) for g in ordered},
    )
