"""
Shared pytest fixtures for the content library test suite.

Provides:
    - tags: the default tag dictionary
    - make_record: factory for minimal valid records of any type
    - tettari_race / warden_class / survivor_trait / mark_prey_ability:
      the sample records used by the end-to-end scenarios
    - scenario_store: a ContentStore holding those four records
    - library_document: the same records in library-file shape
    - library_file: that document written to a temporary JSON file
"""

import copy
import json
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure grpg_library/ is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from grpg_library.content_store import ContentStore  # noqa: E402
from grpg_library.tag_dictionary import TagDictionary  # noqa: E402

_REQUIRED_MECHANICS = {
    "trait": {"rulesText": "You gain a small bonus."},
    "ability": {"rulesText": "Do the thing."},
    "item": {"itemType": "gear"},
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tags():
    """Return the default tag dictionary."""
    return TagDictionary.default()


@pytest.fixture
def make_record():
    """Return a factory building a minimal valid record.

    ``make_record("trait", "trait-keen-eyes", name="Keen Eyes")`` gives a
    trait with every required field; keyword arguments replace top-level
    fields, and ``mechanics=`` replaces the mechanics block entirely.
    """
    def _make(record_type, record_id, **overrides):
        record = {
            "id": record_id,
            "recordType": record_type,
            "name": record_id.split("-", 1)[-1].replace("-", " ").title(),
            "summary": f"Summary of {record_id}.",
            "description": "",
            "tags": [f"type:{record_type}"],
            "mechanics": copy.deepcopy(_REQUIRED_MECHANICS.get(record_type, {})),
        }
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def tettari_race():
    return {
        "id": "race-tettari",
        "recordType": "race",
        "name": "Tettari",
        "summary": "Small, resilient survivors attuned to the broken ley-beasts.",
        "description": (
            "The Tettari are nimble survivors shaped by the chaos of ruptured "
            "ley-lines. Their sharp eyes and steady hands make them exceptional archers."
        ),
        "tags": ["type:race", "realm:surface", "role:skirmisher", "status:core"],
        "source": {"book": "Core Rulebook", "page": 42},
        "version": {"major": 1, "minor": 0},
        "createdAt": "2025-11-24",
        "updatedAt": "2025-11-24",
        "mechanics": {
            "attributeMods": {"agility": 2, "willpower": 1},
            "baseSpeed": 6,
            "senses": ["low-light vision"],
            "innateTraits": ["trait-tettari-survivor"],
            "innateAbilities": [],
        },
        "lore": {
            "homeland": "Shattered Wilds of Daelinar",
            "cultureNotes": "Tettari communities prize agility and marksmanship.",
        },
    }


@pytest.fixture
def warden_class():
    """Class record using the legacy ``type`` key; lists no starting abilities."""
    return {
        "id": "class-warden",
        "type": "class",
        "name": "Warden",
        "summary": "Guardian of the broken wilds, balancing steel, instinct, and Weave.",
        "description": "Wardens patrol the fractures of Daelinar, hunting warped beasts.",
        "tags": ["type:class", "faction:wardens", "role:martial", "role:utility", "status:core"],
        "source": {"book": "Core Rulebook", "page": 80},
        "version": {"major": 1, "minor": 0},
        "createdAt": "2025-11-24",
        "updatedAt": "2025-11-24",
        "mechanics": {
            "primaryRoles": ["role:martial", "role:utility"],
            "hitDie": "d10",
            "resourceModel": "vigilance",
            "startingTraits": [],
            "startingAbilities": [],
            "progressionNotes": "Wardens gain new ways to control terrain as they advance.",
        },
    }


@pytest.fixture
def survivor_trait():
    return {
        "id": "trait-tettari-survivor",
        "recordType": "trait",
        "name": "Tettari Survivor",
        "summary": "You're hard to kill and harder to corner.",
        "description": "You've learned to read danger and slip away before it closes its jaws.",
        "tags": ["type:trait", "tier:basic", "realm:surface", "status:core"],
        "source": {"book": "Core Rulebook", "page": 43},
        "version": {"major": 1, "minor": 0},
        "createdAt": "2025-11-24",
        "updatedAt": "2025-11-24",
        "mechanics": {
            "rulesText": (
                "When you would be reduced to 0 vitality by a single hit, you may "
                "instead drop to 1 vitality once per rest."
            ),
        },
    }


@pytest.fixture
def mark_prey_ability():
    return {
        "id": "ability-mark-prey",
        "recordType": "ability",
        "name": "Mark Prey",
        "summary": "Single out a target and hunt them relentlessly.",
        "description": "You fix your attention on a single foe, reading their tells.",
        "tags": ["type:ability", "role:skirmisher", "role:martial", "tier:basic", "status:core"],
        "source": {"book": "Core Rulebook", "page": 81},
        "version": {"major": 1, "minor": 0},
        "createdAt": "2025-11-24",
        "updatedAt": "2025-11-24",
        "grantedBy": {"type": "class", "id": "class-warden"},
        "mechanics": {
            "category": "combat",
            "actionType": "action",
            "range": "line of sight",
            "duration": "scene",
            "target": "one creature you can see",
            "rulesText": "Choose a creature you can see and mark it as your prey.",
        },
    }


@pytest.fixture
def scenario_store(tettari_race, warden_class, survivor_trait, mark_prey_ability):
    """A store with the Tettari race, Warden class, Survivor trait and Mark Prey ability."""
    store = ContentStore()
    store.add("races", tettari_race)
    store.add("classes", warden_class)
    store.add("traits", survivor_trait)
    store.add("abilities", mark_prey_ability)
    return store


@pytest.fixture
def library_document(tettari_race, warden_class, survivor_trait, mark_prey_ability):
    """The scenario records in library-file shape (categories keyed by id)."""
    return {
        "meta": {
            "schemaVersion": "1.0.0",
            "dataVersion": "0.1.0",
            "lastUpdated": "2025-11-24",
            "notes": "Test library.",
        },
        "races": {tettari_race["id"]: tettari_race},
        "classes": {warden_class["id"]: warden_class},
        "origins": {},
        "circles": {},
        "traits": {survivor_trait["id"]: survivor_trait},
        "abilities": {mark_prey_ability["id"]: mark_prey_ability},
        "items": {},
        "professions": {},
    }


@pytest.fixture
def library_file(tmp_path, library_document):
    """Write *library_document* to a temporary JSON file and return its path."""
    path = tmp_path / "library.json"
    path.write_text(json.dumps(library_document, indent=2), encoding="utf-8")
    return path
