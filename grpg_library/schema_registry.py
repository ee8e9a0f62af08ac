"""
grpg_library/schema_registry.py -- Per-record-type field schemas.

The registry is the single source of truth for what a record of each type
may contain: the shared base fields, the type-specific ``mechanics`` block,
which fields hold references to other records, and the category those
references must resolve in.

Fields are described by :class:`FieldSpec` tables.  ``SchemaRegistry.json_schema()``
compiles them into Draft 2020-12 JSON Schema with ``x-cross-reference``
annotations on reference fields.  The open form (unknown keys allowed) is
what editors and external tools get; the closed form
(``closed=True``) is what the validator runs through ``jsonschema`` so that
unknown keys surface as ``additionalProperties`` errors.

Each keyword is emitted so that one bad value fails exactly one keyword:
enums carry no ``type``, ids carry a ``pattern`` but no ``minLength``, and
non-empty text uses ``pattern: \\S``.

Provenance fields (``source``, ``version``, ``createdAt``, ``updatedAt``)
are optional everywhere: absent is always valid.

Usage::

    from grpg_library.schema_registry import default_registry

    registry = default_registry()
    schema = registry.schema_for("race")
    [f.name for f in schema.mechanics_fields]
    registry.extract_references(record, "race")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Mapping, Optional

from grpg_library.exceptions import UnknownCategoryError, UnknownRecordTypeError

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Record types and categories
# ------------------------------------------------------------------

# Declaration order; the validator and store iterate in this order.
RECORD_TYPES = (
    "race", "class", "origin", "circle", "trait", "ability", "item", "profession",
)
CATEGORIES = (
    "races", "classes", "origins", "circles", "traits", "abilities", "items", "professions",
)
CATEGORY_FOR_TYPE = dict(zip(RECORD_TYPES, CATEGORIES))
TYPE_FOR_CATEGORY = dict(zip(CATEGORIES, RECORD_TYPES))

ANY_CATEGORY = "any"

ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

ABILITY_CATEGORIES = ("combat", "adventuring", "social", "exploration", "other")
GRANTED_BY_TYPES = ("race", "class", "circle", "origin", "trait", "item")

# Forward list on an owner record that should contain an ability whose
# grantedBy names that owner.  Traits and items have none.
BACK_LINK_FIELDS: dict[str, tuple[str, ...]] = {
    "race": ("innateAbilities",),
    "class": ("startingAbilities",),
    "circle": ("signatureAbilities",),
    "origin": ("startingAbility",),
}


class FieldKind(str, Enum):
    SCALAR = "Scalar"
    ENUM = "Enum"
    ID = "Id"
    LIST_OF_IDS = "ListOfIds"
    LIST = "List"
    LIST_OF_TAGS = "ListOfTags"
    MAPPING = "Mapping"
    NESTED = "Nested"


@dataclass(frozen=True)
class FieldSpec:
    """Description of one field.

    ``value_type`` is the scalar type for ``SCALAR`` fields, the element
    type for ``LIST`` fields and the value type for ``MAPPING`` fields:
    one of ``string``, ``number``, ``integer``, ``date`` or ``any``.

    ``ref_category`` names the category an ``ID`` / ``LIST_OF_IDS`` field
    must resolve in (or ``"any"``).  ``ref_from`` instead names a sibling
    field holding a record type that selects the category at runtime, as
    ``grantedBy.id`` does with ``grantedBy.type``.

    ``minimum`` is an inclusive lower bound for numeric ``SCALAR`` fields.
    """

    name: str
    kind: FieldKind
    required: bool = False
    value_type: str = "string"
    minimum: Optional[float] = None
    allowed: tuple[str, ...] = ()
    ref_category: Optional[str] = None
    ref_from: Optional[str] = None
    non_empty: bool = False
    children: tuple["FieldSpec", ...] = ()
    open: bool = False
    aliases: tuple[str, ...] = ()
    description: str = ""

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def child(self, name: str) -> Optional["FieldSpec"]:
        for spec in self.children:
            if name in spec.keys:
                return spec
        return None

    @property
    def is_reference(self) -> bool:
        return self.kind in (FieldKind.ID, FieldKind.LIST_OF_IDS)


@dataclass(frozen=True)
class Reference:
    """One outgoing id reference found in a record."""

    field: str
    target_id: str
    expected_category: str


@dataclass(frozen=True)
class RecordSchema:
    record_type: str
    category: str
    fields: tuple[FieldSpec, ...]
    back_link_fields: tuple[str, ...] = ()

    def field(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if name in spec.keys:
                return spec
        return None

    @property
    def mechanics(self) -> FieldSpec:
        return self.field("mechanics")

    @property
    def mechanics_fields(self) -> tuple[FieldSpec, ...]:
        return self.mechanics.children

    @property
    def known_keys(self) -> frozenset[str]:
        """Every accepted top-level key, aliases included."""
        return frozenset(k for spec in self.fields for k in spec.keys)

    def reference_fields(self) -> list[tuple[str, FieldSpec]]:
        """``(dotted_path, spec)`` for every reference field, in schema order."""
        found = []

        def walk(specs, prefix):
            for spec in specs:
                path = f"{prefix}{spec.name}"
                if spec.is_reference:
                    found.append((path, spec))
                elif spec.kind == FieldKind.NESTED:
                    walk(spec.children, path + ".")

        walk(self.fields, "")
        return found


# ------------------------------------------------------------------
# Field construction helpers
# ------------------------------------------------------------------

def _text(name, required=False, non_empty=False, description=""):
    return FieldSpec(name, FieldKind.SCALAR, required=required, non_empty=non_empty,
                     description=description)


def _number(name, description=""):
    return FieldSpec(name, FieldKind.SCALAR, value_type="number", description=description)


def _ids(name, category, description=""):
    return FieldSpec(name, FieldKind.LIST_OF_IDS, ref_category=category,
                     description=description)


def _id(name, category, description=""):
    return FieldSpec(name, FieldKind.ID, ref_category=category, description=description)


def _numeric_map(name, description=""):
    return FieldSpec(name, FieldKind.MAPPING, value_type="number", description=description)


_BASE_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("id", FieldKind.SCALAR, required=True, non_empty=True,
              description="Permanent machine-readable id, lowercase-with-dashes."),
    FieldSpec("recordType", FieldKind.ENUM, required=True, allowed=RECORD_TYPES,
              aliases=("type",), description="Must match the category bucket."),
    _text("name", required=True, non_empty=True),
    _text("summary", required=True, non_empty=True, description="One or two sentences."),
    _text("description", required=True, description="Longer text; may be empty."),
    FieldSpec("tags", FieldKind.LIST, required=True,
              description="Filter tags; every entry must exist in the tag dictionary."),
    FieldSpec("source", FieldKind.NESTED, children=(
        _text("book", required=True, non_empty=True),
        _number("page"),
    )),
    FieldSpec("version", FieldKind.NESTED, children=(
        FieldSpec("major", FieldKind.SCALAR, required=True, value_type="number", minimum=1),
        FieldSpec("minor", FieldKind.SCALAR, required=True, value_type="number", minimum=0),
    )),
    FieldSpec("createdAt", FieldKind.SCALAR, value_type="date"),
    FieldSpec("updatedAt", FieldKind.SCALAR, value_type="date"),
    FieldSpec("lore", FieldKind.NESTED, open=True, children=(
        _text("homeland"),
        _text("cultureNotes"),
        _text("appearanceNotes"),
    )),
)

_MECHANICS_FIELDS: dict[str, tuple[FieldSpec, ...]] = {
    "race": (
        _numeric_map("attributeMods", "Fixed, virtual and choice-group attribute bonuses."),
        _number("baseSpeed"),
        _number("baseSpeedFeet"),
        FieldSpec("senses", FieldKind.LIST),
        _ids("innateTraits", "traits"),
        _ids("innateAbilities", "abilities"),
    ),
    "class": (
        FieldSpec("primaryRoles", FieldKind.LIST_OF_TAGS),
        _text("hitDie"),
        _text("resourceModel"),
        _ids("startingTraits", "traits"),
        _ids("startingAbilities", "abilities"),
        _numeric_map("attributeMods"),
        _text("progressionNotes"),
    ),
    "origin": (
        _id("startingTrait", "traits"),
        _id("startingAbility", "abilities"),
        _numeric_map("skillBonuses"),
    ),
    "circle": (
        _text("focusStat"),
        _ids("signatureAbilities", "abilities"),
    ),
    "trait": (
        _text("rulesText", required=True, non_empty=True),
    ),
    "ability": (
        _text("rulesText", required=True, non_empty=True),
        _text("actionType"),
        _text("range"),
        _text("duration"),
        _text("target"),
        _text("cost"),
        _text("cooldown"),
        FieldSpec("category", FieldKind.ENUM, allowed=ABILITY_CATEGORIES),
    ),
    "item": (
        _text("itemType", required=True, non_empty=True),
        _text("rarity"),
        FieldSpec("properties", FieldKind.LIST),
        _text("rulesText"),
    ),
    "profession": (
        _numeric_map("skillBonuses"),
        _text("incomeNotes"),
        _text("downtimeOptions"),
    ),
}

_EXTRA_TOP_LEVEL: dict[str, tuple[FieldSpec, ...]] = {
    "ability": (
        FieldSpec("grantedBy", FieldKind.NESTED, children=(
            FieldSpec("type", FieldKind.ENUM, required=True, allowed=GRANTED_BY_TYPES),
            FieldSpec("id", FieldKind.ID, required=True, ref_from="type"),
        ), description="The record that grants this ability."),
    ),
}


def _build_schema(record_type: str) -> RecordSchema:
    mechanics = FieldSpec("mechanics", FieldKind.NESTED,
                          children=_MECHANICS_FIELDS[record_type])
    return RecordSchema(
        record_type=record_type,
        category=CATEGORY_FOR_TYPE[record_type],
        fields=(*_BASE_FIELDS, *_EXTRA_TOP_LEVEL.get(record_type, ()), mechanics),
        back_link_fields=BACK_LINK_FIELDS.get(record_type, ()),
    )


# ------------------------------------------------------------------
# JSON Schema compilation
# ------------------------------------------------------------------

_JSON_TYPES = {"string": "string", "number": "number", "integer": "integer",
               "date": "string"}

# Custom ``format`` for date fields; the validator registers a checker for it.
DATE_FORMAT = "iso-8601"
NON_EMPTY_PATTERN = r"\S"


def _value_schema(value_type: str) -> dict:
    if value_type == "any":
        return {}
    schema: dict[str, Any] = {"type": _JSON_TYPES[value_type]}
    if value_type == "date":
        schema["format"] = DATE_FORMAT
        schema["description"] = "ISO-8601 date or datetime"
    return schema


def _field_to_json_schema(spec: FieldSpec, closed: bool = False) -> dict:
    kind = spec.kind
    if kind == FieldKind.SCALAR:
        schema = _value_schema(spec.value_type)
        if spec.name == "id":
            schema["pattern"] = ID_PATTERN.pattern
        elif spec.non_empty:
            schema["pattern"] = NON_EMPTY_PATTERN
        if spec.minimum is not None:
            schema["minimum"] = spec.minimum
    elif kind == FieldKind.ENUM:
        schema = {"enum": list(spec.allowed)}
    elif kind == FieldKind.ID:
        schema = {"type": "string", "minLength": 1}
        schema["x-cross-reference"] = spec.ref_category or f"<{spec.ref_from}>"
    elif kind == FieldKind.LIST_OF_IDS:
        schema = {"type": "array", "items": {"type": "string", "minLength": 1},
                  "x-cross-reference": spec.ref_category}
    elif kind == FieldKind.LIST:
        schema = {"type": "array", "items": _value_schema(spec.value_type)}
    elif kind == FieldKind.LIST_OF_TAGS:
        schema = {"type": "array", "items": {"type": "string"}, "x-tag-dictionary": True}
    elif kind == FieldKind.MAPPING:
        schema = {"type": "object",
                  "additionalProperties": _value_schema(spec.value_type)}
    else:
        schema = {
            "type": "object",
            "properties": {c.name: _field_to_json_schema(c, closed) for c in spec.children},
            "required": [c.name for c in spec.children if c.required],
        }
        if closed and not spec.open:
            schema["additionalProperties"] = False
    if spec.description:
        schema.setdefault("description", spec.description)
    return schema


# ------------------------------------------------------------------
# SchemaRegistry
# ------------------------------------------------------------------

class SchemaRegistry:
    """Compiled schemas for every record type.  Immutable after construction."""

    def __init__(self):
        self._schemas = {t: _build_schema(t) for t in RECORD_TYPES}
        logger.debug("Compiled schemas for %d record types", len(self._schemas))

    def schema_for(self, record_type: str) -> RecordSchema:
        try:
            return self._schemas[record_type]
        except KeyError:
            raise UnknownRecordTypeError(record_type) from None

    def base_fields(self) -> tuple[FieldSpec, ...]:
        return _BASE_FIELDS

    @staticmethod
    def record_types() -> tuple[str, ...]:
        return RECORD_TYPES

    @staticmethod
    def category_for(record_type: str) -> str:
        try:
            return CATEGORY_FOR_TYPE[record_type]
        except KeyError:
            raise UnknownRecordTypeError(record_type) from None

    @staticmethod
    def type_for(category: str) -> str:
        try:
            return TYPE_FOR_CATEGORY[category]
        except KeyError:
            raise UnknownCategoryError(category) from None

    def extract_references(self, record: Mapping, record_type) -> list[Reference]:
        """Return every outgoing id reference in *record*.

        Only well-formed values are returned: non-empty strings in reference
        fields whose container has the right shape.  Malformed values are
        the structural check's concern and are skipped here.

        Parameters
        ----------
        record : Mapping
            Raw record data.
        record_type : str or RecordSchema
            Type whose schema describes *record*.

        Returns
        -------
        list[Reference]
            In schema field order, then list order.
        """
        schema = record_type if isinstance(record_type, RecordSchema) \
            else self.schema_for(record_type)
        refs: list[Reference] = []
        if isinstance(record, Mapping):
            _collect_references(schema.fields, record, "", refs)
        return refs

    def json_schema(self, record_type: str, closed: bool = False) -> dict:
        """Compile the Draft 2020-12 JSON Schema for *record_type*.

        The legacy ``type`` key is accepted in place of ``recordType``.  By
        default unknown keys are allowed; with ``closed=True`` every object
        except ``lore`` rejects them through ``additionalProperties: false``.
        A ``mechanics`` block is required whenever one of its fields is.
        """
        schema = self.schema_for(record_type)
        properties = {}
        required = []
        for spec in schema.fields:
            properties[spec.name] = _field_to_json_schema(spec, closed)
            for alias in spec.aliases:
                properties[alias] = _field_to_json_schema(spec, closed)
            if spec.aliases:
                continue
            if spec.required or (spec.name == "mechanics"
                                 and any(c.required for c in spec.children)):
                required.append(spec.name)
        for key in ("recordType", "type"):
            properties[key].pop("enum", None)
            properties[key]["const"] = record_type
        return {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
            "$id": f"grpg-library/{record_type}",
            "title": record_type.capitalize(),
            "type": "object",
            "properties": properties,
            "required": required,
            "anyOf": [{"required": ["recordType"]}, {"required": ["type"]}],
            "additionalProperties": not closed,
        }


def lookup_key(container: Mapping, spec: FieldSpec):
    """Return ``(key, value)`` for the first of *spec*'s keys present in
    *container*, or ``(None, None)``."""
    for key in spec.keys:
        if key in container:
            return key, container[key]
    return None, None


def _collect_references(specs, container: Mapping, prefix: str, out: list) -> None:
    for spec in specs:
        _, value = lookup_key(container, spec)
        if value is None:
            continue
        path = f"{prefix}{spec.name}"
        if spec.kind == FieldKind.NESTED:
            if isinstance(value, Mapping):
                _collect_references(spec.children, value, path + ".", out)
            continue
        if not spec.is_reference:
            continue
        category = spec.ref_category
        if spec.ref_from:
            owner_type = container.get(spec.ref_from)
            selector = next((s for s in specs if s.name == spec.ref_from), None)
            if selector is not None and selector.allowed and owner_type not in selector.allowed:
                continue
            category = CATEGORY_FOR_TYPE.get(owner_type) if isinstance(owner_type, str) else None
            if category is None:
                continue
        if spec.kind == FieldKind.ID:
            values = [value]
        elif isinstance(value, list):
            values = value
        else:
            continue
        for target in values:
            if isinstance(target, str) and target:
                out.append(Reference(path, target, category))


@lru_cache(maxsize=None)
def default_registry() -> SchemaRegistry:
    """Process-wide registry instance (schemas are immutable, so sharing is safe)."""
    return SchemaRegistry()
