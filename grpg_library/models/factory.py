"""
grpg_library/models/factory.py -- Typed record models generated from the schema registry.

The schema registry's ``FieldSpec`` tables stay the single source of truth
for field definitions; this module turns them into pydantic v2 models at
runtime instead of maintaining a hand-written model per record type.

For each record type two models are generated and cached:

    ``<Type>Mechanics``   subclass of ``MechanicsBase`` (e.g. RaceMechanics)
    ``<Type>Record``      subclass of ``RecordBase`` with a typed ``mechanics``

Unknown keys are kept in ``residual`` rather than rejected.

Usage::

    from grpg_library.models.factory import RecordModelFactory

    factory = RecordModelFactory()
    result = factory.validate_record("race", raw_race)
    if result.passed:
        result.record.mechanics.innate_traits
    else:
        print(result.errors)
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, create_model
from pydantic.alias_generators import to_snake

from grpg_library.models.base import GrantedBy, MechanicsBase, Number, RecordBase
from grpg_library.schema_registry import FieldKind, FieldSpec, SchemaRegistry, default_registry

logger = logging.getLogger(__name__)

_SCALAR_TYPES = {"string": str, "number": Number, "integer": int, "date": str, "any": Any}


# ------------------------------------------------------------------
# FieldSpec -> Python type annotation
# ------------------------------------------------------------------

def _annotation_for(spec: FieldSpec) -> Any:
    """Python type annotation for a mechanics field."""
    kind = spec.kind
    if kind == FieldKind.ENUM:
        return Literal[spec.allowed]  # type: ignore[valid-type]
    if kind in (FieldKind.SCALAR, FieldKind.ID):
        return _SCALAR_TYPES.get(spec.value_type, Any)
    if kind in (FieldKind.LIST, FieldKind.LIST_OF_IDS, FieldKind.LIST_OF_TAGS):
        return list[_SCALAR_TYPES.get(spec.value_type, Any)]  # type: ignore[index]
    if kind == FieldKind.MAPPING:
        return dict[str, _SCALAR_TYPES.get(spec.value_type, Any)]  # type: ignore[index]
    return dict[str, Any]


def _field_definition(spec: FieldSpec) -> tuple[Any, Any]:
    """``(annotation, FieldInfo)`` pair for ``pydantic.create_model``."""
    annotation = _annotation_for(spec)
    kwargs: dict[str, Any] = {"alias": spec.name}
    if spec.description:
        kwargs["description"] = spec.description
    if spec.ref_category:
        kwargs["json_schema_extra"] = {"x-cross-reference": spec.ref_category}

    if spec.required:
        if spec.non_empty:
            kwargs["min_length"] = 1
        return annotation, Field(**kwargs)
    if spec.kind in (FieldKind.LIST, FieldKind.LIST_OF_IDS, FieldKind.LIST_OF_TAGS):
        return annotation, Field(default_factory=list, **kwargs)
    return Optional[annotation], Field(default=None, **kwargs)


def _class_prefix(record_type: str) -> str:
    return record_type.capitalize()


# ------------------------------------------------------------------
# RecordModelFactory
# ------------------------------------------------------------------

class RecordModelFactory:
    """Generates and caches typed models for every record type.

    Parameters
    ----------
    registry : SchemaRegistry, optional
        Source of the field tables (default: the shared registry).
    """

    def __init__(self, registry: SchemaRegistry | None = None):
        self.registry = registry or default_registry()
        self._mechanics_cache: dict[str, type[MechanicsBase]] = {}
        self._record_cache: dict[str, type[RecordBase]] = {}

    def get_mechanics_model(self, record_type: str) -> type[MechanicsBase]:
        if record_type in self._mechanics_cache:
            return self._mechanics_cache[record_type]

        schema = self.registry.schema_for(record_type)
        definitions = {
            to_snake(spec.name): _field_definition(spec)
            for spec in schema.mechanics_fields
        }
        model = create_model(
            f"{_class_prefix(record_type)}Mechanics",
            __base__=MechanicsBase,
            __module__=__name__,
            **definitions,
        )
        self._mechanics_cache[record_type] = model
        return model

    def get_model(self, record_type: str) -> type[RecordBase]:
        """Return the ``<Type>Record`` model for *record_type* (cached)."""
        if record_type in self._record_cache:
            return self._record_cache[record_type]

        schema = self.registry.schema_for(record_type)
        mechanics_model = self.get_mechanics_model(record_type)
        needs_mechanics = any(spec.required for spec in schema.mechanics_fields)

        definitions: dict[str, Any] = {
            "record_type": (
                Literal[record_type],  # type: ignore[valid-type]
                Field(validation_alias=AliasChoices("recordType", "type"),
                      serialization_alias="recordType"),
            ),
        }
        if needs_mechanics:
            definitions["mechanics"] = (mechanics_model, Field(alias="mechanics"))
        else:
            definitions["mechanics"] = (
                mechanics_model,
                Field(default_factory=mechanics_model, alias="mechanics"),
            )
        if schema.field("grantedBy") is not None:
            definitions["granted_by"] = (Optional[GrantedBy], Field(default=None, alias="grantedBy"))

        model = create_model(
            f"{_class_prefix(record_type)}Record",
            __base__=RecordBase,
            __module__=__name__,
            **definitions,
        )
        model._record_type = record_type  # type: ignore[attr-defined]
        model._category = schema.category  # type: ignore[attr-defined]
        self._record_cache[record_type] = model
        logger.debug("Generated typed model %s", model.__name__)
        return model

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def validate_record(self, record_type: str, data: dict[str, Any]) -> "TypedResult":
        """Validate *data* into a typed record.

        Returns
        -------
        TypedResult
            ``passed``, human-readable ``errors`` and the typed ``record``
            (only set if passed).
        """
        model = self.get_model(record_type)
        try:
            record = model.model_validate(data)
        except ValidationError as exc:
            errors = [_humanize_pydantic_error(err, data) for err in exc.errors()]
            return TypedResult(passed=False, errors=errors, record=None)
        return TypedResult(passed=True, errors=[], record=record)


# ------------------------------------------------------------------
# Typed result
# ------------------------------------------------------------------

class TypedResult:
    """Result of building a typed view of one record.

    Attributes
    ----------
    passed : bool
        Whether the data fit the typed model.
    errors : list[str]
        Human-readable messages (empty if passed).
    record : RecordBase | None
        The typed record (only set if passed).
    """

    __slots__ = ("passed", "errors", "record")

    def __init__(self, passed: bool, errors: list[str], record: RecordBase | None):
        self.passed = passed
        self.errors = errors
        self.record = record

    def to_dict(self) -> dict[str, Any]:
        return {"passed": self.passed, "errors": self.errors}


# ------------------------------------------------------------------
# Error humanization
# ------------------------------------------------------------------

def _humanize_pydantic_error(err: dict, record_data: dict) -> str:
    """Convert a single pydantic error dict to a readable message.

    Pydantic error dicts look like::

        {
            "type": "string_type",
            "loc": ("mechanics", "rulesText"),
            "msg": "Input should be a valid string",
            "input": 42,
        }
    """
    loc = err.get("loc", ())
    msg = err.get("msg", "Validation error")
    err_type = err.get("type", "")

    field_path = ".".join(str(part) for part in loc if part != "__root__") or "(root)"
    record_name = record_data.get("name", record_data.get("id", "this record")) \
        if isinstance(record_data, dict) else "this record"

    if err_type == "missing":
        return f"The field '{field_path}' is required for '{record_name}' but was not provided."
    if err_type == "literal_error":
        return f"The field '{field_path}' has an invalid value. {msg}."
    if "type" in err_type:
        return f"The field '{field_path}' has the wrong type. {msg}."
    return f"Field '{field_path}': {msg}."
