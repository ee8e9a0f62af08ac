"""
grpg_library/models/base.py -- Shared pydantic models for typed record views.

Every record type extends :class:`RecordBase`; every ``mechanics`` block
extends :class:`MechanicsBase`.  Both accept unknown keys
(``extra='allow'``) and expose them through ``residual`` so that
forward-compatible data survives a round trip.  Whether those keys are
acceptable is the validator's call, not the model's.

Attribute names are snake_case; the camelCase names used in library files
are accepted as aliases (``innateTraits`` -> ``innate_traits``).  The
legacy ``type`` key is accepted in place of ``recordType``.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from grpg_library.models.attribute_mods import AttributeMods, parse_attribute_mods
from grpg_library.schema_registry import GRANTED_BY_TYPES, RECORD_TYPES

Number = Union[int, float]


class LibraryModel(BaseModel):
    """Base for all typed views: camelCase aliases, unknown keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @property
    def residual(self) -> dict[str, Any]:
        """Keys present in the source data that the model does not declare."""
        return dict(self.model_extra or {})

    def to_data(self) -> dict[str, Any]:
        """Dump back to the camelCase shape used by library files."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SourceRef(LibraryModel):
    book: str
    page: Optional[Number] = None


class VersionInfo(LibraryModel):
    major: Number
    minor: Number

    @field_validator("major")
    @classmethod
    def _major_at_least_one(cls, v: Number) -> Number:
        if v < 1:
            raise ValueError("version.major must be at least 1")
        return v

    @field_validator("minor")
    @classmethod
    def _minor_not_negative(cls, v: Number) -> Number:
        if v < 0:
            raise ValueError("version.minor must not be negative")
        return v

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


class GrantedBy(LibraryModel):
    type: Literal[GRANTED_BY_TYPES]  # type: ignore[valid-type]
    id: str


class MechanicsBase(LibraryModel):
    """Base for the generated ``<Type>Mechanics`` models."""

    def parsed_attribute_mods(self) -> Optional[AttributeMods]:
        """Parsed ``attributeMods`` block, or ``None`` if this type has none."""
        mods = getattr(self, "attribute_mods", None)
        if mods is None:
            return None
        return parse_attribute_mods(mods)


class RecordBase(LibraryModel):
    """Fields shared by every record."""

    id: str
    record_type: Literal[RECORD_TYPES] = Field(  # type: ignore[valid-type]
        validation_alias=AliasChoices("recordType", "type"),
        serialization_alias="recordType",
    )
    name: str
    summary: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    source: Optional[SourceRef] = None
    version: Optional[VersionInfo] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    lore: Optional[dict[str, Any]] = None

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags
