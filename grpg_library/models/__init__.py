"""
grpg_library/models/ -- Pydantic v2 typed views of library records.

Submodules:
    attribute_mods  Fixed / virtual / choice-group parsing of attributeMods.
    base            Shared models (RecordBase, MechanicsBase, SourceRef, ...).
    factory         Per-type models generated from the schema registry.
"""

from grpg_library.models.attribute_mods import AttributeMods, parse_attribute_mods
from grpg_library.models.base import GrantedBy, MechanicsBase, RecordBase, SourceRef, VersionInfo
from grpg_library.models.factory import RecordModelFactory, TypedResult

__all__ = [
    "AttributeMods",
    "GrantedBy",
    "MechanicsBase",
    "RecordBase",
    "RecordModelFactory",
    "SourceRef",
    "TypedResult",
    "VersionInfo",
    "parse_attribute_mods",
]
