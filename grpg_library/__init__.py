"""
grpg_library -- Content schema validator and reference-integrity checker
for a tabletop RPG content library.

Modules:
    tag_dictionary      Central dictionary of ``category:value`` tags.
    schema_registry     Per-record-type field schemas.
    content_store       In-memory records grouped by category.
    reference_resolver  Id resolution and grantedBy back-link checks.
    validator           Whole-library checks producing a Report.
    query               Read-only lookup/filter facade.
    loader              Library JSON -> ContentStore.
    config              Settings model and discovery.
"""

from grpg_library.content_store import ContentStore
from grpg_library.exceptions import (
    DuplicateIdError,
    LibraryError,
    LibraryLoadError,
    RecordNotFoundError,
    TagNotFoundError,
)
from grpg_library.loader import LoadedLibrary, load_library
from grpg_library.query import LibraryQuery
from grpg_library.report import Finding, FindingKind, Report, Severity
from grpg_library.schema_registry import SchemaRegistry, default_registry
from grpg_library.tag_dictionary import TagDictionary
from grpg_library.validator import LibraryValidator

__version__ = "0.1.0"

__all__ = [
    "ContentStore",
    "DuplicateIdError",
    "Finding",
    "FindingKind",
    "LibraryError",
    "LibraryLoadError",
    "LibraryQuery",
    "LibraryValidator",
    "LoadedLibrary",
    "RecordNotFoundError",
    "Report",
    "SchemaRegistry",
    "Severity",
    "TagDictionary",
    "TagNotFoundError",
    "default_registry",
    "load_library",
]
