"""
grpg_library/loader.py -- Build a content store from library JSON.

A library document has the shape::

    {
      "meta": {"schemaVersion": "1.0.0", "dataVersion": "0.1.0", ...},
      "tags": {"type:race": {"category": "type", "description": "..."}, ...},
      "races":   {"race-tettari": {...}, ...},      # object keyed by id
      "classes": [{...}, ...],                      # or a list of records
      ...
    }

It can be a single ``.json`` file, an already-parsed dict, or a directory
holding ``meta.json``, ``tags.json`` and one ``<category>.json`` per
category.

The document envelope is checked with ``jsonschema``; a malformed envelope
raises :class:`LibraryLoadError`.  Records themselves are not validated
here.  Duplicate ids and records without an id do not abort the load:
they become findings on the returned :class:`LoadedLibrary` so that one run
reports everything.

Usage::

    from grpg_library.loader import load_library

    library = load_library("content/library.json")
    report = library.validate()
    query = library.query()
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

try:
    import jsonschema
except ImportError:
    raise ImportError(
        "The 'jsonschema' package is required but not installed. "
        "Install it with: pip install jsonschema"
    )

from grpg_library.config import LibrarySettings
from grpg_library.content_store import ContentStore
from grpg_library.exceptions import DuplicateIdError, LibraryLoadError, MissingIdError
from grpg_library.query import LibraryQuery
from grpg_library.report import Finding, FindingKind, Report
from grpg_library.schema_registry import CATEGORIES, TYPE_FOR_CATEGORY
from grpg_library.tag_dictionary import TagDictionary
from grpg_library.utils import read_json
from grpg_library.validator import LibraryValidator

logger = logging.getLogger(__name__)

RESERVED_KEYS = ("meta", "tags")

LIBRARY_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Library document",
    "type": "object",
    "properties": {
        "meta": {
            "type": "object",
            "properties": {
                "schemaVersion": {"type": "string"},
                "dataVersion": {"type": "string"},
                "lastUpdated": {"type": "string"},
                "notes": {"type": "string"},
            },
        },
        "tags": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "category": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["category"],
            },
        },
        **{category: {"type": ["object", "array"]} for category in CATEGORIES},
    },
}


@dataclass
class LoadedLibrary:
    """Everything a load produced: the store, its tags, metadata, and load findings."""

    store: ContentStore
    tags: TagDictionary
    meta: dict[str, Any] = field(default_factory=dict)
    findings: list[Finding] = field(default_factory=list)
    source: Optional[str] = None

    def validate(self, validator=None) -> Report:
        """Validate the store and prepend the findings raised while loading."""
        validator = validator or LibraryValidator(self.tags)
        return Report(self.findings).merge(validator.validate(self.store))

    def query(self) -> LibraryQuery:
        return LibraryQuery(self.store, self.tags)


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------

def load_library(source, settings: Optional[LibrarySettings] = None,
                 seal: bool = True) -> LoadedLibrary:
    """Load a library from a file path, a directory, or a parsed mapping.

    Parameters
    ----------
    source : str, pathlib.Path or Mapping
        Library document or its location.
    settings : LibrarySettings, optional
        Uniqueness scope, extra attributes and extra tags.
    seal : bool
        Seal the store after loading (default True).

    Raises
    ------
    LibraryLoadError
        The source cannot be read or the document envelope is malformed.
    """
    settings = settings or LibrarySettings()
    if isinstance(source, Mapping):
        document, label = source, None
    else:
        path = Path(source)
        document = _read_directory(path) if path.is_dir() else _read_file(path)
        label = str(path)

    library = library_from_document(document, settings, source=label)
    if seal:
        library.store.seal()
    return library


def library_from_document(document: Mapping, settings: Optional[LibrarySettings] = None,
                          source: Optional[str] = None) -> LoadedLibrary:
    settings = settings or LibrarySettings()
    check_document(document)

    try:
        tags = TagDictionary.from_mapping(document["tags"]) if "tags" in document \
            else TagDictionary.default()
        if settings.extra_tags:
            tags = tags.extended(settings.extra_tags)
    except ValidationError as exc:
        raise LibraryLoadError(f"The tag dictionary is malformed: {exc}") from exc

    store = ContentStore(settings.unique_scope, settings.known_attributes())
    library = LoadedLibrary(store=store, tags=tags, meta=dict(document.get("meta", {})),
                            source=source)

    for key in document:
        if key not in RESERVED_KEYS and key not in CATEGORIES:
            logger.warning("Skipping unknown category '%s'", key)
            library.findings.append(Finding.of(
                FindingKind.CONSISTENCY_WARNING, "library", "", key,
                f"'{key}' is not a library category; its records were not loaded.",
            ))

    for category in CATEGORIES:
        bucket = document.get(category)
        if not bucket:
            continue
        entries = bucket.items() if isinstance(bucket, Mapping) else \
            ((None, record) for record in bucket)
        for key, record in entries:
            _add_record(library, category, key, record)

    logger.info("Loaded %d records from %s", len(store), source or "document")
    return library


def check_document(document) -> None:
    """Raise :class:`LibraryLoadError` unless *document* has a valid envelope."""
    validator = jsonschema.Draft202012Validator(LIBRARY_DOCUMENT_SCHEMA)
    errors = sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        details = "\n".join(f"  {i}. {_humanize_error(e)}" for i, e in enumerate(errors, 1))
        raise LibraryLoadError(f"The library document is malformed:\n{details}")


# ------------------------------------------------------------------
# Internals
# ------------------------------------------------------------------

def _add_record(library: LoadedLibrary, category: str, key, record) -> None:
    record_type = TYPE_FOR_CATEGORY[category]
    try:
        library.store.add(category, record, key=key)
    except DuplicateIdError as exc:
        logger.warning("%s", exc)
        library.findings.append(Finding.of(
            FindingKind.DUPLICATE_ID, record_type, exc.record_id, "id", str(exc),
        ))
    except MissingIdError as exc:
        logger.warning("%s", exc)
        library.findings.append(Finding.of(
            FindingKind.SCHEMA_ERROR, record_type, "", "id",
            f"A record in '{category}' has no id and was not loaded.",
        ))


def _read_file(path: Path):
    try:
        return read_json(path)
    except FileNotFoundError as exc:
        raise LibraryLoadError(f"Library file '{path}' does not exist.") from exc
    except json.JSONDecodeError as exc:
        raise LibraryLoadError(f"Library file '{path}' is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise LibraryLoadError(f"Could not read library file '{path}': {exc}") from exc


def _read_directory(path: Path) -> dict:
    """Assemble a document from ``meta.json``, ``tags.json`` and ``<category>.json``."""
    document: dict[str, Any] = {}
    for name in (*RESERVED_KEYS, *CATEGORIES):
        part = path / f"{name}.json"
        if part.is_file():
            document[name] = _read_file(part)
    if not document:
        raise LibraryLoadError(f"Directory '{path}' contains no library files.")
    return document


def _humanize_error(error) -> str:
    """Convert a ``jsonschema.ValidationError`` into plain English."""
    path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
    msg = error.message
    if error.validator == "required":
        return f"Missing required field at {path}: {msg}"
    if error.validator == "type":
        return f"Wrong data type at '{path}': {msg}"
    return f"Issue at '{path}': {msg}"
