"""
grpg_library/exceptions.py -- Exception hierarchy for the content library.

Only *operational* failures are exceptions: a duplicate id on insert, a
lookup that misses, a library file that cannot be read.  Content defects
found by the validator are never raised; they are collected as
``Finding`` objects in a ``Report`` (see ``grpg_library.report``).

Lookup failures subclass ``KeyError`` so that callers already catching
``KeyError`` around dictionary-style access keep working.
"""


class LibraryError(Exception):
    """Base class for every error raised by grpg_library."""


class DuplicateIdError(LibraryError):
    """An id is already present in the store under the active uniqueness policy."""

    def __init__(self, record_id: str, category: str, existing_category: str):
        self.record_id = record_id
        self.category = category
        self.existing_category = existing_category
        super().__init__(
            f"Cannot add '{record_id}' to '{category}': that id is already "
            f"used by a record in '{existing_category}'."
        )


class UnknownCategoryError(LibraryError, KeyError):
    """A category name outside the fixed set of library buckets."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Unknown category '{category}'.")

    def __str__(self) -> str:
        return self.args[0]


class UnknownRecordTypeError(LibraryError, KeyError):
    """A record type the schema registry has no schema for."""

    def __init__(self, record_type: str):
        self.record_type = record_type
        super().__init__(f"Unknown record type '{record_type}'.")

    def __str__(self) -> str:
        return self.args[0]


class MissingIdError(LibraryError, ValueError):
    """A record was added without an explicit key and without a string ``id``."""


class RecordNotFoundError(LibraryError, KeyError):
    """No record with the requested id exists in the requested category."""

    def __init__(self, record_id: str, category: str):
        self.record_id = record_id
        self.category = category
        super().__init__(f"No record '{record_id}' in '{category}'.")

    def __str__(self) -> str:
        return self.args[0]


class TagNotFoundError(LibraryError, KeyError):
    """The tag is not defined in the tag dictionary."""

    def __init__(self, tag_name: str):
        self.tag_name = tag_name
        super().__init__(f"Tag '{tag_name}' is not defined in the tag dictionary.")

    def __str__(self) -> str:
        return self.args[0]


class StoreSealedError(LibraryError):
    """The content store was sealed after loading and no longer accepts records."""


class LibraryLoadError(LibraryError):
    """A library document or settings file could not be read or has the wrong shape."""
