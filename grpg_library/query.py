"""
grpg_library/query.py -- Read-only query and filter facade over the content store.

This is the surface UI viewers and character builders consume.  Filtered
results are :class:`RecordView` objects: lazy, restartable sequences that
re-scan the store every time they are iterated and keep no cursor state.

The facade does not validate.  Whether to serve data from a store whose
report has errors is the caller's decision.

Usage::

    from grpg_library.query import LibraryQuery

    query = LibraryQuery(store, tags)
    query.by_id("races", "race-tettari")
    [r["id"] for r in query.by_tag("faction:wardens")]
    query.by_category_and_tag("abilities", "role:martial").ids()
    query.referenced_by("trait-tettari-survivor")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from grpg_library.graph_builder import ReferenceGraph
from grpg_library.models.factory import RecordModelFactory, TypedResult
from grpg_library.schema_registry import TYPE_FOR_CATEGORY, SchemaRegistry

logger = logging.getLogger(__name__)


def _has_tag(record, tag: str) -> bool:
    if not isinstance(record, Mapping):
        return False
    tags = record.get("tags")
    return isinstance(tags, list) and tag in tags


class RecordView:
    """Lazy, re-iterable filtered sequence of records.

    Parameters
    ----------
    source : callable
        Zero-argument callable returning a fresh iterable of records.
    predicate : callable, optional
        Records for which this returns False are skipped.
    """

    def __init__(self, source: Callable[[], Iterable[Any]],
                 predicate: Optional[Callable[[Any], bool]] = None,
                 label: str = ""):
        self._source = source
        self._predicate = predicate
        self.label = label

    def __iter__(self) -> Iterator[Any]:
        for record in self._source():
            if self._predicate is None or self._predicate(record):
                yield record

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return self.first() is not None

    def filter(self, predicate: Callable[[Any], bool], label: str = "") -> "RecordView":
        """Narrow this view further; still lazy."""
        return RecordView(lambda: iter(self), predicate, label or self.label)

    def first(self, default=None):
        return next(iter(self), default)

    def ids(self) -> list[str]:
        return [r.get("id", "") for r in self if isinstance(r, Mapping)]

    def to_list(self) -> list:
        return list(self)

    def __repr__(self) -> str:
        return f"RecordView({self.label or 'records'})"


class LibraryQuery:
    """Lookup by id, filter by tag, list by category.

    Parameters
    ----------
    store : ContentStore
        The populated library.
    tags : TagDictionary, optional
        Exposed to consumers as :attr:`tags`; not used for filtering.
    """

    def __init__(self, store, tags=None, factory: Optional[RecordModelFactory] = None):
        self.store = store
        self.tags = tags
        self._factory = factory
        self._graph: Optional[ReferenceGraph] = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def by_id(self, category: str, record_id: str) -> dict:
        """The record, or :class:`RecordNotFoundError`."""
        return self.store.get(category, record_id)

    def get(self, category: str, record_id: str, default=None):
        if self.store.has(category, record_id):
            return self.store.get(category, record_id)
        return default

    def find(self, record_id: str):
        """``(category, record)`` for *record_id* in any category, or ``None``."""
        return self.store.find(record_id)

    def categories(self) -> tuple[str, ...]:
        return self.store.categories()

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def all(self, category: str) -> RecordView:
        """Every record of *category*, in insertion order."""
        SchemaRegistry.type_for(category)
        return RecordView(lambda: self.store.all_of(category), label=category)

    def by_tag(self, tag: str) -> RecordView:
        """Records of any category carrying *tag*, category order then insertion order."""
        return RecordView(
            lambda: (record for _, _, record in self.store),
            lambda record: _has_tag(record, tag),
            label=f"tag={tag}",
        )

    def by_category_and_tag(self, category: str, tag: str) -> RecordView:
        SchemaRegistry.type_for(category)
        return RecordView(
            lambda: self.store.all_of(category),
            lambda record: _has_tag(record, tag),
            label=f"{category}, tag={tag}",
        )

    def search(self, text: str, category: Optional[str] = None) -> RecordView:
        """Case-insensitive substring match on id, name, summary and description."""
        needle = text.lower()

        def matches(record) -> bool:
            if not isinstance(record, Mapping):
                return False
            for key in ("id", "name", "summary", "description"):
                value = record.get(key)
                if isinstance(value, str) and needle in value.lower():
                    return True
            return False

        if category is not None:
            SchemaRegistry.type_for(category)

        def source():
            if category is None:
                return (record for _, _, record in self.store)
            return self.store.all_of(category)

        return RecordView(source, matches, label=f"search={text!r}")

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def typed(self, category: str, record_id: str) -> TypedResult:
        """Typed pydantic view of one record (see :class:`RecordModelFactory`)."""
        if self._factory is None:
            self._factory = RecordModelFactory()
        record = self.store.get(category, record_id)
        return self._factory.validate_record(TYPE_FOR_CATEGORY[category], record)

    def attribute_mods(self, category: str, record_id: str):
        """The pre-parsed ``attributeMods`` block, or ``None``."""
        return self.store.attribute_mods(category, record_id)

    def graph(self) -> ReferenceGraph:
        """Reference graph, rebuilt whenever the store has changed since the last build."""
        if self._graph is None:
            self._graph = ReferenceGraph()
        if not self._graph.is_current(self.store):
            self._graph.build(self.store)
        return self._graph

    def references(self, record_id: str, category: Optional[str] = None) -> list[dict]:
        """Records *record_id* refers to: ``[{"id", "field", "category"}, ...]``.

        Pass *category* to pick one record when the id is reused across buckets.
        """
        return self.graph().references_of(record_id, category)

    def referenced_by(self, record_id: str, category: Optional[str] = None) -> list[dict]:
        """Records referring to *record_id*: ``[{"id", "field", "category"}, ...]``."""
        return self.graph().referenced_by(record_id, category)
