"""
Tests for grpg_library/query.py -- Lookup, tag filters and lazy views.
"""

import pytest

from grpg_library.content_store import ContentStore
from grpg_library.exceptions import RecordNotFoundError, UnknownCategoryError
from grpg_library.query import LibraryQuery, RecordView


@pytest.fixture
def query(scenario_store, tags):
    return LibraryQuery(scenario_store, tags)


class TestLookups:

    def test_by_id(self, query):
        assert query.by_id("traits", "trait-tettari-survivor")["name"] == "Tettari Survivor"

    def test_by_id_missing(self, query):
        with pytest.raises(RecordNotFoundError):
            query.by_id("traits", "trait-none")

    def test_get_default(self, query):
        assert query.get("traits", "trait-none") is None
        assert query.get("traits", "trait-none", {}) == {}

    def test_find_any_category(self, query):
        category, record = query.find("class-warden")
        assert category == "classes"
        assert record["id"] == "class-warden"


class TestFilters:
    """Tests for all / by_tag / by_category_and_tag / search."""

    def test_all(self, query):
        assert query.all("races").ids() == ["race-tettari"]
        assert query.all("items").ids() == []

    def test_unknown_category(self, query):
        with pytest.raises(UnknownCategoryError):
            query.all("monsters")
        with pytest.raises(UnknownCategoryError):
            query.by_category_and_tag("monsters", "role:martial")

    def test_by_tag_spans_categories(self, query):
        assert query.by_tag("role:skirmisher").ids() == ["race-tettari", "ability-mark-prey"]
        assert query.by_tag("status:playtest").ids() == []

    def test_by_category_and_tag(self, query):
        assert query.by_category_and_tag("classes", "faction:wardens").ids() == ["class-warden"]
        assert query.by_category_and_tag("races", "faction:wardens").ids() == []

    def test_search(self, query):
        assert query.search("ARCHERS").ids() == ["race-tettari"]
        assert query.search("warden", category="abilities").ids() == []
        assert query.search("warden", category="classes").ids() == ["class-warden"]
        with pytest.raises(UnknownCategoryError):
            query.search("warden", category="monsters")

    def test_malformed_records_do_not_break_filters(self):
        store = ContentStore()
        store.add("traits", {"id": "trait-odd", "tags": "role:martial"})
        store.add("traits", ["not", "a", "record"], key="trait-worse")
        assert LibraryQuery(store).by_tag("role:martial").ids() == []


class TestRecordView:
    """Views are lazy and restartable."""

    def test_reiterable(self, query):
        view = query.by_tag("status:core")
        assert view.ids() == view.ids()
        assert len(view) == 4

    def test_lazy_sees_later_additions(self, make_record):
        store = ContentStore()
        view = LibraryQuery(store).by_tag("tier:elite")
        assert not view
        store.add("traits", make_record("trait", "trait-big", tags=["type:trait", "tier:elite"]))
        assert view.ids() == ["trait-big"]

    def test_filter_and_first(self, query):
        view = query.by_tag("status:core").filter(lambda r: r["id"].startswith("trait-"))
        assert view.first()["id"] == "trait-tettari-survivor"
        assert isinstance(view, RecordView)
        assert query.by_tag("tier:elite").first("none") == "none"


class TestDerivedViews:

    def test_attribute_mods(self, query):
        assert query.attribute_mods("races", "race-tettari").fixed_mods == {
            "agility": 2, "willpower": 1,
        }

    def test_graph_rebuilt_after_add(self, make_record):
        store = ContentStore()
        store.add("traits", make_record("trait", "trait-a"))
        query = LibraryQuery(store)
        assert query.referenced_by("trait-a") == []
        store.add("races", make_record("race", "race-b", mechanics={"innateTraits": ["trait-a"]}))
        assert [r["id"] for r in query.referenced_by("trait-a")] == ["race-b"]

    def test_references_narrowed_by_category(self, make_record):
        store = ContentStore(unique_scope="category")
        store.add("traits", make_record("trait", "shared-id"))
        store.add("abilities", make_record("ability", "shared-id"))
        store.add("races", make_record("race", "race-b", mechanics={"innateTraits": ["shared-id"]}))
        query = LibraryQuery(store)
        assert [r["id"] for r in query.referenced_by("shared-id", "traits")] == ["race-b"]
        assert query.referenced_by("shared-id", "abilities") == []
        assert query.references("race-b") == [
            {"id": "shared-id", "field": "mechanics.innateTraits", "category": "traits"},
        ]
