"""
Tests for grpg_library/graph_builder.py -- NetworkX reference graph.
"""

import pytest

from grpg_library.content_store import ContentStore
from grpg_library.graph_builder import ReferenceGraph


@pytest.fixture
def graph(scenario_store):
    rg = ReferenceGraph()
    rg.build(scenario_store)
    return rg


class TestBuild:

    def test_nodes_carry_category(self, graph):
        node = graph.graph.nodes[("races", "race-tettari")]
        assert node["category"] == "races"
        assert node["record_type"] == "race"
        assert node["name"] == "Tettari"
        assert node["id"] == "race-tettari"

    def test_edges(self, graph):
        assert graph.graph.number_of_edges() == 2
        edge = graph.graph.edges[("races", "race-tettari"), ("traits", "trait-tettari-survivor")]
        assert edge["field"] == "mechanics.innateTraits"
        assert edge["relationship_type"] == "innate_traits"
        assert graph.graph.edges[("abilities", "ability-mark-prey"), ("classes", "class-warden")][
            "relationship_type"] == "granted_by"

    def test_dangling_references_are_set_aside(self, make_record):
        store = ContentStore()
        store.add("races", make_record("race", "race-x", mechanics={"innateTraits": ["trait-ghost"]}))
        rg = ReferenceGraph()
        rg.build(store)
        assert rg.nodes_for("trait-ghost") == []
        assert rg.graph.number_of_nodes() == 1
        assert rg.dangling == {"trait-ghost": [("race-x", "mechanics.innateTraits")]}

    def test_is_current(self, scenario_store, graph, make_record):
        assert graph.is_current(scenario_store)
        scenario_store.add("items", make_record("item", "item-rope"))
        assert not graph.is_current(scenario_store)


class TestQueries:

    def test_references_and_back(self, graph):
        assert graph.references_of("race-tettari") == [
            {"id": "trait-tettari-survivor", "field": "mechanics.innateTraits", "category": "traits"},
        ]
        assert [r["id"] for r in graph.referenced_by("trait-tettari-survivor")] == ["race-tettari"]
        assert graph.references_of("nobody") == []

    def test_links(self, graph):
        assert graph.links("race-tettari", "trait-tettari-survivor")
        assert graph.links("race-tettari", "trait-tettari-survivor", fields=("innateTraits",))
        assert not graph.links("race-tettari", "trait-tettari-survivor", fields=("innateAbilities",))
        assert not graph.links("class-warden", "ability-mark-prey")

    def test_orphans(self, graph):
        assert graph.get_orphans("traits") == []
        assert graph.get_orphans("abilities") == ["ability-mark-prey"]
        assert graph.get_orphans() == ["ability-mark-prey", "race-tettari"]

    def test_find_path_ignores_direction(self, graph):
        assert graph.find_path("race-tettari", "trait-tettari-survivor") == [
            "race-tettari", "trait-tettari-survivor",
        ]
        assert graph.find_path("race-tettari", "class-warden") == []

    def test_most_connected_and_stats(self, graph):
        top = graph.get_most_connected(top_n=1)
        assert top[0]["connections"] == 1
        stats = graph.get_stats()
        assert stats["node_count"] == 4
        assert stats["edge_count"] == 2
        assert stats["dangling_count"] == 0
        assert stats["connected_components"] == 2


class TestCategoryScope:
    """The same id in two buckets gives two nodes under per-category uniqueness."""

    @pytest.fixture
    def shared_store(self, make_record):
        store = ContentStore(unique_scope="category")
        store.add("traits", make_record("trait", "shared-id"))
        store.add("abilities", make_record("ability", "shared-id"))
        store.add("races", make_record("race", "race-x", mechanics={"innateTraits": ["shared-id"]}))
        store.add("classes", make_record("class", "class-x",
                                         mechanics={"startingAbilities": ["shared-id"]}))
        return store

    def test_one_node_per_record(self, shared_store):
        rg = ReferenceGraph()
        rg.build(shared_store)
        assert rg.graph.number_of_nodes() == 4
        assert rg.nodes_for("shared-id") == [("traits", "shared-id"), ("abilities", "shared-id")]
        assert rg.graph.nodes[("traits", "shared-id")]["record_type"] == "trait"
        assert rg.graph.nodes[("abilities", "shared-id")]["record_type"] == "ability"

    def test_edges_land_on_the_expected_category(self, shared_store):
        rg = ReferenceGraph()
        rg.build(shared_store)
        assert rg.referenced_by("shared-id", "traits") == [
            {"id": "race-x", "field": "mechanics.innateTraits", "category": "races"},
        ]
        assert rg.referenced_by("shared-id", "abilities") == [
            {"id": "class-x", "field": "mechanics.startingAbilities", "category": "classes"},
        ]
        assert [r["id"] for r in rg.referenced_by("shared-id")] == ["race-x", "class-x"]
        assert rg.links("race-x", "shared-id", target_category="traits")
        assert not rg.links("race-x", "shared-id", target_category="abilities")

    def test_orphans_and_stats(self, shared_store):
        rg = ReferenceGraph()
        rg.build(shared_store)
        assert rg.get_orphans("traits") == []
        assert rg.get_orphans() == ["class-x", "race-x"]
        assert rg.get_stats()["records_by_category"] == {
            "races": 1, "classes": 1, "traits": 1, "abilities": 1,
        }
