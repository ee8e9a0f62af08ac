"""
grpg_library/graph_builder.py -- Reference graph of library records (NetworkX)

Builds a directed graph over the content store: each record is a node, each
resolved id reference is an edge from the referring record to the target.
References that do not resolve are kept aside in ``dangling`` instead of
creating phantom nodes.

Nodes are keyed by ``(category, id)`` so that a store using per-category
uniqueness can hold the same id in two buckets without the records
collapsing into one node.  The query methods take a bare id and an
optional category; without a category they cover every record with that
id.

The graph answers navigation questions ("what grants this ability?",
"which traits does nothing use?") for the query facade and the CLI.  It is
a derived view: rebuild it after the store changes.

Usage:
    from grpg_library.graph_builder import ReferenceGraph

    rg = ReferenceGraph()
    rg.build(store)
    rg.references_of("race-tettari")       # outgoing
    rg.referenced_by("trait-tettari-survivor")
    rg.get_orphans("traits")
    rg.get_stats()
"""

import logging

logger = logging.getLogger(__name__)

try:
    import networkx as nx
except ImportError:
    raise ImportError(
        "The 'networkx' package is required but not installed. "
        "Install it with: pip install networkx"
    )

from grpg_library.schema_registry import ANY_CATEGORY, TYPE_FOR_CATEGORY, default_registry


# ---------------------------------------------------------------------------
# ReferenceGraph
# ---------------------------------------------------------------------------

class ReferenceGraph:
    """Directed graph of records and the id references between them.

    Parameters
    ----------
    registry : SchemaRegistry, optional
        Supplies the reference fields per record type.
    """

    def __init__(self, registry=None):
        self.registry = registry or default_registry()
        self.graph: nx.DiGraph = nx.DiGraph()
        # target_id -> [(source_id, field), ...] for references that did not resolve
        self.dangling: dict[str, list[tuple[str, str]]] = {}
        # record id -> [(category, id), ...] in store order
        self._nodes_by_id: dict[str, list[tuple[str, str]]] = {}
        self.built_revision = None

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, store) -> None:
        """Rebuild the graph from every record in *store*.

        Pass 1 creates a node per record; pass 2 adds an edge per reference
        whose target exists in the expected category.
        """
        self.graph.clear()
        self.dangling.clear()
        self._nodes_by_id.clear()

        records = list(store)
        for category, record_id, record in records:
            name = record.get("name", record_id) if isinstance(record, dict) else record_id
            node = (category, record_id)
            self.graph.add_node(
                node,
                id=record_id,
                category=category,
                record_type=TYPE_FOR_CATEGORY[category],
                name=name,
            )
            self._nodes_by_id.setdefault(record_id, []).append(node)

        for category, record_id, record in records:
            if not isinstance(record, dict):
                continue
            schema = self.registry.schema_for(TYPE_FOR_CATEGORY[category])
            for ref in self.registry.extract_references(record, schema):
                target = self._target_node(store, ref.expected_category, ref.target_id)
                if target is None:
                    self.dangling.setdefault(ref.target_id, []).append((record_id, ref.field))
                    continue
                self.graph.add_edge(
                    (category, record_id),
                    target,
                    field=ref.field,
                    relationship_type=_relationship_type(ref.field),
                )

        self.built_revision = store.revision
        logger.info(
            "Reference graph built: %d nodes, %d edges, %d dangling targets",
            self.graph.number_of_nodes(),
            self.graph.number_of_edges(),
            len(self.dangling),
        )

    @staticmethod
    def _target_node(store, expected_category: str, target_id: str):
        if expected_category == ANY_CATEGORY:
            found = store.find(target_id)
            return (found[0], target_id) if found is not None else None
        if store.has(expected_category, target_id):
            return (expected_category, target_id)
        return None

    def is_current(self, store) -> bool:
        return self.built_revision == store.revision

    def nodes_for(self, record_id: str, category: str | None = None) -> list[tuple[str, str]]:
        """Graph nodes holding *record_id*, narrowed to *category* if given."""
        if category is not None:
            node = (category, record_id)
            return [node] if node in self.graph else []
        return list(self._nodes_by_id.get(record_id, ()))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def references_of(self, record_id: str, category: str | None = None) -> list[dict]:
        """Outgoing references: ``[{"id", "field", "category"}, ...]``."""
        return [
            {"id": target[1], "field": data.get("field", ""), "category": target[0]}
            for node in self.nodes_for(record_id, category)
            for _, target, data in self.graph.out_edges(node, data=True)
        ]

    def referenced_by(self, record_id: str, category: str | None = None) -> list[dict]:
        """Incoming references: ``[{"id", "field", "category"}, ...]``."""
        return [
            {"id": source[1], "field": data.get("field", ""), "category": source[0]}
            for node in self.nodes_for(record_id, category)
            for source, _, data in self.graph.in_edges(node, data=True)
        ]

    def links(self, source_id: str, target_id: str, fields=None,
              source_category: str | None = None,
              target_category: str | None = None) -> bool:
        """True if *source_id* references *target_id* (optionally only via *fields*)."""
        for source in self.nodes_for(source_id, source_category):
            for target in self.nodes_for(target_id, target_category):
                if not self.graph.has_edge(source, target):
                    continue
                if fields is None:
                    return True
                edge_field = self.graph.edges[source, target].get("field", "")
                if edge_field.rsplit(".", 1)[-1] in fields:
                    return True
        return False

    def get_orphans(self, category: str | None = None) -> list[str]:
        """Records no other record references, sorted.

        Races, classes, origins, circles and professions are entry points and
        are normally unreferenced; the useful call is ``get_orphans("traits")``
        or ``get_orphans("abilities")``.
        """
        return sorted(
            data["id"] for node, data in self.graph.nodes(data=True)
            if self.graph.in_degree(node) == 0
            and (category is None or data.get("category") == category)
        )

    def get_most_connected(self, top_n: int = 10) -> list[dict]:
        ranked = sorted(
            self.graph.nodes(data=True),
            key=lambda item: (-self.graph.degree(item[0]), item[1]["id"], item[1]["category"]),
        )
        return [
            {
                "id": data["id"],
                "name": data.get("name", data["id"]),
                "category": data.get("category", ""),
                "connections": self.graph.degree(node),
            }
            for node, data in ranked[:top_n]
        ]

    def find_path(self, record_a: str, record_b: str) -> list[str]:
        """Shortest chain of references between two records, ignoring direction.

        Returns the ids along the path; ``[]`` if either id is unknown or
        no chain exists.
        """
        starts = self.nodes_for(record_a)
        ends = self.nodes_for(record_b)
        if not starts or not ends:
            return []
        undirected = self.graph.to_undirected(as_view=True)
        best = None
        for start in starts:
            for end in ends:
                try:
                    path = nx.shortest_path(undirected, start, end)
                except nx.NetworkXNoPath:
                    continue
                if best is None or len(path) < len(best):
                    best = path
        return [node[1] for node in best] if best else []

    def get_stats(self) -> dict:
        by_category: dict[str, int] = {}
        for _, data in self.graph.nodes(data=True):
            category = data.get("category", "")
            by_category[category] = by_category.get(category, 0) + 1
        return {
            "node_count": self.graph.number_of_nodes(),
            "edge_count": self.graph.number_of_edges(),
            "dangling_count": sum(len(v) for v in self.dangling.values()),
            "records_by_category": by_category,
            "connected_components": (
                nx.number_weakly_connected_components(self.graph)
                if self.graph.number_of_nodes() else 0
            ),
        }


def _relationship_type(field_path: str) -> str:
    """``mechanics.innateTraits`` -> ``innate_traits``."""
    leaf = field_path.rsplit(".", 1)[-1]
    if leaf == "id":
        return "granted_by"
    return "".join("_" + ch.lower() if ch.isupper() else ch for ch in leaf)
