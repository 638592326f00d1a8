from __future__ import annotations

import pytest

from metalineage.errors import NotFoundError, ValidationError
from metalineage.graph.service import GraphStore
from metalineage.graph.types import NodeDraft, NodePatch, Version
from metalineage.store.db import create_db, get_engine, get_session
from metalineage.store.repo import LineageRepository


@pytest.fixture
def store():
    engine = get_engine()
    create_db(engine)
    session = get_session(engine)
    graph_store = GraphStore(LineageRepository(session))
    try:
        yield graph_store
    finally:
        session.close()


def test_add_node_applies_defaults(store: GraphStore):
    node = store.add_node(NodeDraft(label="Orders"))
    assert node.type == "transform"
    assert node.description == ""
    assert node.properties == {}
    assert node.path_properties == {}
    assert node.dataset_versions == []
    assert node.current_version_id is None
    assert store.get_node(node.id) == node


@pytest.mark.parametrize("label", ["", "   "])
def test_add_node_rejects_empty_label(store: GraphStore, label):
    with pytest.raises(ValidationError):
        store.add_node(NodeDraft(label=label))
    assert store.list_nodes() == []


def test_add_node_rejects_unknown_type(store: GraphStore):
    with pytest.raises(ValidationError):
        store.add_node(NodeDraft(label="x", type="sink"))


def test_rapid_add_node_ids_are_unique(store: GraphStore):
    ids = [store.add_node(NodeDraft(label=f"n{i}")).id for i in range(200)]
    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)


def test_add_node_ids_skip_past_imported_ids(store: GraphStore):
    far_future = 10**15
    store.import_graph({"nodes": [{"id": far_future, "label": "imported"}], "edges": []})
    node = store.add_node(NodeDraft(label="new"))
    assert node.id == far_future + 1


def test_update_node_merges_fields_and_property_keys(store: GraphStore):
    node = store.add_node(
        NodeDraft(
            label="Orders",
            properties={"format": "csv", "owner": "ops"},
            path_properties={"raw": "/data/raw"},
        )
    )

    updated = store.update_node(
        node.id,
        NodePatch(
            description="Nightly dump",
            properties={"format": "parquet", "freq": "daily", "owner": None},
            path_properties={"clean": "/data/clean"},
        ),
    )

    assert updated.id == node.id
    assert updated.label == "Orders"
    assert updated.description == "Nightly dump"
    assert updated.properties == {"format": "parquet", "freq": "daily"}
    assert updated.path_properties == {"raw": "/data/raw", "clean": "/data/clean"}


def test_update_node_validates(store: GraphStore):
    node = store.add_node(NodeDraft(label="Orders"))
    with pytest.raises(ValidationError):
        store.update_node(node.id, NodePatch(label=""))
    with pytest.raises(ValidationError):
        store.update_node(node.id, NodePatch(type="bogus"))
    with pytest.raises(ValidationError):
        store.update_node(node.id, NodePatch(current_version_id="nope"))
    assert store.get_node(node.id).label == "Orders"


def test_update_node_stores_ledger_fields(store: GraphStore):
    node = store.add_node(NodeDraft(label="Orders", type="source"))
    version = Version(
        id="v1",
        timestamp="2024-01-01T00:00:00.000Z",
        path="/data/orders.csv",
        description="first",
        metadata={"rowCount": 3},
    )
    updated = store.update_node(
        node.id, NodePatch(dataset_versions=[version], current_version_id="v1")
    )
    assert updated.dataset_versions == [version]
    assert updated.current_version_id == "v1"


def test_update_missing_node_raises(store: GraphStore):
    with pytest.raises(NotFoundError):
        store.update_node(404, NodePatch(label="x"))


def test_add_edge_requires_both_endpoints(store: GraphStore):
    node = store.add_node(NodeDraft(label="a"))
    with pytest.raises(NotFoundError):
        store.add_edge(node.id, 999)
    with pytest.raises(NotFoundError):
        store.add_edge(999, node.id)
    assert store.list_edges() == []


def test_duplicate_edges_are_permitted(store: GraphStore):
    a = store.add_node(NodeDraft(label="a"))
    b = store.add_node(NodeDraft(label="b"))
    first = store.add_edge(a.id, b.id)
    second = store.add_edge(a.id, b.id)
    assert first.id != second.id
    assert len(store.list_edges()) == 2


def test_add_edge_with_explicit_id(store: GraphStore):
    a = store.add_node(NodeDraft(label="a"))
    b = store.add_node(NodeDraft(label="b"))
    edge = store.add_edge(a.id, b.id, edge_id=5)
    assert store.get_edge(5) == edge
    with pytest.raises(ValidationError):
        store.add_edge(b.id, a.id, edge_id=5)


def test_delete_node_cascades_incident_edges(store: GraphStore):
    a = store.add_node(NodeDraft(label="a"))
    b = store.add_node(NodeDraft(label="b"))
    c = store.add_node(NodeDraft(label="c"))
    store.add_edge(a.id, b.id)
    store.add_edge(b.id, c.id)
    keep = store.add_edge(a.id, c.id)
    store.add_edge(b.id, b.id)

    store.delete_node(b.id)

    assert [n.id for n in store.list_nodes()] == [a.id, c.id]
    assert store.list_edges() == [keep]


def test_delete_missing_node_and_edge_raise(store: GraphStore):
    with pytest.raises(NotFoundError):
        store.delete_node(1)
    with pytest.raises(NotFoundError):
        store.delete_edge("missing")


def test_delete_edge(store: GraphStore):
    a = store.add_node(NodeDraft(label="a"))
    b = store.add_node(NodeDraft(label="b"))
    edge = store.add_edge(a.id, b.id)
    store.delete_edge(edge.id)
    assert store.list_edges() == []
    assert len(store.list_nodes()) == 2


def test_neighbors(store: GraphStore):
    a = store.add_node(NodeDraft(label="a", type="source"))
    b = store.add_node(NodeDraft(label="b"))
    store.add_edge(a.id, b.id)

    assert [n.id for n in store.get_outgoing_neighbors(a.id)] == [b.id]
    assert [n.id for n in store.get_incoming_neighbors(b.id)] == [a.id]
    assert store.get_incoming_neighbors(a.id) == []


def test_get_subgraph(store: GraphStore):
    a = store.add_node(NodeDraft(label="a", type="source"))
    b = store.add_node(NodeDraft(label="b"))
    c = store.add_node(NodeDraft(label="c", type="output"))
    d = store.add_node(NodeDraft(label="d", type="output"))
    store.add_edge(a.id, b.id)
    store.add_edge(b.id, c.id)
    store.add_edge(b.id, d.id)

    nodes_1, edges_1 = store.get_subgraph(a.id, max_hops=1)
    assert {n.id for n in nodes_1} == {a.id, b.id}
    assert len(edges_1) == 1

    nodes_2, edges_2 = store.get_subgraph(a.id, max_hops=2)
    assert {n.id for n in nodes_2} == {a.id, b.id, c.id, d.id}
    assert len(edges_2) == 3


def test_get_subgraph_directionality(store: GraphStore):
    a = store.add_node(NodeDraft(label="a"))
    b = store.add_node(NodeDraft(label="b"))
    c = store.add_node(NodeDraft(label="c"))
    store.add_edge(a.id, b.id)
    store.add_edge(b.id, c.id)

    # Directed traversal from C should NOT walk back upstream
    nodes_d, edges_d = store.get_subgraph(c.id, max_hops=2)
    assert {n.id for n in nodes_d} == {c.id}
    assert edges_d == []

    nodes_u, edges_u = store.get_subgraph(c.id, max_hops=2, directed=False)
    assert {n.id for n in nodes_u} == {a.id, b.id, c.id}
    assert len(edges_u) == 2

    with pytest.raises(ValueError):
        store.get_subgraph(c.id, max_hops=-1)
