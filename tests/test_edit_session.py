from __future__ import annotations

import asyncio

import pytest

from metalineage.errors import NotFoundError, ValidationError
from metalineage.graph.service import GraphStore
from metalineage.graph.types import NodeDraft
from metalineage.pathcheck import LocalPathChecker, PathCheckRequest, PathCheckResponse, PathState
from metalineage.session.edit_session import EditSession
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


@pytest.fixture
def source_node(store: GraphStore):
    return store.add_node(
        NodeDraft(
            label="Orders Raw",
            type="source",
            properties={"format": "csv", "owner": "sales"},
            path_properties={"input": "/data/orders.csv"},
        )
    )


class _StaticChecker:
    def __init__(self, exists: bool):
        self.exists = exists
        self.paths: list[str] = []

    def check(self, request: PathCheckRequest) -> PathCheckResponse:
        self.paths.append(request.path)
        return PathCheckResponse(exists=self.exists)


def test_unknown_node(store: GraphStore):
    with pytest.raises(NotFoundError):
        EditSession(store, 404)


def test_edits_stay_private_until_save(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    session.set_label("Orders Landing")
    session.set_property("format", "json")
    session.add_path_property("archive", "/data/archive")

    assert store.get_node(source_node.id) == source_node

    saved = session.save()
    assert saved.label == "Orders Landing"
    assert saved.properties == {"format": "json", "owner": "sales"}
    assert saved.path_properties == {"input": "/data/orders.csv", "archive": "/data/archive"}
    assert store.get_node(source_node.id) == saved


def test_remove_and_rename_properties(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    session.remove_property("owner")
    session.rename_property("format", "file_format")
    assert list(session.node.properties) == ["file_format"]

    saved = session.save()
    assert saved.properties == {"file_format": "csv"}

    with pytest.raises(NotFoundError):
        session.remove_property("owner")


def test_property_key_rules(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    with pytest.raises(ValidationError):
        session.add_property("format", "dup")
    with pytest.raises(ValidationError):
        session.add_property("", "x")
    with pytest.raises(ValidationError):
        session.rename_property("format", "owner")

    session.rename_property("owner", "team")
    assert list(session.node.properties) == ["format", "team"]


def test_invalid_label_blocks_save(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    session.set_label("  ")
    session.set_property("format", "json")

    with pytest.raises(ValidationError):
        session.save()
    assert store.get_node(source_node.id) == source_node


def test_invalid_type_is_rejected_on_edit(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    with pytest.raises(ValidationError):
        session.set_type("sink")
    assert session.node.type == "source"


def test_ledger_saved_for_source_nodes(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    assert session.is_dataset_node
    first = session.create_version("/data/orders.csv", "initial", {"size": 0})
    second = session.create_version("/data/orders_v2.csv", "reload")
    session.switch_version(first.id)

    assert store.get_node(source_node.id).dataset_versions == []

    saved = session.save()
    assert [v.id for v in saved.dataset_versions] == [first.id, second.id]
    assert saved.current_version_id == first.id

    session.delete_version(first.id)
    saved = session.save()
    assert [v.id for v in saved.dataset_versions] == [second.id]
    assert saved.current_version_id == second.id


def test_ledger_not_written_for_other_types(store: GraphStore):
    node = store.add_node(NodeDraft(label="Clean", type="transform"))
    session = EditSession(store, node.id)
    assert not session.is_dataset_node
    patch = session.build_patch()
    assert patch.dataset_versions is None


def test_path_edit_resets_state_and_ignores_stale_result(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    ticket = session.begin_path_check("input")
    session.set_path_property("input", "/data/orders_new.csv")

    assert not session.finish_path_check(ticket, PathState.VALID)
    assert session.path_state("input") is PathState.UNKNOWN

    fresh = session.begin_path_check("input")
    assert fresh.path == "/data/orders_new.csv"
    assert session.finish_path_check(fresh, PathState.INVALID)
    assert session.path_state("input") is PathState.INVALID


def test_rename_and_remove_path_property_track_state(store: GraphStore, source_node):
    session = EditSession(store, source_node.id)
    ticket = session.begin_path_check("input")
    session.finish_path_check(ticket, PathState.VALID)

    session.rename_path_property("input", "landing")
    assert session.path_state("landing") is PathState.UNKNOWN
    assert "input" not in session.path_states.states()

    session.remove_path_property("landing")
    assert session.path_states.states() == {}
    saved = session.save()
    assert saved.path_properties == {}


def test_check_path_with_local_checker(store: GraphStore, tmp_path):
    present = tmp_path / "orders.csv"
    present.write_text("id\n", encoding="utf-8")
    node = store.add_node(
        NodeDraft(
            label="Orders",
            path_properties={"input": str(present), "output": str(tmp_path / "none.csv")},
        )
    )
    session = EditSession(store, node.id, checker=LocalPathChecker(), path_check_timeout=5)

    assert asyncio.run(session.check_path("input")) is PathState.VALID
    assert asyncio.run(session.check_path("output")) is PathState.INVALID


def test_check_path_relative_value_is_invalid_without_checker_call(store: GraphStore):
    node = store.add_node(NodeDraft(label="Orders", path_properties={"input": "orders.csv"}))
    checker = _StaticChecker(exists=True)
    session = EditSession(store, node.id, checker=checker)

    assert asyncio.run(session.check_path("input")) is PathState.INVALID
    assert checker.paths == []
