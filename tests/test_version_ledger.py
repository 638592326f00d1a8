from __future__ import annotations

import itertools
import json
from datetime import datetime, timezone

import pytest

from metalineage.errors import LineageImportError, NotFoundError
from metalineage.graph.types import Node, Version
from metalineage.ledger.service import VersionLedger, utc_timestamp


def _ledger() -> VersionLedger:
    counter = itertools.count(1)
    return VersionLedger(
        clock=lambda: datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
        id_factory=lambda: f"v{next(counter)}",
    )


def test_create_version_appends_and_becomes_current():
    ledger = _ledger()
    first = ledger.create_version("/data/a.csv", "first", {"size": 1, "rowCount": 2})
    second = ledger.create_version("/data/a.csv", "same path again")

    assert [v.id for v in ledger.versions] == ["v1", "v2"]
    assert ledger.current_version_id == second.id
    assert first.timestamp == "2024-05-01T12:00:00.000Z"
    assert first.metadata == {"size": 1, "rowCount": 2}
    assert second.metadata is None
    assert second.path == first.path


def test_generated_ids_are_unique_uuids():
    ledger = VersionLedger()
    ids = {ledger.create_version("/p", str(i)).id for i in range(50)}
    assert len(ids) == 50


def test_switch_version():
    ledger = _ledger()
    first = ledger.create_version("/a", "a")
    ledger.create_version("/b", "b")

    assert ledger.switch_version(first.id) == first
    assert ledger.current_version == first

    with pytest.raises(NotFoundError):
        ledger.switch_version("nope")
    assert ledger.current_version_id == first.id


def test_delete_current_moves_pointer_to_last_in_list_order():
    ledger = _ledger()
    v1 = ledger.create_version("/a", "a")
    v2 = ledger.create_version("/b", "b")
    v3 = ledger.create_version("/c", "c")
    ledger.switch_version(v2.id)

    ledger.delete_version(v2.id)
    assert ledger.current_version_id == v3.id

    ledger.delete_version(v3.id)
    assert ledger.current_version_id == v1.id

    ledger.delete_version(v1.id)
    assert ledger.current_version_id is None
    assert len(ledger) == 0


def test_delete_non_current_keeps_pointer():
    ledger = _ledger()
    v1 = ledger.create_version("/a", "a")
    v2 = ledger.create_version("/b", "b")
    ledger.delete_version(v1.id)
    assert ledger.current_version_id == v2.id


def test_delete_missing_version_raises():
    ledger = _ledger()
    ledger.create_version("/a", "a")
    with pytest.raises(NotFoundError):
        ledger.delete_version("ghost")
    assert len(ledger) == 1


def test_last_means_list_order_not_timestamp():
    newest = Version(id="new", timestamp="2030-01-01T00:00:00.000Z", path="/n", description="")
    oldest = Version(id="old", timestamp="2000-01-01T00:00:00.000Z", path="/o", description="")
    victim = Version(id="x", timestamp="2015-01-01T00:00:00.000Z", path="/x", description="")
    ledger = VersionLedger([newest, oldest, victim], current_version="x")

    ledger.delete_version("x")
    assert ledger.current_version_id == "old"


def test_export_and_import():
    ledger = _ledger()
    ledger.create_version("/a", "a", {"columns": ["id", "name"]})
    ledger.create_version("/b", "b")
    exported = ledger.export_ledger()
    assert exported["currentVersion"] == "v2"
    assert [v["id"] for v in exported["versions"]] == ["v1", "v2"]

    restored = VersionLedger()
    restored.import_ledger(exported)
    assert restored.export_ledger() == exported

    restored_from_text = VersionLedger()
    restored_from_text.import_ledger(ledger.export_ledger_json())
    assert restored_from_text.export_ledger() == exported


def test_import_without_current_version_clears_pointer():
    ledger = _ledger()
    ledger.create_version("/a", "a")
    ledger.import_ledger({"versions": [{"id": "x", "path": "/x"}]})
    assert ledger.current_version_id is None
    assert ledger.versions[0].description == ""


@pytest.mark.parametrize(
    "blob",
    [
        "garbage",
        {"versions": "nope"},
        {},
        {"versions": [{"path": "/missing-id"}]},
        {"versions": [{"id": "a"}, {"id": "a"}]},
        {"versions": [{"id": "a"}], "currentVersion": "b"},
        {"versions": [{"id": "a", "metadata": []}]},
    ],
)
def test_bad_import_changes_nothing(blob):
    ledger = _ledger()
    ledger.create_version("/a", "a")
    before = ledger.export_ledger()

    with pytest.raises(LineageImportError):
        ledger.import_ledger(blob if not isinstance(blob, dict) else json.dumps(blob))

    assert ledger.export_ledger() == before


def test_from_node_and_to_patch():
    version = Version(id="v", timestamp="t", path="/p", description="d")
    node = Node(id=1, label="src", type="source", dataset_versions=[version], current_version_id="v")
    ledger = VersionLedger.from_node(node)
    created = ledger.create_version("/q", "next")

    patch = ledger.to_patch()
    assert [v.id for v in patch.dataset_versions] == ["v", created.id]
    assert patch.current_version_id == created.id
    # the node itself is untouched until the patch is applied
    assert node.dataset_versions == [version]


def test_constructor_rejects_dangling_pointer():
    with pytest.raises(NotFoundError):
        VersionLedger([], current_version="ghost")


def test_utc_timestamp_format():
    moment = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert utc_timestamp(moment) == "2024-01-02T03:04:05.678Z"


def test_apply_to_writes_ledger_onto_node():
    node = Node(id=1, label="src", type="source")
    ledger = VersionLedger.from_node(node)
    created = ledger.create_version("/data/a.csv", "first")
    assert node.dataset_versions == []

    assert ledger.apply_to(node) is node
    assert node.dataset_versions == [created]
    assert node.current_version_id == created.id
