from __future__ import annotations

from metalineage.pathcheck import PathCheckTracker, PathState


def test_initial_keys_start_unknown():
    tracker = PathCheckTracker(["input", "output"])
    assert tracker.states() == {"input": PathState.UNKNOWN, "output": PathState.UNKNOWN}
    assert tracker.state("never-seen") is PathState.UNKNOWN


def test_resolve_applies_latest_ticket():
    tracker = PathCheckTracker(["input"])
    ticket = tracker.begin("input", "/data/a.csv")
    assert tracker.resolve(ticket, PathState.VALID)
    assert tracker.state("input") is PathState.VALID


def test_edit_resets_state_and_drops_late_result():
    tracker = PathCheckTracker(["input"])
    ticket = tracker.begin("input", "/data/a.csv")
    tracker.reset("input")

    assert not tracker.resolve(ticket, PathState.VALID)
    assert tracker.state("input") is PathState.UNKNOWN


def test_only_newest_of_overlapping_checks_wins():
    tracker = PathCheckTracker(["input"])
    first = tracker.begin("input", "/old")
    second = tracker.begin("input", "/new")

    assert tracker.resolve(second, PathState.INVALID)
    assert not tracker.resolve(first, PathState.VALID)
    assert tracker.state("input") is PathState.INVALID


def test_rename_and_forget():
    tracker = PathCheckTracker(["input"])
    ticket = tracker.begin("input", "/data/a.csv")
    tracker.resolve(ticket, PathState.VALID)

    pending = tracker.begin("input", "/data/a.csv")
    tracker.rename("input", "source_file")
    assert "input" not in tracker.states()
    assert tracker.state("source_file") is PathState.UNKNOWN
    assert not tracker.resolve(pending, PathState.VALID)
    assert "input" not in tracker.states()

    late = tracker.begin("source_file", "/x")
    tracker.forget("source_file")
    assert not tracker.resolve(late, PathState.VALID)
    assert tracker.states() == {}
