"""Tests for WaypointStore mutations and undo/redo."""

import pytest

from veloroute.contracts.enums import WaypointKind
from veloroute.services.errors import WaypointNotFoundError
from veloroute.services.waypoint_store import History, WaypointStore

A = (-105.27, 40.02)
B = (-105.25, 40.03)
C = (-105.23, 40.01)


def _store(*positions) -> WaypointStore:
    store = WaypointStore()
    for p in positions:
        store.add(p)
    return store


class TestMutations:
    def test_add_and_kinds(self):
        store = _store(A, B, C)
        assert store.positions == [A, B, C]
        assert [wp.kind for wp in store.waypoints] == [
            WaypointKind.START,
            WaypointKind.VIA,
            WaypointKind.END,
        ]

    def test_single_waypoint_is_start(self):
        assert _store(A).waypoints[0].kind == WaypointKind.START

    def test_add_at_start(self):
        store = _store(A)
        wp = store.add(B, at_end=False)
        assert store.positions == [B, A]
        assert wp.kind == WaypointKind.START

    def test_insert_on_route_between_two(self):
        store = _store(A, B)
        mid = ((A[0] + B[0]) / 2, (A[1] + B[1]) / 2 + 0.001)
        inserted = store.insert_on_route(mid)
        assert store.positions == [A, mid, B]
        assert inserted.kind == WaypointKind.VIA

    def test_insert_on_nearest_segment(self):
        store = _store((0.0, 0.0), (0.0, 0.01), (0.01, 0.01))
        store.insert_on_route((0.005, 0.0102))
        assert store.positions[2] == (0.005, 0.0102)

    def test_insert_with_one_waypoint_appends(self):
        store = _store(A)
        store.insert_on_route(B)
        assert store.positions == [A, B]

    def test_move_keeps_id(self):
        store = _store(A, B)
        wp_id = store.waypoints[1].id
        moved = store.move(wp_id, C)
        assert moved.id == wp_id
        assert store.positions == [A, C]

    def test_remove_retags(self):
        store = _store(A, B, C)
        removed = store.remove(store.waypoints[2].id)
        assert removed.position == C
        assert store.waypoints[1].kind == WaypointKind.END

    def test_unknown_id(self):
        store = _store(A)
        with pytest.raises(WaypointNotFoundError):
            store.remove("wp_missing")
        with pytest.raises(WaypointNotFoundError):
            store.move("wp_missing", B)

    def test_reverse(self):
        store = _store(A, B, C)
        first_id = store.waypoints[0].id
        assert store.reverse()
        assert store.positions == [C, B, A]
        assert store.waypoints[2].id == first_id
        assert store.waypoints[2].kind == WaypointKind.END

    def test_reverse_and_clear_are_noops_at_bounds(self):
        store = _store(A)
        revision = store.revision
        assert not store.reverse()
        empty = WaypointStore()
        assert not empty.clear()
        assert store.revision == revision
        assert not empty.can_undo

    def test_out_of_range_position_rejected(self):
        with pytest.raises(ValueError):
            WaypointStore().add((200.0, 0.0))


class TestUndoRedo:
    def test_undo_redo_are_inverse(self):
        store = _store(A, B)
        before = store.waypoints
        store.add(C)
        after = store.waypoints

        assert store.undo()
        assert store.waypoints == before
        assert store.redo()
        assert store.waypoints == after

    def test_undo_to_empty_then_bound(self):
        store = _store(A)
        assert store.undo()
        assert store.count == 0
        assert not store.undo()
        assert store.count == 0

    def test_redo_at_end_is_noop(self):
        store = _store(A)
        assert not store.redo()
        assert store.positions == [A]

    def test_new_mutation_discards_redo(self):
        store = _store(A, B)
        store.undo()
        store.add(C)
        assert not store.can_redo
        assert store.positions == [A, C]

    def test_clear_is_undoable(self):
        store = _store(A, B)
        store.clear()
        assert store.count == 0
        store.undo()
        assert store.positions == [A, B]

    def test_drag_commits_once(self):
        store = _store(A, B)
        wp_id = store.waypoints[1].id
        depth = store.history.cursor

        store.move(wp_id, (-105.24, 40.03), final=False)
        store.move(wp_id, (-105.23, 40.03), final=False)
        assert store.history.cursor == depth
        store.move(wp_id, C, final=True)
        assert store.history.cursor == depth + 1

        store.undo()
        assert store.positions == [A, B]

    def test_undo_discards_uncommitted_drag(self):
        store = _store(A, B)
        wp_id = store.waypoints[1].id
        store.move(wp_id, C, final=False)
        assert not store.can_redo

        assert store.undo()
        assert store.positions == [A, B]
        assert store.undo()
        assert store.positions == [A]

    def test_replace_is_one_step(self):
        store = _store(A)
        store.replace([B, C])
        assert store.positions == [B, C]
        store.undo()
        assert store.positions == [A]

    def test_initial_sequence_is_the_base(self):
        store = WaypointStore(_store(A, B).waypoints)
        assert not store.can_undo
        assert [wp.kind for wp in store.waypoints] == [WaypointKind.START, WaypointKind.END]

    def test_bounded_history(self):
        store = WaypointStore(max_history=3)
        for i in range(5):
            store.add((0.0, i * 0.01))
        undone = 0
        while store.undo():
            undone += 1
        assert undone == 3
        assert store.count == 2


class TestHistory:
    def test_needs_room(self):
        with pytest.raises(ValueError):
            History(0)

    def test_push_truncates_redo(self):
        history = History()
        history.push(("a",))
        history.push(("b",))
        history.undo()
        history.push(("c",))
        assert len(history) == 2
        assert history.current == ("c",)
        assert not history.can_redo
