"""
Tests for HistoryManager (core/history.py).
"""

from branchboard.core.history import HistoryManager


class TestHistoryManager:
    """Tests for linear undo/redo."""

    def test_starts_with_one_snapshot(self):
        history = HistoryManager(["root"])
        assert len(history) == 1
        assert history.index == 0
        assert history.current == ("root",)
        assert not history.can_undo and not history.can_redo

    def test_commit_after_undo_discards_redo_tail(self):
        """Test commit(A); commit(B); undo(); commit(C) leaves [initial, A, C]."""
        history = HistoryManager(["init"])
        history.commit(["A"])
        history.commit(["B"])
        history.undo()
        history.commit(["C"])
        assert history.snapshots == [("init",), ("A",), ("C",)]
        assert history.index == 2
        assert history.current == ("C",)
        assert history.redo() is False
        assert history.index == 2

    def test_undo_is_noop_at_start(self):
        history = HistoryManager(["init"])
        assert history.undo() is False
        assert history.index == 0

    def test_undo_redo_move_cursor_only(self):
        history = HistoryManager(["init"])
        history.commit(["A"])
        assert history.undo() is True
        assert history.current == ("init",)
        assert history.redo() is True
        assert history.current == ("A",)
        assert len(history) == 2

    def test_replace_current_does_not_append(self):
        history = HistoryManager(["init"])
        history.commit(["A"])
        history.replace_current(["A2"])
        assert history.snapshots == [("init",), ("A2",)]
        history.undo()
        assert history.current == ("init",)

    def test_reset(self):
        history = HistoryManager(["init"])
        history.commit(["A"])
        history.reset(["fresh"])
        assert history.snapshots == [("fresh",)]
        assert history.index == 0

    def test_listeners_see_every_change(self):
        seen = []
        history = HistoryManager(["init"])
        history.add_listener(seen.append)
        history.commit(["A"])
        history.replace_current(["B"])
        history.undo()
        history.undo()  # no-op, not reported
        history.remove_listener(seen.append)
        history.redo()
        assert seen == [("A",), ("B",), ("init",)]
