"""Tests for the undo/redo history manager."""

import pytest

from scenedsl.core.history import HistoryManager, HistoryState
from scenedsl.scene.actions import Action, AddObject
from scenedsl.scene.scene import SceneObject, create_default_scene


def make_scenes(count: int):
    """A sequence of distinct scenes with 0..count-1 objects."""
    base = create_default_scene(timestamp="2024-01-01T00:00:00")
    return [
        base.model_copy(update={"objects": tuple(SceneObject(id=f"o{i}") for i in range(n))})
        for n in range(count)
    ]


class Recorder:
    """restore callback that remembers what it was given."""

    def __init__(self):
        self.restored = []

    def __call__(self, scene):
        self.restored.append(scene)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


def commit(history: HistoryManager, before, after, action=None) -> bool:
    with history.applying():
        return history.commit(action or AddObject(object={}), before, after)


class TestRecording:
    """Test commit behaviour."""

    def test_commit_requires_applying(self, recorder):
        """Test commit outside APPLYING is ignored."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)

        assert history.commit(AddObject(object={}), s0, s1) is False
        assert len(history) == 0

    def test_commit(self, recorder):
        """Test a committed transition can be undone."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)

        assert commit(history, s0, s1)
        assert len(history) == 1
        assert history.can_undo()
        assert not history.can_redo()
        assert history.peek_undo().action_type == "ADD_OBJECT"

    def test_entries_are_snapshots(self, recorder):
        """Test stored scenes are equal copies, not the originals."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)
        commit(history, s0, s1)

        entry = history.entries[0]
        assert entry.before == s0
        assert entry.before is not s0
        assert entry.after == s1
        assert entry.after is not s1
        assert entry.timestamp

    def test_entry_timestamp_uses_clock(self, recorder):
        """Test entries are stamped by the injected clock."""
        history = HistoryManager(recorder, clock=lambda: "2024-06-01T12:00:00")
        s0, s1 = make_scenes(2)
        commit(history, s0, s1)

        assert history.entries[0].timestamp == "2024-06-01T12:00:00"

    def test_commit_truncates_redo(self, recorder):
        """Test a new commit after undo discards the redo tail."""
        history = HistoryManager(recorder)
        s0, s1, s2 = make_scenes(3)
        commit(history, s0, s1)
        commit(history, s1, s2)
        history.undo()

        commit(history, s1, s0, Action(type="OTHER"))

        assert len(history) == 2
        assert not history.can_redo()
        assert history.peek_undo().action_type == "OTHER"

    def test_eviction(self, recorder):
        """Test the oldest entries are dropped past the cap."""
        history = HistoryManager(recorder, max_entries=3)
        scenes = make_scenes(6)
        for before, after in zip(scenes, scenes[1:]):
            commit(history, before, after)

        assert len(history) == 3
        assert history.undo_depth == 3
        assert history.entries[0].before == scenes[2]

        while history.undo():
            pass
        assert recorder.restored[-1] == scenes[2]

    def test_invalid_capacity(self, recorder):
        """Test a capacity below one is rejected."""
        with pytest.raises(ValueError):
            HistoryManager(recorder, max_entries=0)


class TestUndoRedo:
    """Test undo and redo."""

    def test_undo_restores_before(self, recorder):
        """Test undo hands a fresh copy of the before scene to restore."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)
        commit(history, s0, s1)

        assert history.undo()
        assert recorder.restored == [s0]
        assert recorder.restored[0] is not history.entries[0].before

    def test_redo_restores_after(self, recorder):
        """Test redo hands a fresh copy of the after scene to restore."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)
        commit(history, s0, s1)
        history.undo()

        assert history.redo()
        assert recorder.restored[-1] == s1
        assert not history.can_redo()

    def test_empty(self, recorder):
        """Test undo/redo with nothing recorded return False."""
        history = HistoryManager(recorder)
        assert history.undo() is False
        assert history.redo() is False
        assert history.peek_undo() is None
        assert history.peek_redo() is None
        assert recorder.restored == []

    def test_depths(self, recorder):
        """Test undo/redo depth bookkeeping."""
        history = HistoryManager(recorder)
        s0, s1, s2 = make_scenes(3)
        commit(history, s0, s1)
        commit(history, s1, s2)
        history.undo()

        assert history.undo_depth == 1
        assert history.redo_depth == 1

    def test_clear(self, recorder):
        """Test clear forgets everything."""
        history = HistoryManager(recorder)
        s0, s1 = make_scenes(2)
        commit(history, s0, s1)
        history.clear()

        assert len(history) == 0
        assert not history.can_undo()


class TestStateMachine:
    """Test the APPLYING/REPLAYING guard."""

    def test_idle_by_default(self, recorder):
        """Test a new history is idle."""
        history = HistoryManager(recorder)
        assert history.state is HistoryState.IDLE
        assert not history.is_busy

    def test_commit_during_replay_ignored(self):
        """Test commits made while restoring are not recorded."""
        s0, s1 = make_scenes(2)
        results = []

        def restore(scene):
            results.append(history.state)
            results.append(history.commit(AddObject(object={}), scene, s1))

        history = HistoryManager(restore)
        commit(history, s0, s1)
        history.undo()

        assert results == [HistoryState.REPLAYING, False]
        assert len(history) == 1
        assert history.state is HistoryState.IDLE

    def test_nested_enter_rejected(self, recorder):
        """Test a second operation cannot start while one is running."""
        history = HistoryManager(recorder)
        with history.applying():
            assert history.is_busy
            with pytest.raises(RuntimeError):
                with history.replaying():
                    pass
        assert history.state is HistoryState.IDLE

    def test_state_reset_after_error(self):
        """Test the state returns to idle if restore raises."""
        s0, s1 = make_scenes(2)

        def restore(scene):
            raise RuntimeError("renderer failed")

        history = HistoryManager(restore)
        commit(history, s0, s1)

        with pytest.raises(RuntimeError):
            history.undo()
        assert history.state is HistoryState.IDLE
