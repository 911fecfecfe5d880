"""
Unit tests for YAML persistence.
"""
import pytest
import sys
import os
import yaml
from filelock import FileLock, Timeout

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import win_sets
from storage import (
    StaleSnapshotError,
    TournamentStore,
    get_default_settings,
    load_participants,
    load_settings,
    state_from_settings,
)
from ttcore import engine
from ttcore.changes import MatchActivated
from ttcore.exceptions import UnknownMatchError
from ttcore.models import MatchStatus, TournamentMode, TournamentState, new_match


@pytest.fixture
def store(tmp_path):
    (tmp_path / "players.yaml").write_text(yaml.dump([
        {'id': "a", 'name': "Anna", 'club': "Nord", 'ranking': 1800},
        {'id': "b", 'name': "Ben", 'club': "Sued", 'ranking': 1700},
        {'id': "c", 'name': "Cleo", 'club': "Nord", 'ranking': 1600},
        {'id': "d", 'name': "Dirk", 'club': "Mitte", 'ranking': 1500},
    ]))
    return TournamentStore(str(tmp_path))


class TestSettings:
    """Tests for settings and participant loading."""

    def test_defaults_when_missing(self, tmp_path):
        """Test a missing file gives the defaults."""
        assert load_settings(str(tmp_path / "nope.yaml")) == get_default_settings()

    def test_merge_with_defaults(self, tmp_path):
        """Test missing keys are filled from the defaults."""
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.dump({'mode': 'swiss', 'table_count': 6}))
        settings = load_settings(str(path))
        assert settings['mode'] == 'swiss'
        assert settings['table_count'] == 6
        assert settings['best_of'] == 3

    def test_participants_as_mapping(self, tmp_path):
        """Test participants keyed by id."""
        path = tmp_path / "players.yaml"
        path.write_text(yaml.dump({'x': {'name': "Xaver", 'ranking': 1500}, 'y': {'ranking': 1400}}))
        participants = load_participants(str(path))
        assert [p.id for p in participants] == ["x", "y"]
        assert participants[0].name == "Xaver"

    def test_participants_without_id_use_name(self, tmp_path):
        """Test a record without id is identified by its name."""
        path = tmp_path / "players.yaml"
        path.write_text(yaml.dump([{'name': "Uma", 'ranking': 1500}]))
        assert load_participants(str(path))[0].id == "Uma"

    def test_state_from_settings(self):
        """Test settings map onto the snapshot fields."""
        settings = dict(get_default_settings(), mode='double_knockout', break_minutes=5)
        state = state_from_settings(settings, [])
        assert state.mode == TournamentMode.DOUBLE_KNOCKOUT
        assert state.break_minutes == 5


class TestTournamentStore:
    """Tests for the versioned tournament store."""

    def test_fresh_directory(self, store):
        """Test an unsaved tournament comes from settings and players at version 0."""
        state = store.fetch_tournament()
        assert [p.id for p in state.participants] == ["a", "b", "c", "d"]
        assert state.matches == []
        assert store.current_version() == 0

    def test_save_and_fetch(self, store):
        """Test a saved snapshot reads back equal and bumps the version."""
        state = engine.generate_bracket(store.fetch_tournament()).state
        assert store.save_tournament(state, expected_version=0) == 1
        assert store.fetch_tournament() == state
        assert store.current_version() == 1

    def test_stale_version_refused(self, store):
        """Test a write from an outdated snapshot is refused."""
        state = engine.generate_bracket(store.fetch_tournament()).state
        store.save_tournament(state, expected_version=0)
        with pytest.raises(StaleSnapshotError) as exc_info:
            store.save_tournament(state, expected_version=0)
        assert exc_info.value.actual == 1

    def test_apply_changes(self, store, now):
        """Test engine deltas are written into the stored snapshot."""
        state = engine.generate_bracket(store.fetch_tournament(), best_of=2).state
        version = store.save_tournament(state)

        result = engine.activate_match(state, "M-R0-P0", 1, now=now)
        version = store.apply_changes(result.changes, expected_version=version)
        assert version == 2
        assert store.fetch_tournament() == result.state

    def test_apply_score_and_slot(self, store, now):
        """Test a score and its propagation persist together."""
        state = engine.generate_bracket(store.fetch_tournament(), best_of=2).state
        store.save_tournament(state)
        result = engine.evaluate_score(state, "M-R0-P1", win_sets(2, 2), now=now)
        store.apply_changes(result.changes)

        stored = store.fetch_tournament()
        assert stored.find_match("M-R0-P1").winner == "d"
        assert stored.find_match("M-R0-P1").completed_at == now
        assert stored.find_match("M-R1-P0").participant2 == "d"

    def test_apply_reset(self, store):
        """Test a reset clears the stored matches and phase."""
        state = engine.generate_bracket(store.fetch_tournament()).state
        store.save_tournament(state)
        store.apply_changes(engine.reset_tournament(state).changes)
        stored = store.fetch_tournament()
        assert stored.matches == []
        assert stored.rounds == 0

    def test_empty_changes_keep_version(self, store):
        """Test nothing is written without changes."""
        assert store.apply_changes([]) == 0

    def test_unknown_change(self, store):
        """Test an unknown delta type raises TypeError."""
        with pytest.raises(TypeError):
            store.apply_changes([object()])

    def test_update_unknown_match(self, store):
        """Test updating a missing record raises."""
        with pytest.raises(UnknownMatchError):
            store.update_match("M-R0-P0", {'table': 1})

    def test_update_multiple_matches(self, store):
        """Test several records are updated in one write."""
        state = engine.generate_bracket(store.fetch_tournament()).state
        store.save_tournament(state)
        store.update_multiple_matches({
            "M-R0-P0": MatchActivated("M-R0-P0", 1).to_update(),
            "M-R0-P1": MatchActivated("M-R0-P1", 2).to_update(),
        })
        stored = store.fetch_tournament()
        assert all(m.status == MatchStatus.ACTIVE for m in stored.matches if m.round == 0)

    def test_create_matches(self, tmp_path):
        """Test matches can be appended to a stored snapshot."""
        store = TournamentStore(str(tmp_path))
        store.save_tournament(TournamentState())
        round_one = [new_match(0, 0, None, "a", "b"), new_match(0, 1, None, "c")]
        assert store.create_matches(round_one, expected_version=1) == 2
        stored = store.fetch_tournament()
        assert [m.id for m in stored.matches] == ["M-R0-P0", "M-R0-P1"]
        assert stored.matches[1].is_bye


class TestConcurrentWriters:
    """Tests for writes computed from the same snapshot."""

    def test_fetch_versioned(self, store):
        """Test the snapshot and version are read together."""
        state = engine.generate_bracket(store.fetch_tournament()).state
        store.save_tournament(state)
        fetched, version = store.fetch_versioned()
        assert fetched == state
        assert version == 1

    def test_interleaved_activations_on_one_table(self, store):
        """Test only the first of two activations on the same table is written."""
        store.save_tournament(engine.generate_bracket(store.fetch_tournament()).state)
        state, version = store.fetch_versioned()
        first = engine.activate_match(state, "M-R0-P0", 1)
        second = engine.activate_match(state, "M-R0-P1", 1)
        assert first.accepted and second.accepted

        store.apply_changes(first.changes, expected_version=version)
        with pytest.raises(StaleSnapshotError):
            store.apply_changes(second.changes, expected_version=version)

        stored = store.fetch_tournament()
        assert [m.id for m in stored.matches if m.status == MatchStatus.ACTIVE and m.table == 1] == ["M-R0-P0"]

    def test_transaction_holds_lock(self, store, tmp_path):
        """Test no other writer gets the lock between read and write."""
        store.save_tournament(engine.generate_bracket(store.fetch_tournament()).state)
        with store.transaction() as (state, version):
            with pytest.raises(Timeout):
                FileLock(str(tmp_path / ".lock"), timeout=0).acquire()
            store.apply_changes(engine.activate_match(state, "M-R0-P0", 1).changes, version)
        assert store.current_version() == 2

    def test_transaction_stale_version(self, store):
        """Test a transaction from an outdated version is refused before the read."""
        with pytest.raises(StaleSnapshotError) as exc_info:
            with store.transaction(expected_version=3):
                pass
        assert exc_info.value.actual == 0
