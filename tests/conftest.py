"""
Shared pytest fixtures for tournament engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset
"""
import pytest
import sys
import os
from datetime import datetime

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ttcore.models import Participant, SetScore, TournamentMode, TournamentState


def make_participants(count, clubs=None):
    """Participants P1..Pn with strictly descending rankings."""
    participants = []
    for i in range(count):
        club = clubs[i % len(clubs)] if clubs else f"Club {i + 1}"
        participants.append(Participant(id=f"P{i + 1}", ranking=2000 - i * 10, name=f"Player {i + 1}", club=club))
    return participants


def win_sets(side=1, required=3):
    """Straight-sets win for the given side."""
    if side == 1:
        return [SetScore(11, 5)] * required
    return [SetScore(5, 11)] * required


@pytest.fixture
def now():
    return datetime(2026, 6, 1, 12, 0, 0)


@pytest.fixture
def participants():
    return make_participants(8)


@pytest.fixture
def make_state():
    """Factory for an empty tournament state."""
    def _make(mode=TournamentMode.KNOCKOUT, count=8, **settings):
        return TournamentState(mode=mode, participants=make_participants(count), **settings)
    return _make


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at a temporary data directory with settings and players."""
    import app as app_module
    import yaml

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "settings.yaml").write_text(yaml.dump({
        'tournament_name': 'Test Open',
        'mode': 'knockout',
        'best_of': 2,
        'table_count': 2,
    }, default_flow_style=False))
    (data_dir / "players.yaml").write_text(yaml.dump(
        [p.to_dict() for p in make_participants(4)], default_flow_style=False,
    ))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return data_dir


@pytest.fixture
def client(temp_data_dir):
    """Create a test client bound to the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
