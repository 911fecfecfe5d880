"""
YAML persistence for a tournament.

The engine never touches the disk; this store keeps the snapshot in
tournament.yaml inside a data directory and applies the engine's deltas to
it. Writes are serialised with a file lock, and every write bumps a version
counter so that a client writing from an outdated snapshot is refused
instead of silently overwriting someone else's result.
"""
import os
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

import yaml
from filelock import FileLock

from ttcore.changes import (
    MatchActivated,
    MatchCreated,
    MatchesCleared,
    PhaseChanged,
    ScoreRecorded,
    SlotFilled,
)
from ttcore.exceptions import UnknownMatchError
from ttcore.models import Match, Participant, ParticipantType, TournamentMode, TournamentState

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))

TOURNAMENT_FILE = 'tournament.yaml'
SETTINGS_FILE = 'settings.yaml'
PLAYERS_FILE = 'players.yaml'


class StaleSnapshotError(Exception):
    """Raised when a write is based on an older version than the stored one."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Snapshot version {expected} is stale, stored version is {actual}")


def get_default_settings():
    """Return default tournament settings."""
    return {
        'tournament_name': 'Table Tennis Tournament',
        'mode': TournamentMode.KNOCKOUT.value,
        'participant_type': ParticipantType.SINGLES.value,
        'best_of': 3,
        'break_minutes': 0,
        'table_count': 4,
        'group_size': 4,
    }


def load_settings(path):
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    if not os.path.exists(path):
        return defaults
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
        if not data:
            return defaults
        # Merge with defaults to ensure all keys exist
        for key, value in defaults.items():
            if key not in data:
                data[key] = value
        return data


def load_participants(path) -> List[Participant]:
    """
    Load participants from YAML.

    Accepts a list of records ({id, name, club, ranking}) or a mapping of
    id to record. Records without an id use their name.
    """
    if not os.path.exists(path):
        return []
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or []

    if isinstance(data, dict):
        records = []
        for participant_id, record in data.items():
            record = dict(record or {})
            record.setdefault('id', participant_id)
            records.append(record)
    else:
        records = data

    participants = []
    for record in records:
        record = dict(record)
        if 'id' not in record:
            record['id'] = record.get('name')
        participants.append(Participant.from_dict(record))
    return participants


def state_from_settings(settings: Dict, participants: List[Participant]) -> TournamentState:
    return TournamentState(
        name=settings['tournament_name'],
        mode=TournamentMode(settings['mode']),
        participant_type=ParticipantType(settings['participant_type']),
        best_of=int(settings['best_of']),
        break_minutes=int(settings['break_minutes']),
        table_count=int(settings['table_count']),
        group_size=int(settings['group_size']),
        participants=participants,
    )


class TournamentStore:
    """Tournament snapshot stored as YAML under data_dir."""

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = data_dir or DATA_DIR
        self.lock = FileLock(os.path.join(self.data_dir, '.lock'), timeout=10)

    def _path(self, filename: str) -> str:
        return os.path.join(self.data_dir, filename)

    def _read(self) -> Dict:
        path = self._path(TOURNAMENT_FILE)
        if not os.path.exists(path):
            settings = load_settings(self._path(SETTINGS_FILE))
            participants = load_participants(self._path(PLAYERS_FILE))
            data = state_from_settings(settings, participants).to_dict()
            data['version'] = 0
            return data
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        data.setdefault('version', 0)
        data.setdefault('matches', [])
        return data

    def _write(self, data: Dict) -> int:
        os.makedirs(self.data_dir, exist_ok=True)
        data['version'] = int(data.get('version', 0)) + 1
        with open(self._path(TOURNAMENT_FILE), 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        return data['version']

    @staticmethod
    def _check_version(data: Dict, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != data['version']:
            raise StaleSnapshotError(expected_version, data['version'])

    @staticmethod
    def _find_record(data: Dict, match_id: str) -> Dict:
        for record in data['matches']:
            if record['id'] == match_id:
                return record
        raise UnknownMatchError(match_id)

    def fetch_tournament(self) -> TournamentState:
        with self.lock:
            return TournamentState.from_dict(self._read())

    def current_version(self) -> int:
        with self.lock:
            return int(self._read()['version'])

    def fetch_versioned(self) -> Tuple[TournamentState, int]:
        """The snapshot together with the version it was read at."""
        with self.lock:
            data = self._read()
            return TournamentState.from_dict(data), int(data['version'])

    @contextmanager
    def transaction(self, expected_version: Optional[int] = None) -> Iterator[Tuple[TournamentState, int]]:
        """
        Hold the lock from reading the snapshot until the changes are written.

        Yields the snapshot and its version; writes inside the block should
        pass that version on so that they can only apply to what was read.

        Raises:
            StaleSnapshotError: If expected_version is not the stored version
        """
        with self.lock:
            state, version = self.fetch_versioned()
            if expected_version is not None and expected_version != version:
                raise StaleSnapshotError(expected_version, version)
            yield state, version

    def save_tournament(self, state: TournamentState, expected_version: Optional[int] = None) -> int:
        """Replace the stored snapshot; returns the new version."""
        with self.lock:
            data = self._read()
            self._check_version(data, expected_version)
            new_data = state.to_dict()
            new_data['version'] = data['version']
            return self._write(new_data)

    def create_matches(self, matches: List[Match], expected_version: Optional[int] = None) -> int:
        with self.lock:
            data = self._read()
            self._check_version(data, expected_version)
            data['matches'].extend(m.to_dict() for m in matches)
            return self._write(data)

    def update_match(self, match_id: str, fields: Dict, expected_version: Optional[int] = None) -> int:
        return self.update_multiple_matches({match_id: fields}, expected_version)

    def update_multiple_matches(self, updates: Dict[str, Dict], expected_version: Optional[int] = None) -> int:
        with self.lock:
            data = self._read()
            self._check_version(data, expected_version)
            for match_id, fields in updates.items():
                self._find_record(data, match_id).update(fields)
            return self._write(data)

    def apply_changes(self, changes: List, expected_version: Optional[int] = None) -> int:
        """
        Persist engine deltas in one locked write.

        Returns:
            The new version (unchanged when there was nothing to write)
        """
        with self.lock:
            data = self._read()
            self._check_version(data, expected_version)
            if not changes:
                return data['version']

            for change in changes:
                if isinstance(change, MatchesCleared):
                    data['matches'] = []
                elif isinstance(change, PhaseChanged):
                    data.update(change.to_update())
                elif isinstance(change, MatchCreated):
                    data['matches'].append(change.to_update())
                elif isinstance(change, (ScoreRecorded, MatchActivated, SlotFilled)):
                    self._find_record(data, change.match_id).update(change.to_update())
                else:
                    raise TypeError(f"Unknown change: {change!r}")

            version = self._write(data)
            logger.info("Applied %d change(s), version %d", len(changes), version)
            return version
