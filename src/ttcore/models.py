"""
Data models for the tournament engine.

A tournament snapshot (TournamentState) holds the ranked participants and the
full match list. Matches are addressed by (round, position, group_number);
group_number multiplexes several bracket graphs inside one list:

- None: main bracket (single elimination, winners bracket, round robin, swiss)
- LOSERS_BRACKET (-1): double elimination losers bracket
- GRAND_FINAL (-2): double elimination grand final
- 0..k-1: group stage groups
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

LOSERS_BRACKET = -1
GRAND_FINAL = -2
GROUP_POSITION_OFFSET = 100

WINNER = "winner"
LOSER = "loser"


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class TournamentMode(str, Enum):
    KNOCKOUT = "knockout"
    DOUBLE_KNOCKOUT = "double_knockout"
    ROUND_ROBIN = "round_robin"
    GROUP_KNOCKOUT = "group_knockout"
    SWISS = "swiss"


class ParticipantType(str, Enum):
    SINGLES = "singles"
    DOUBLES = "doubles"
    TEAM = "team"


class Phase(str, Enum):
    GROUP = "group"
    KNOCKOUT = "knockout"


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Participant:
    """A player, doubles pair or team, identified by an opaque id.

    ranking is the seeding value (TTR) and is only read at generation time.
    """

    id: str
    ranking: int = 0
    name: str = ""
    club: str = ""

    def to_dict(self) -> Dict:
        return {'id': self.id, 'ranking': self.ranking, 'name': self.name, 'club': self.club}

    @classmethod
    def from_dict(cls, data: Dict) -> "Participant":
        return cls(
            id=str(data['id']),
            ranking=int(data.get('ranking') or 0),
            name=data.get('name') or "",
            club=data.get('club') or "",
        )


@dataclass(frozen=True)
class SetScore:
    """Raw point totals of one set (game) within a match."""

    score1: int
    score2: int

    def to_dict(self) -> Dict:
        return {'score1': self.score1, 'score2': self.score2}

    @classmethod
    def from_dict(cls, data) -> "SetScore":
        if isinstance(data, (list, tuple)):
            return cls(int(data[0]), int(data[1]))
        return cls(int(data['score1']), int(data['score2']))

    def __str__(self) -> str:
        return f"{self.score1}:{self.score2}"


@dataclass
class Match:
    id: str
    round: int
    position: int
    group_number: Optional[int] = None
    participant1: Optional[str] = None
    participant2: Optional[str] = None
    sets: List[SetScore] = field(default_factory=list)
    winner: Optional[str] = None
    status: MatchStatus = MatchStatus.PENDING
    table: Optional[int] = None
    completed_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[int, int, Optional[int]]:
        return match_key(self.round, self.position, self.group_number)

    @property
    def participants(self) -> List[str]:
        """Ids of the participants currently seated in this match."""
        return [p for p in (self.participant1, self.participant2) if p is not None]

    @property
    def is_ready(self) -> bool:
        """Both sides are known."""
        return self.participant1 is not None and self.participant2 is not None

    @property
    def is_bye(self) -> bool:
        return self.status == MatchStatus.COMPLETED and len(self.participants) == 1

    @property
    def loser(self) -> Optional[str]:
        if self.winner is None or not self.is_ready:
            return None
        return self.participant2 if self.winner == self.participant1 else self.participant1

    def involves(self, participant_id: str) -> bool:
        return participant_id in (self.participant1, self.participant2)

    def copy(self, **changes) -> "Match":
        changes.setdefault('sets', list(self.sets))
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'round': self.round,
            'position': self.position,
            'group_number': self.group_number,
            'participant1': self.participant1,
            'participant2': self.participant2,
            'sets': [s.to_dict() for s in self.sets],
            'winner': self.winner,
            'status': self.status.value,
            'table': self.table,
            'completed_at': _format_timestamp(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Match":
        return cls(
            id=str(data['id']),
            round=int(data['round']),
            position=int(data['position']),
            group_number=data.get('group_number'),
            participant1=data.get('participant1'),
            participant2=data.get('participant2'),
            sets=[SetScore.from_dict(s) for s in data.get('sets') or []],
            winner=data.get('winner'),
            status=MatchStatus(data.get('status', MatchStatus.PENDING.value)),
            table=data.get('table'),
            completed_at=_parse_timestamp(data.get('completed_at')),
        )


class Route(NamedTuple):
    """Edge of the bracket graph: where the winner or loser of a match goes.

    slot is 1 for participant1 and 2 for participant2.
    """

    outcome: str
    target: Tuple[int, int, Optional[int]]
    slot: int


def slot_for_position(position: int) -> int:
    """Even positions feed participant1, odd positions participant2."""
    return 1 if position % 2 == 0 else 2


def match_key(round_num: int, position: int, group_number: Optional[int] = None) -> Tuple[int, int, Optional[int]]:
    return (round_num, position, group_number)


def make_match_id(round_num: int, position: int, group_number: Optional[int] = None) -> str:
    """Deterministic match id derived from the match coordinates."""
    if group_number is None:
        prefix = "M"
    elif group_number == LOSERS_BRACKET:
        prefix = "L"
    elif group_number == GRAND_FINAL:
        prefix = "GF"
    else:
        prefix = f"G{group_number}"
    return f"{prefix}-R{round_num}-P{position}"


def new_match(round_num: int, position: int, group_number: Optional[int] = None,
              participant1: Optional[str] = None, participant2: Optional[str] = None) -> Match:
    """Create a match; a one-sided match is created as a completed bye."""
    match = Match(
        id=make_match_id(round_num, position, group_number),
        round=round_num,
        position=position,
        group_number=group_number,
        participant1=participant1,
        participant2=participant2,
    )
    present = match.participants
    if len(present) == 1:
        match.winner = present[0]
        match.status = MatchStatus.COMPLETED
    return match


@dataclass
class TournamentState:
    """Caller-owned snapshot threaded through every engine call.

    best_of is the number of sets a side must win (3 means best of five).
    """

    name: str = "Table Tennis Tournament"
    mode: TournamentMode = TournamentMode.KNOCKOUT
    participant_type: ParticipantType = ParticipantType.SINGLES
    best_of: int = 3
    break_minutes: int = 0
    table_count: int = 4
    group_size: int = 4
    phase: Optional[Phase] = None
    rounds: int = 0
    participants: List[Participant] = field(default_factory=list)
    matches: List[Match] = field(default_factory=list)

    def copy(self, **changes) -> "TournamentState":
        """Copy with independent match objects so the original is never mutated."""
        changes.setdefault('participants', list(self.participants))
        changes.setdefault('matches', [m.copy() for m in self.matches])
        return replace(self, **changes)

    def find_match(self, match_id: str) -> Optional[Match]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    def ranked_participants(self) -> List[Participant]:
        """Participants sorted by descending ranking (stable for equal rankings)."""
        return sorted(self.participants, key=lambda p: -p.ranking)

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'mode': self.mode.value,
            'participant_type': self.participant_type.value,
            'best_of': self.best_of,
            'break_minutes': self.break_minutes,
            'table_count': self.table_count,
            'group_size': self.group_size,
            'phase': self.phase.value if self.phase else None,
            'rounds': self.rounds,
            'participants': [p.to_dict() for p in self.participants],
            'matches': [m.to_dict() for m in self.matches],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "TournamentState":
        phase = data.get('phase')
        return cls(
            name=data.get('name') or cls.name,
            mode=TournamentMode(data.get('mode', TournamentMode.KNOCKOUT.value)),
            participant_type=ParticipantType(data.get('participant_type', ParticipantType.SINGLES.value)),
            best_of=int(data.get('best_of', 3)),
            break_minutes=int(data.get('break_minutes', 0)),
            table_count=int(data.get('table_count', 4)),
            group_size=int(data.get('group_size', 4)),
            phase=Phase(phase) if phase else None,
            rounds=int(data.get('rounds', 0)),
            participants=[Participant.from_dict(p) for p in data.get('participants') or []],
            matches=[Match.from_dict(m) for m in data.get('matches') or []],
        )
