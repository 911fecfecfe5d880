"""
Commands accepted by the engine and the deltas it hands back.

Both sets are closed: every command is one of the dataclasses below and
every change to the match list is one of the delta types. A delta converts
to the field dict the host store persists (to_update) so that no caller ever
builds a partial record by hand.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Union

from .models import Match, MatchStatus, Participant, Phase, SetScore, TournamentMode


# Commands

@dataclass(frozen=True)
class GenerateBracket:
    participants: List[Participant]
    mode: TournamentMode
    group_size: Optional[int] = None
    best_of: Optional[int] = None


@dataclass(frozen=True)
class EvaluateScore:
    match_id: str
    sets: List[SetScore]
    required_wins: Optional[int] = None


@dataclass(frozen=True)
class ActivateMatch:
    match_id: str
    table: Optional[int] = None


@dataclass(frozen=True)
class ComputeStandings:
    match_ids: Optional[List[str]] = None
    group_number: Optional[int] = None


@dataclass(frozen=True)
class AdvanceGroupToKnockout:
    pass


@dataclass(frozen=True)
class GenerateNextSwissRound:
    pass


@dataclass(frozen=True)
class AutoAssignTables:
    pass


@dataclass(frozen=True)
class ResetTournament:
    pass


Command = Union[
    GenerateBracket,
    EvaluateScore,
    ActivateMatch,
    ComputeStandings,
    AdvanceGroupToKnockout,
    GenerateNextSwissRound,
    AutoAssignTables,
    ResetTournament,
]


# Deltas

@dataclass(frozen=True)
class MatchCreated:
    match: Match

    @property
    def match_id(self) -> str:
        return self.match.id

    def to_update(self) -> Dict:
        return self.match.to_dict()


@dataclass(frozen=True)
class ScoreRecorded:
    match_id: str
    sets: List[SetScore]
    winner: Optional[str]
    status: MatchStatus
    completed_at: Optional[datetime] = None

    def to_update(self) -> Dict:
        return {
            'sets': [s.to_dict() for s in self.sets],
            'winner': self.winner,
            'status': self.status.value,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class MatchActivated:
    match_id: str
    table: Optional[int]

    def to_update(self) -> Dict:
        return {'status': MatchStatus.ACTIVE.value, 'table': self.table}


@dataclass(frozen=True)
class SlotFilled:
    """A participant slot written by propagation (None when a correction cleared it)."""

    match_id: str
    slot: int
    participant_id: Optional[str]

    def to_update(self) -> Dict:
        return {f'participant{self.slot}': self.participant_id}


@dataclass(frozen=True)
class PhaseChanged:
    phase: Optional[Phase]
    rounds: int

    def to_update(self) -> Dict:
        return {'phase': self.phase.value if self.phase else None, 'rounds': self.rounds}


@dataclass(frozen=True)
class MatchesCleared:
    count: int = 0

    def to_update(self) -> Dict:
        return {'matches': []}


Delta = Union[MatchCreated, ScoreRecorded, MatchActivated, SlotFilled, PhaseChanged, MatchesCleared]


def diff_matches(before: List[Match], after: List[Match]) -> List[Delta]:
    """
    Describe how the match list changed between two snapshots.

    New matches are reported whole. For existing matches each changed slot
    becomes a SlotFilled, a change of result a ScoreRecorded and a move onto
    a table a MatchActivated.
    """
    previous = {m.id: m for m in before}
    deltas: List[Delta] = []
    for match in after:
        old = previous.get(match.id)
        if old is None:
            deltas.append(MatchCreated(match))
            continue

        for slot in (1, 2):
            value = match.participant1 if slot == 1 else match.participant2
            old_value = old.participant1 if slot == 1 else old.participant2
            if value != old_value:
                deltas.append(SlotFilled(match.id, slot, value))

        scored = (
            match.sets != old.sets
            or match.winner != old.winner
            or match.completed_at != old.completed_at
        )
        if not scored and old.status == MatchStatus.PENDING and match.status == MatchStatus.ACTIVE:
            deltas.append(MatchActivated(match.id, match.table))
        elif scored or match.status != old.status:
            deltas.append(ScoreRecorded(match.id, list(match.sets), match.winner, match.status, match.completed_at))
    return deltas
