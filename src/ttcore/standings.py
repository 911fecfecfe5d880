"""
Standings for round robin groups and Swiss pools.

Standings are never stored; they are recomputed from the match list on
demand and depend on nothing else.

Round robin ranking: wins -> head-to-head -> set difference -> point difference
Swiss ranking: wins -> Buchholz -> set difference -> point difference
"""
from dataclasses import dataclass, field
from itertools import groupby
from typing import Dict, FrozenSet, Iterable, List, Optional

from .models import Match, MatchStatus
from .round_robin import group_members
from .scoring import set_winner


@dataclass
class Standing:
    participant_id: str
    played: int = 0
    won: int = 0
    lost: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    points_won: int = 0
    points_lost: int = 0
    buchholz: int = 0
    opponents: List[str] = field(default_factory=list)

    @property
    def set_diff(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def point_diff(self) -> int:
        return self.points_won - self.points_lost

    def to_dict(self) -> Dict:
        return {
            'participant_id': self.participant_id,
            'played': self.played,
            'won': self.won,
            'lost': self.lost,
            'sets_won': self.sets_won,
            'sets_lost': self.sets_lost,
            'set_diff': self.set_diff,
            'points_won': self.points_won,
            'points_lost': self.points_lost,
            'point_diff': self.point_diff,
            'buchholz': self.buchholz,
        }


def _record_result(table: Dict[str, Standing], match: Match) -> None:
    s1 = table[match.participant1]
    s2 = table[match.participant2]
    s1.played += 1
    s2.played += 1

    if match.winner == match.participant1:
        s1.won += 1
        s2.lost += 1
    elif match.winner == match.participant2:
        s2.won += 1
        s1.lost += 1

    for score in match.sets:
        s1.points_won += score.score1
        s1.points_lost += score.score2
        s2.points_won += score.score2
        s2.points_lost += score.score1
        side = set_winner(score)
        if side == 1:
            s1.sets_won += 1
            s2.sets_lost += 1
        elif side == 2:
            s2.sets_won += 1
            s1.sets_lost += 1


def aggregate(matches: Iterable[Match], swiss: bool = False,
              participant_ids: Optional[Iterable[str]] = None) -> Dict[str, Standing]:
    """
    Build the raw (unsorted) table for a set of matches.

    Only completed matches with both participants and at least one set
    count. In Swiss pools a completed bye also counts as a played win.
    """
    table: Dict[str, Standing] = {}

    def ensure(participant_id: str) -> Standing:
        if participant_id not in table:
            table[participant_id] = Standing(participant_id)
        return table[participant_id]

    for participant_id in participant_ids or []:
        ensure(participant_id)

    for match in matches:
        if match.participant1 is None or match.participant2 is None:
            if swiss and match.is_bye and match.winner is not None:
                bye = ensure(match.winner)
                bye.played += 1
                bye.won += 1
            continue

        ensure(match.participant1).opponents.append(match.participant2)
        ensure(match.participant2).opponents.append(match.participant1)

        if match.status != MatchStatus.COMPLETED or not match.sets:
            continue
        _record_result(table, match)

    if swiss:
        for standing in table.values():
            standing.buchholz = sum(table[opp].won for opp in standing.opponents if opp in table)
    return table


def _head_to_head(matches: Iterable[Match]) -> Dict[FrozenSet[str], List[str]]:
    """Winners of the decided meetings between each pair."""
    meetings: Dict[FrozenSet[str], List[str]] = {}
    for match in matches:
        if not match.is_ready or match.status != MatchStatus.COMPLETED or match.winner is None:
            continue
        meetings.setdefault(frozenset((match.participant1, match.participant2)), []).append(match.winner)
    return meetings


def _order_tied(tied: List[Standing], meetings: Dict[FrozenSet[str], List[str]]) -> List[Standing]:
    """
    Order players with the same number of wins.

    A player that won the single meeting with another tied player ranks above
    them. Among the players not beaten that way, set difference and then point
    difference decide. A circle of direct wins falls back to the differences.
    """
    def beats(a: Standing, b: Standing) -> bool:
        return meetings.get(frozenset((a.participant_id, b.participant_id))) == [a.participant_id]

    remaining = sorted(tied, key=lambda s: (-s.set_diff, -s.point_diff))
    ordered = []
    while remaining:
        pick = next(
            (s for s in remaining if not any(beats(other, s) for other in remaining if other is not s)),
            remaining[0],
        )
        ordered.append(pick)
        remaining.remove(pick)
    return ordered


def compute_standings(matches: List[Match], participant_ids: Optional[Iterable[str]] = None) -> List[Standing]:
    """
    Ranked standings for a round robin pool or one group.

    Ties on wins are broken by the direct meeting when the two players met
    exactly once, then by set difference and point difference. Players that
    are still tied keep their order of first appearance.
    """
    table = aggregate(matches, participant_ids=participant_ids)
    meetings = _head_to_head(matches)

    standings = []
    by_wins = sorted(table.values(), key=lambda s: -s.won)
    for _, tied in groupby(by_wins, key=lambda s: s.won):
        standings.extend(_order_tied(list(tied), meetings))
    return standings


def compute_swiss_standings(matches: List[Match], participant_ids: Optional[Iterable[str]] = None) -> List[Standing]:
    """Ranked Swiss standings: wins, Buchholz, set difference, point difference."""
    table = aggregate(matches, swiss=True, participant_ids=participant_ids)
    return sorted(
        table.values(),
        key=lambda s: (-s.won, -s.buchholz, -s.set_diff, -s.point_diff),
    )


def group_standings(matches: List[Match]) -> Dict[int, List[Standing]]:
    """Standings of every group of a group stage, keyed by group number."""
    standings = {}
    for number, members in sorted(group_members(matches).items()):
        group_matches = [m for m in matches if m.group_number == number]
        standings[number] = compute_standings(group_matches, participant_ids=members)
    return standings
