"""
Propagation of results through the bracket graph.

Matches live in a flat list and are looked up through MatchArena, an index
from (round, position, group_number) to list position. The edges of the graph
are never stored; they are derived from the coordinates of the source match
by the routing functions of each format.
"""
import logging
from itertools import zip_longest
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .double_elimination import route_double_elimination
from .elimination import generate_single_elimination, route_single_elimination
from .exceptions import TournamentStateError
from .models import (
    WINNER,
    Match,
    MatchStatus,
    Route,
    TournamentMode,
    TournamentState,
)
from .standings import group_standings
from .swiss import current_round

logger = logging.getLogger(__name__)

Key = Tuple[int, int, Optional[int]]
Router = Callable[[Match], List[Route]]


class MatchArena:
    """O(1) access to the matches of a snapshot by their coordinates.

    The arena works on the list it is given; callers pass a copy when the
    original snapshot must stay untouched.
    """

    def __init__(self, matches: List[Match]):
        self.matches = matches
        self._index: Dict[Key, int] = {}
        for i, match in enumerate(matches):
            if match.key in self._index:
                logger.warning("Duplicate match coordinates %s (%s)", match.key, match.id)
                continue
            self._index[match.key] = i

    def __iter__(self) -> Iterator[Match]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    def get(self, key: Key) -> Optional[Match]:
        i = self._index.get(key)
        return self.matches[i] if i is not None else None

    def replace(self, match: Match) -> None:
        """Swap in a new version of the match stored at the same coordinates."""
        self.matches[self._index[match.key]] = match

    def extend(self, matches: List[Match]) -> None:
        for match in matches:
            self._index[match.key] = len(self.matches)
            self.matches.append(match)


def winners_bracket_rounds(matches: List[Match]) -> int:
    rounds = [m.round for m in matches if m.group_number is None]
    return max(rounds) + 1 if rounds else 0


def make_router(state: TournamentState) -> Router:
    """Routing function for the format of the given snapshot."""
    if state.mode == TournamentMode.KNOCKOUT:
        return route_single_elimination

    if state.mode == TournamentMode.DOUBLE_KNOCKOUT:
        winners_rounds = winners_bracket_rounds(state.matches)
        return lambda match: route_double_elimination(match, winners_rounds)

    if state.mode == TournamentMode.GROUP_KNOCKOUT:
        def route_knockout_phase(match: Match) -> List[Route]:
            if match.group_number is None:
                return route_single_elimination(match)
            return []
        return route_knockout_phase

    return lambda match: []


def _get_slot(match: Match, slot: int) -> Optional[str]:
    return match.participant1 if slot == 1 else match.participant2


def _set_slot(match: Match, slot: int, participant_id: Optional[str]) -> None:
    if slot == 1:
        match.participant1 = participant_id
    else:
        match.participant2 = participant_id


def _outcome(match: Match, outcome: str) -> Optional[str]:
    return match.winner if outcome == WINNER else match.loser


def propagate(arena: MatchArena, match: Match, router: Router,
              previous_winner: Optional[str] = None, previous_loser: Optional[str] = None) -> List[Match]:
    """
    Push the winner (and loser) of a match into their downstream slots.

    An empty slot is always filled. A slot that still holds the previous
    result of a corrected match is rewritten only while the downstream match
    is pending.

    Returns:
        The downstream matches that changed
    """
    changed = []
    for route in router(match):
        target = arena.get(route.target)
        if target is None:
            logger.debug("No match at %s for the %s of %s", route.target, route.outcome, match.id)
            continue

        new_value = _outcome(match, route.outcome)
        previous = previous_winner if route.outcome == WINNER else previous_loser
        current = _get_slot(target, route.slot)
        if current == new_value:
            continue

        if current is None:
            _set_slot(target, route.slot, new_value)
        elif current == previous and target.status == MatchStatus.PENDING:
            _set_slot(target, route.slot, new_value)
        else:
            logger.warning(
                "Not overwriting slot %d of %s (%s, status %s) with %s from %s",
                route.slot, target.id, current, target.status.value, new_value, match.id,
            )
            continue

        logger.debug("%s of %s -> %s slot %d", route.outcome, match.id, target.id, route.slot)
        changed.append(target)
    return changed


class _FeederGraph:
    """Incoming edges per slot, used to tell whether an empty slot can still be filled."""

    def __init__(self, arena: MatchArena, router: Router):
        self.arena = arena
        self.incoming: Dict[Tuple[Key, int], List[Tuple[Match, str]]] = {}
        for match in arena:
            for route in router(match):
                self.incoming.setdefault((route.target, route.slot), []).append((match, route.outcome))
        self._cache: Dict[Tuple[str, str], bool] = {}

    def slot_fillable(self, match: Match, slot: int) -> bool:
        if _get_slot(match, slot) is not None:
            return True
        return any(self.can_produce(source, outcome) for source, outcome in self.incoming.get((match.key, slot), []))

    def can_produce(self, match: Match, outcome: str) -> bool:
        if match.status == MatchStatus.COMPLETED:
            return _outcome(match, outcome) is not None
        cache_key = (match.id, outcome)
        if cache_key not in self._cache:
            if outcome == WINNER:
                result = self.slot_fillable(match, 1) or self.slot_fillable(match, 2)
            else:
                result = self.slot_fillable(match, 1) and self.slot_fillable(match, 2)
            self._cache[cache_key] = result
        return self._cache[cache_key]


def resolve_byes(arena: MatchArena, router: Router) -> List[Match]:
    """
    Propagate byes until nothing changes any more.

    Completed byes push their winner downstream. A pending match left with
    one participant whose other slot can never be filled is completed as a
    bye for that participant.

    Returns:
        Every match changed along the way, in order of first change
    """
    changed: Dict[str, Match] = {}
    progress = True
    while progress:
        progress = False
        feeders = _FeederGraph(arena, router)
        for match in arena:
            if match.status == MatchStatus.PENDING and len(match.participants) == 1:
                empty_slot = 1 if match.participant1 is None else 2
                if feeders.slot_fillable(match, empty_slot):
                    continue
                match.winner = match.participants[0]
                match.status = MatchStatus.COMPLETED
                match.completed_at = None
                match.sets = []
                logger.debug("Resolved %s as a bye for %s", match.id, match.winner)
                changed.setdefault(match.id, match)
                progress = True
                break

            if match.is_bye:
                for target in propagate(arena, match, router):
                    changed.setdefault(target.id, target)
                    progress = True
    return list(changed.values())


def cross_seed(winners: List[str], runners_up: List[str]) -> List[str]:
    """Interleave group winners with the runners-up in reverse group order."""
    seeded = []
    for winner, runner_up in zip_longest(winners, list(reversed(runners_up))):
        if winner is not None:
            seeded.append(winner)
        if runner_up is not None:
            seeded.append(runner_up)
    return seeded


def group_stage_complete(matches: List[Match]) -> bool:
    group_matches = [m for m in matches if m.group_number is not None and m.group_number >= 0]
    return bool(group_matches) and all(m.status == MatchStatus.COMPLETED for m in group_matches)


def knockout_qualifiers(matches: List[Match]) -> List[str]:
    """Top two of every group, cross-seeded for the knockout bracket."""
    winners = []
    runners_up = []
    for standings in group_standings(matches).values():
        if standings:
            winners.append(standings[0].participant_id)
        if len(standings) > 1:
            runners_up.append(standings[1].participant_id)
    return cross_seed(winners, runners_up)


def build_knockout_phase(matches: List[Match]) -> List[Match]:
    """Knockout bracket for the group qualifiers."""
    if any(m.group_number is None for m in matches):
        raise TournamentStateError("The knockout phase has already been generated")
    if not group_stage_complete(matches):
        raise TournamentStateError("All group matches must be completed before the knockout phase")
    qualifiers = knockout_qualifiers(matches)
    logger.info("Knockout qualifiers: %s", qualifiers)
    return generate_single_elimination(qualifiers)


def ensure_swiss_round_complete(matches: List[Match]) -> None:
    latest = current_round(matches)
    if latest is None:
        raise TournamentStateError("No Swiss round has been generated yet")
    open_matches = [m.id for m in matches if m.round == latest and m.status != MatchStatus.COMPLETED]
    if open_matches:
        raise TournamentStateError(f"Round {latest + 1} still has open matches: {', '.join(open_matches)}")
