"""
Command surface of the tournament engine.

Every function takes a TournamentState and returns an EngineResult holding a
new state plus the deltas the host has to persist. The input state is never
mutated and nothing is kept between calls.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

from .allocation import Rejection, RejectionReason, TableAllocator
from .changes import (
    ActivateMatch,
    AdvanceGroupToKnockout,
    AutoAssignTables,
    Command,
    ComputeStandings,
    Delta,
    EvaluateScore,
    GenerateBracket,
    GenerateNextSwissRound,
    MatchesCleared,
    PhaseChanged,
    ResetTournament,
    diff_matches,
)
from .double_elimination import (
    calculate_losers_bracket_rounds,
    generate_double_elimination,
    get_losers_round_name,
    get_winners_round_name,
)
from .elimination import (
    calculate_total_rounds,
    final_match,
    generate_single_elimination,
    round_name_for,
)
from .exceptions import InsufficientParticipantsError, TournamentStateError, UnknownMatchError
from .models import (
    GRAND_FINAL,
    LOSERS_BRACKET,
    Match,
    MatchStatus,
    Participant,
    Phase,
    SetScore,
    TournamentMode,
    TournamentState,
)
from .propagation import (
    MatchArena,
    build_knockout_phase,
    ensure_swiss_round_complete,
    make_router,
    propagate,
    resolve_byes,
    winners_bracket_rounds,
)
from .round_robin import count_round_robin_rounds, generate_group_stage, generate_round_robin
from .scoring import apply_evaluation, evaluate
from .standings import Standing, compute_standings as rank_matches, compute_swiss_standings
from .swiss import current_round, generate_first_round, generate_next_round

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = {
    TournamentMode.KNOCKOUT: 2,
    TournamentMode.DOUBLE_KNOCKOUT: 3,
    TournamentMode.ROUND_ROBIN: 2,
    TournamentMode.GROUP_KNOCKOUT: 2,
    TournamentMode.SWISS: 2,
}


@dataclass
class EngineResult:
    """Outcome of an engine call.

    rejection is set when a table request was refused; the state is then the
    unchanged input. standings is only filled by compute_standings.
    """

    state: TournamentState
    changes: List[Delta] = field(default_factory=list)
    rejection: Optional[Rejection] = None
    standings: Optional[List[Standing]] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def _result(before: TournamentState, after: TournamentState) -> EngineResult:
    changes = diff_matches(before.matches, after.matches)
    if before.phase != after.phase or before.rounds != after.rounds:
        changes.append(PhaseChanged(after.phase, after.rounds))
    return EngineResult(state=after, changes=changes)


def _require_match(state: TournamentState, match_id: str) -> Match:
    match = state.find_match(match_id)
    if match is None:
        raise UnknownMatchError(match_id)
    return match


def _require_mode(state: TournamentState, mode: TournamentMode) -> None:
    if state.mode != mode:
        raise TournamentStateError(f"Not available in {state.mode.value} mode")


def generate_bracket(state: TournamentState, participants: Optional[List[Participant]] = None,
                     mode: Optional[Union[TournamentMode, str]] = None, group_size: Optional[int] = None,
                     best_of: Optional[int] = None) -> EngineResult:
    """
    Generate the first phase of a tournament.

    Participants are seeded by descending ranking. Byes are resolved and
    pushed downstream before the state is returned.

    Raises:
        InsufficientParticipantsError: field too small for the format
        TournamentStateError: matches already exist (reset first)
    """
    mode = TournamentMode(mode) if mode is not None else state.mode
    participants = list(participants) if participants is not None else list(state.participants)
    minimum = MIN_PARTICIPANTS[mode]
    if len(participants) < minimum:
        raise InsufficientParticipantsError(mode.value, len(participants), minimum)
    if state.matches:
        raise TournamentStateError("Matches have already been generated; reset the tournament first")

    new_state = state.copy(
        mode=mode,
        participants=participants,
        group_size=group_size or state.group_size,
        best_of=best_of or state.best_of,
        matches=[],
        phase=None,
    )
    ranked = new_state.ranked_participants()
    ids = [p.id for p in ranked]

    if mode == TournamentMode.KNOCKOUT:
        matches = generate_single_elimination(ids)
        rounds = calculate_total_rounds(len(ids))
    elif mode == TournamentMode.DOUBLE_KNOCKOUT:
        matches = generate_double_elimination(ids)
        rounds = calculate_total_rounds(len(ids))
    elif mode == TournamentMode.ROUND_ROBIN:
        matches = generate_round_robin(ids)
        rounds = count_round_robin_rounds(len(ids))
    elif mode == TournamentMode.GROUP_KNOCKOUT:
        matches = generate_group_stage(ranked, new_state.group_size)
        rounds = max(m.round for m in matches) + 1
        new_state.phase = Phase.GROUP
    else:
        matches = generate_first_round(ids)
        rounds = 1

    new_state.matches = matches
    new_state.rounds = rounds
    resolve_byes(MatchArena(new_state.matches), make_router(new_state))
    logger.info("Generated %d matches for %d participants (%s)", len(matches), len(ids), mode.value)
    return _result(state, new_state)


def evaluate_score(state: TournamentState, match_id: str, sets: List[SetScore],
                   required_wins: Optional[int] = None, now: Optional[datetime] = None) -> EngineResult:
    """
    Record the sets of a match and propagate the result.

    required_wins overrides the tournament's best_of for this match (used for
    an upgraded semi-final or final).

    Raises:
        UnknownMatchError: match_id is not in the snapshot
        TournamentStateError: the match does not have two participants yet
    """
    new_state = state.copy()
    match = _require_match(new_state, match_id)
    if not match.is_ready:
        raise TournamentStateError(f"Match {match_id} does not have two participants yet")

    previous_winner, previous_loser = match.winner, match.loser
    evaluation = evaluate(match, sets, required_wins or new_state.best_of, now)
    updated = apply_evaluation(match, evaluation)

    arena = MatchArena(new_state.matches)
    arena.replace(updated)
    router = make_router(new_state)
    propagate(arena, updated, router, previous_winner, previous_loser)
    resolve_byes(arena, router)
    return _result(state, new_state)


def activate_match(state: TournamentState, match_id: str, table: Optional[int] = None,
                   now: Optional[datetime] = None) -> EngineResult:
    """Start a match, optionally on a table. Conflicts come back as a rejection."""
    new_state = state.copy()
    match = new_state.find_match(match_id)
    if match is None:
        return EngineResult(state=state, rejection=Rejection(
            RejectionReason.UNKNOWN_MATCH, f"Unknown match: {match_id}"))

    allocator = TableAllocator(new_state.matches, new_state.table_count, new_state.break_minutes, now)
    rejection = allocator.activate(match, table)
    if rejection is not None:
        return EngineResult(state=state, rejection=rejection)
    return _result(state, new_state)


def auto_assign_tables(state: TournamentState, now: Optional[datetime] = None) -> EngineResult:
    new_state = state.copy()
    allocator = TableAllocator(new_state.matches, new_state.table_count, new_state.break_minutes, now)
    assignments = allocator.auto_assign()
    logger.info("Auto-assigned %d match(es) to tables", len(assignments))
    return _result(state, new_state)


def compute_standings(state: TournamentState, match_ids: Optional[List[str]] = None,
                      group_number: Optional[int] = None) -> EngineResult:
    """
    Standings over a subset of the matches.

    Without a subset the whole pool is ranked (round robin, Swiss). A group
    stage needs a group number or explicit match ids.
    """
    if match_ids is not None:
        wanted = set(match_ids)
        matches = [m for m in state.matches if m.id in wanted]
        missing = wanted - {m.id for m in matches}
        if missing:
            raise UnknownMatchError(sorted(missing)[0])
        participant_ids = None
    elif group_number is not None:
        matches = [m for m in state.matches if m.group_number == group_number]
        participant_ids = None
    elif state.mode == TournamentMode.GROUP_KNOCKOUT:
        raise TournamentStateError("Group standings need a group number")
    else:
        matches = [m for m in state.matches if m.group_number is None]
        participant_ids = [p.id for p in state.ranked_participants()]

    if state.mode == TournamentMode.SWISS:
        standings = compute_swiss_standings(matches, participant_ids)
    else:
        standings = rank_matches(matches, participant_ids)
    return EngineResult(state=state, standings=standings)


def advance_group_to_knockout(state: TournamentState) -> EngineResult:
    """Append the knockout bracket once every group match is completed."""
    _require_mode(state, TournamentMode.GROUP_KNOCKOUT)
    new_state = state.copy()
    knockout = build_knockout_phase(new_state.matches)

    arena = MatchArena(new_state.matches)
    arena.extend(knockout)
    new_state.phase = Phase.KNOCKOUT
    new_state.rounds = winners_bracket_rounds(knockout)
    resolve_byes(arena, make_router(new_state))
    return _result(state, new_state)


def generate_next_swiss_round(state: TournamentState) -> EngineResult:
    """Pair the next Swiss round once the current one is finished."""
    _require_mode(state, TournamentMode.SWISS)
    new_state = state.copy()
    ensure_swiss_round_complete(new_state.matches)

    ids = [p.id for p in new_state.ranked_participants()]
    next_round = generate_next_round(ids, new_state.matches)
    MatchArena(new_state.matches).extend(next_round)
    new_state.rounds = current_round(new_state.matches) + 1
    return _result(state, new_state)


def reset_tournament(state: TournamentState) -> EngineResult:
    """Clear every match; participants and settings stay."""
    new_state = state.copy(matches=[], phase=None, rounds=0)
    return EngineResult(
        state=new_state,
        changes=[MatchesCleared(len(state.matches)), PhaseChanged(None, 0)],
    )


def apply_remote_snapshot(snapshot: Union[TournamentState, Dict],
                          current: Optional[TournamentState] = None) -> EngineResult:
    """
    Take over a snapshot written by another client.

    The engine keeps nothing between calls, so this only normalises the
    snapshot into a private copy. When the caller passes its current state,
    the changes describe what the remote write altered.
    """
    if isinstance(snapshot, dict):
        new_state = TournamentState.from_dict(snapshot)
    else:
        new_state = snapshot.copy()
    if current is None:
        return EngineResult(state=new_state)
    return _result(current, new_state)


def champion(state: TournamentState) -> Optional[str]:
    """Winner of the tournament, None while it is still running."""
    if state.mode == TournamentMode.DOUBLE_KNOCKOUT:
        final = final_match(state.matches, GRAND_FINAL)
    elif state.mode == TournamentMode.KNOCKOUT or (
            state.mode == TournamentMode.GROUP_KNOCKOUT and state.phase == Phase.KNOCKOUT):
        final = final_match(state.matches)
    else:
        return None
    if final is None or final.status != MatchStatus.COMPLETED:
        return None
    return final.winner


def round_name(state: TournamentState, match: Match) -> str:
    """Display name of the round a match belongs to."""
    if match.group_number == GRAND_FINAL:
        return "Grand Final"
    if match.group_number == LOSERS_BRACKET:
        bracket_size = 2 ** winners_bracket_rounds(state.matches)
        return get_losers_round_name(match.round, calculate_losers_bracket_rounds(bracket_size))
    if match.group_number is not None:
        return f"Group {match.group_number + 1}, Round {match.round + 1}"

    if state.mode in (TournamentMode.ROUND_ROBIN, TournamentMode.SWISS):
        return f"Round {match.round + 1}"
    total_rounds = winners_bracket_rounds(state.matches)
    if state.mode == TournamentMode.DOUBLE_KNOCKOUT:
        return get_winners_round_name(2 ** (total_rounds - match.round))
    return round_name_for(match.round, total_rounds)


def dispatch(state: TournamentState, command: Command, now: Optional[datetime] = None) -> EngineResult:
    """Run a command object against a snapshot."""
    if isinstance(command, GenerateBracket):
        return generate_bracket(state, command.participants, command.mode, command.group_size, command.best_of)
    if isinstance(command, EvaluateScore):
        return evaluate_score(state, command.match_id, command.sets, command.required_wins, now)
    if isinstance(command, ActivateMatch):
        return activate_match(state, command.match_id, command.table, now)
    if isinstance(command, ComputeStandings):
        return compute_standings(state, command.match_ids, command.group_number)
    if isinstance(command, AdvanceGroupToKnockout):
        return advance_group_to_knockout(state)
    if isinstance(command, GenerateNextSwissRound):
        return generate_next_swiss_round(state)
    if isinstance(command, AutoAssignTables):
        return auto_assign_tables(state, now)
    if isinstance(command, ResetTournament):
        return reset_tournament(state)
    raise TypeError(f"Unknown command: {command!r}")
