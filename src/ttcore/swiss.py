"""
Swiss system pairing.

Round 0 pairs the top half of the ranked field against the bottom half.
Later rounds are paired greedily: walking the field in order of wins, each
unpaired player takes the first unpaired player below them they have not met
yet. This is a first-fit heuristic, not a maximum matching; a player left
without a fresh opponent receives a bye rather than a rematch.
"""
import logging
import math
from typing import List, Optional, Set, FrozenSet, Tuple

from .models import Match, new_match
from .standings import aggregate

logger = logging.getLogger(__name__)


def recommended_rounds(num_players: int) -> int:
    """Rounds needed to separate a single winner, ceil(log2 n)."""
    if num_players < 2:
        return 0
    return math.ceil(math.log2(num_players))


def generate_first_round(participant_ids: List[str]) -> List[Match]:
    """Pair i against i + ceil(n/2); an odd player out gets a bye."""
    n = len(participant_ids)
    half = math.ceil(n / 2)
    matches = []
    for i in range(n // 2):
        matches.append(new_match(0, i, None, participant_ids[i], participant_ids[i + half]))
    if n % 2 == 1:
        matches.append(new_match(0, n // 2, None, participant_ids[half - 1]))
    return matches


def current_round(matches: List[Match]) -> Optional[int]:
    """Highest round that has been generated so far."""
    rounds = [m.round for m in matches if m.group_number is None]
    return max(rounds) if rounds else None


def played_pairs(matches: List[Match]) -> Set[FrozenSet[str]]:
    return {frozenset((m.participant1, m.participant2)) for m in matches if m.is_ready}


def rank_by_wins(participant_ids: List[str], matches: List[Match]) -> List[str]:
    """Order the field by wins; equal wins keep the ranking order."""
    table = aggregate(matches, swiss=True, participant_ids=participant_ids)
    return sorted(participant_ids, key=lambda pid: -table[pid].won)


def pair_next_round(ranked_ids: List[str], history: Set[FrozenSet[str]]) -> List[Tuple[str, Optional[str]]]:
    """
    Greedy first-fit pairing.

    Returns:
        (player, opponent) tuples in pairing order; opponent is None for a bye
    """
    paired: Set[str] = set()
    pairings = []
    for i, player in enumerate(ranked_ids):
        if player in paired:
            continue
        paired.add(player)
        opponent = None
        for candidate in ranked_ids[i + 1:]:
            if candidate in paired or frozenset((player, candidate)) in history:
                continue
            opponent = candidate
            break
        if opponent is None:
            logger.debug("No fresh opponent left for %s, assigning a bye", player)
        else:
            paired.add(opponent)
        pairings.append((player, opponent))
    return pairings


def generate_next_round(participant_ids: List[str], matches: List[Match]) -> List[Match]:
    """Matches of the round after the current highest one."""
    latest = current_round(matches)
    round_num = 0 if latest is None else latest + 1
    ranked = rank_by_wins(participant_ids, matches)
    pairings = pair_next_round(ranked, played_pairs(matches))
    return [
        new_match(round_num, position, None, player, opponent)
        for position, (player, opponent) in enumerate(pairings)
    ]
