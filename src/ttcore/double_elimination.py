"""
Double elimination bracket generation and routing.

In double elimination:
- Players must lose twice to be eliminated
- Winners Bracket (group None): players that haven't lost yet
- Losers Bracket (group LOSERS_BRACKET): players that have lost once
- Grand Final (group GRAND_FINAL): Winners Bracket champion vs Losers Bracket champion
"""
import math
from typing import List

from .elimination import calculate_bracket_size, generate_single_elimination
from .models import (
    GRAND_FINAL,
    LOSER,
    LOSERS_BRACKET,
    WINNER,
    Match,
    Route,
    match_key,
    new_match,
    slot_for_position,
)


def get_losers_round_name(round_num: int, total_losers_rounds: int) -> str:
    """Get the name for a losers bracket round (0-indexed)."""
    rounds_from_end = total_losers_rounds - round_num - 1
    if rounds_from_end == 0:
        return "Losers Final"
    elif rounds_from_end == 1:
        return "Losers Semifinal"
    else:
        return f"Losers Round {round_num + 1}"


def get_winners_round_name(players_in_round: int) -> str:
    """Get the name for a winners bracket round."""
    if players_in_round == 2:
        return "Winners Final"
    elif players_in_round == 4:
        return "Winners Semifinal"
    elif players_in_round == 8:
        return "Winners Quarterfinal"
    else:
        return f"Winners Round of {players_in_round}"


def calculate_winners_bracket_rounds(bracket_size: int) -> int:
    if bracket_size < 2:
        return 0
    return int(math.log2(bracket_size))


def calculate_losers_bracket_rounds(bracket_size: int) -> int:
    """
    Calculate number of rounds in losers bracket.
    For N players in winners bracket (power of 2):
    - Winners bracket has log2(N) rounds
    - Losers bracket has 2 * (log2(N) - 1) rounds
    """
    if bracket_size < 2:
        return 0
    return 2 * (calculate_winners_bracket_rounds(bracket_size) - 1)


def losers_round_match_count(bracket_size: int, round_num: int) -> int:
    """Losers rounds come in pairs of equal size, halving every two rounds."""
    return max(1, bracket_size // (4 * 2 ** (round_num // 2)))


def last_losers_round(winners_rounds: int) -> int:
    """
    Losers bracket round whose winner moves on to the grand final.

    Normally the losers final, where the loser of the winners final gets
    a second chance. A four player bracket is the exception: its first
    losers round already decides the grand finalist.
    """
    if winners_rounds <= 2:
        return 0
    return 2 * (winners_rounds - 1) - 1


def generate_double_elimination(participant_ids: List[str]) -> List[Match]:
    """
    Generate winners bracket, empty losers bracket and empty grand final.

    Returns:
        Winners bracket matches, then losers bracket round by round, then
        the grand final
    """
    bracket_size = calculate_bracket_size(len(participant_ids))
    matches = generate_single_elimination(participant_ids)

    for round_num in range(calculate_losers_bracket_rounds(bracket_size)):
        for i in range(losers_round_match_count(bracket_size, round_num)):
            matches.append(new_match(round_num, i, LOSERS_BRACKET))

    matches.append(new_match(0, 0, GRAND_FINAL))
    return matches


def route_double_elimination(match: Match, winners_rounds: int) -> List[Route]:
    """Where the winner and loser of a double elimination match go."""
    r, p = match.round, match.position
    grand_final = match_key(0, 0, GRAND_FINAL)

    if match.group_number is None:
        if r == winners_rounds - 1:
            routes = [Route(WINNER, grand_final, 1)]
        else:
            routes = [Route(WINNER, match_key(r + 1, p // 2), slot_for_position(p))]
        if r == 0:
            routes.append(Route(LOSER, match_key(0, p // 2, LOSERS_BRACKET), slot_for_position(p)))
        else:
            routes.append(Route(LOSER, match_key(2 * r - 1, p, LOSERS_BRACKET), 2))
        return routes

    if match.group_number == LOSERS_BRACKET:
        if r == last_losers_round(winners_rounds):
            return [Route(WINNER, grand_final, 2)]
        if r % 2 == 0:
            return [Route(WINNER, match_key(r + 1, p, LOSERS_BRACKET), 1)]
        return [Route(WINNER, match_key(r + 1, p // 2, LOSERS_BRACKET), slot_for_position(p))]

    return []
