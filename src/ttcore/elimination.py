"""
Single elimination bracket generation and routing.
"""
import math
from typing import List, Optional

from .models import Match, Route, WINNER, match_key, new_match, slot_for_position


def get_round_name(players_in_round: int) -> str:
    """Get the name of a round based on number of players."""
    if players_in_round == 2:
        return "Final"
    elif players_in_round == 4:
        return "Semifinal"
    elif players_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {players_in_round}"


def calculate_bracket_size(num_players: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_players <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_players))


def calculate_byes(num_players: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_players) - num_players


def calculate_total_rounds(num_players: int) -> int:
    bracket_size = calculate_bracket_size(num_players)
    if bracket_size < 2:
        return 0
    return int(math.log2(bracket_size))


def round_name_for(round_num: int, total_rounds: int) -> str:
    """Name of a 0-indexed round in a bracket of total_rounds rounds."""
    return get_round_name(2 ** (total_rounds - round_num))


def seed_bracket_slots(participant_ids: List[str], bracket_size: int) -> List[Optional[str]]:
    """
    Place participants into bracket slots in ranking order.

    Slots 0..n-1 hold the participants, the remaining slots are byes.
    """
    slots: List[Optional[str]] = [None] * bracket_size
    for i, participant_id in enumerate(participant_ids):
        slots[i] = participant_id
    return slots


def generate_single_elimination(participant_ids: List[str], group_number: Optional[int] = None) -> List[Match]:
    """
    Generate every match of a single elimination bracket.

    First round match i pairs slots 2i and 2i+1. A match with one empty side
    is created as a completed bye; a first round match with two empty sides
    is not created at all. Later rounds are created empty.

    Args:
        participant_ids: Participants in seeding order (best first)
        group_number: Sub-graph the bracket lives in (None for the main bracket)

    Returns:
        List of matches ordered by round, then position
    """
    bracket_size = calculate_bracket_size(len(participant_ids))
    if bracket_size < 2:
        return []
    total_rounds = int(math.log2(bracket_size))
    slots = seed_bracket_slots(participant_ids, bracket_size)

    matches = []
    for i in range(bracket_size // 2):
        player1 = slots[i * 2]
        player2 = slots[i * 2 + 1]
        if player1 is None and player2 is None:
            continue
        matches.append(new_match(0, i, group_number, player1, player2))

    for round_num in range(1, total_rounds):
        matches_in_round = bracket_size // 2 ** (round_num + 1)
        for i in range(matches_in_round):
            matches.append(new_match(round_num, i, group_number))

    return matches


def route_single_elimination(match: Match) -> List[Route]:
    """The winner of (r, p) moves to (r+1, p//2), slot chosen by the parity of p."""
    target = match_key(match.round + 1, match.position // 2, match.group_number)
    return [Route(WINNER, target, slot_for_position(match.position))]


def final_match(matches: List[Match], group_number: Optional[int] = None) -> Optional[Match]:
    """The last-round match of a bracket."""
    bracket = [m for m in matches if m.group_number == group_number]
    if not bracket:
        return None
    return max(bracket, key=lambda m: (m.round, -m.position))
