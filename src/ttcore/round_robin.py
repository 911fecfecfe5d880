"""
Round robin scheduling (circle method) and group stage generation.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

from .models import GROUP_POSITION_OFFSET, Match, Participant, new_match

logger = logging.getLogger(__name__)


def circle_rounds(participant_ids: List[str]) -> List[List[Tuple[str, str]]]:
    """
    Pairings per round using the circle method.

    An odd field gets a placeholder; whoever meets the placeholder sits the
    round out. Index 0 stays fixed and the last entry moves to index 1 after
    every round.
    """
    field: List[Optional[str]] = list(participant_ids)
    if len(field) % 2 == 1:
        field.append(None)
    m = len(field)

    rounds = []
    for _ in range(m - 1):
        pairings = []
        for i in range(m // 2):
            home, away = field[i], field[m - 1 - i]
            if home is None or away is None:
                continue
            pairings.append((home, away))
        rounds.append(pairings)
        field = [field[0], field[-1]] + field[1:-1]
    return rounds


def generate_round_robin(participant_ids: List[str], group_number: Optional[int] = None) -> List[Match]:
    """All matches of a round robin; positions are offset per group."""
    offset = group_number * GROUP_POSITION_OFFSET if group_number is not None else 0
    matches = []
    for round_num, pairings in enumerate(circle_rounds(participant_ids)):
        for i, (home, away) in enumerate(pairings):
            matches.append(new_match(round_num, offset + i, group_number, home, away))
    return matches


def count_round_robin_rounds(num_players: int) -> int:
    if num_players < 2:
        return 0
    return num_players - 1 if num_players % 2 == 0 else num_players


def calculate_group_count(num_players: int, group_size: int) -> int:
    return math.ceil(num_players / max(1, group_size))


def assign_groups(ranked: List[Participant], group_size: int) -> List[List[Participant]]:
    """
    Split a ranked field into groups.

    The field is cut into pots of group_count players. Even pots fill the
    groups in order, odd pots in reverse (snake seeding). Inside a pot each
    player goes to the open group with the fewest players from the same club;
    ties go to the group that comes first in the pot's order.

    Returns:
        One list of participants per group, in group number order
    """
    group_count = calculate_group_count(len(ranked), group_size)
    groups: List[List[Participant]] = [[] for _ in range(group_count)]
    if group_count == 0:
        return groups

    for pot_index in range(0, len(ranked), group_count):
        pot = ranked[pot_index:pot_index + group_count]
        available = list(range(group_count))
        if (pot_index // group_count) % 2 == 1:
            available.reverse()

        for participant in pot:
            best = available[0]
            if participant.club:
                best = min(available, key=lambda g: _club_count(groups[g], participant.club))
            groups[best].append(participant)
            available.remove(best)

    for number, members in enumerate(groups):
        logger.debug("Group %d: %s", number, [p.id for p in members])
    return groups


def _club_count(members: List[Participant], club: str) -> int:
    return sum(1 for p in members if p.club == club)


def generate_group_stage(ranked: List[Participant], group_size: int) -> List[Match]:
    """
    Independent round robin for every group, groups numbered from 0.

    A group left with a single player gets one completed bye so that its
    membership is still recorded in the match list.
    """
    matches = []
    for number, members in enumerate(assign_groups(ranked, group_size)):
        if len(members) == 1:
            matches.append(new_match(0, number * GROUP_POSITION_OFFSET, number, members[0].id))
            continue
        matches.extend(generate_round_robin([p.id for p in members], number))
    return matches


def group_members(matches: List[Match]) -> Dict[int, List[str]]:
    """Participants per group, in order of first appearance."""
    members: Dict[int, List[str]] = {}
    for match in matches:
        if match.group_number is None or match.group_number < 0:
            continue
        seen = members.setdefault(match.group_number, [])
        for participant_id in match.participants:
            if participant_id not in seen:
                seen.append(participant_id)
    return members
