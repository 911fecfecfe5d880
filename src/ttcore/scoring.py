"""
Match scoring: turns raw set scores into set wins, a winner and a status.

A set is won by the side that reaches at least 11 points with a lead of at
least 2. There is no ceiling, so long deuce sets (e.g. 15:13) are valid.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from .models import Match, MatchStatus, SetScore

POINTS_TO_WIN_SET = 11
MIN_SET_MARGIN = 2


@dataclass(frozen=True)
class Evaluation:
    sets: List[SetScore]
    winner: Optional[str]
    status: MatchStatus
    completed_at: Optional[datetime]


def set_winner(score: SetScore) -> Optional[int]:
    """Return 1 or 2 for the side that won the set, None if it is undecided."""
    if score.score1 >= POINTS_TO_WIN_SET and score.score1 - score.score2 >= MIN_SET_MARGIN:
        return 1
    if score.score2 >= POINTS_TO_WIN_SET and score.score2 - score.score1 >= MIN_SET_MARGIN:
        return 2
    return None


def count_set_wins(sets: List[SetScore]) -> Tuple[int, int]:
    """Count decided sets per side."""
    wins = [0, 0]
    for score in sets:
        side = set_winner(score)
        if side is not None:
            wins[side - 1] += 1
    return wins[0], wins[1]


def max_sets(best_of: int) -> int:
    """Maximum number of sets in a match that needs best_of set wins."""
    return best_of * 2 - 1


def evaluate(match: Match, sets: List[SetScore], required_wins: int,
             now: Optional[datetime] = None) -> Evaluation:
    """
    Re-evaluate a match from scratch for the given sets.

    The result only depends on the sets and the match participants, so
    calling it twice with the same input gives the same answer. When the
    same winner is confirmed again, the original completion time is kept so
    that the rest period of the players is not restarted.
    """
    sets = list(sets)
    wins1, wins2 = count_set_wins(sets)

    winner = None
    if wins1 >= required_wins:
        winner = match.participant1
    elif wins2 >= required_wins:
        winner = match.participant2

    if winner is None:
        return Evaluation(sets=sets, winner=None, status=MatchStatus.ACTIVE, completed_at=None)

    if match.status == MatchStatus.COMPLETED and match.winner == winner and match.completed_at:
        completed_at = match.completed_at
    else:
        completed_at = now or datetime.now()
    return Evaluation(sets=sets, winner=winner, status=MatchStatus.COMPLETED, completed_at=completed_at)


def apply_evaluation(match: Match, evaluation: Evaluation) -> Match:
    return match.copy(
        sets=list(evaluation.sets),
        winner=evaluation.winner,
        status=evaluation.status,
        completed_at=evaluation.completed_at,
    )


def can_upgrade_best_of(match: Match, best_of: int, rounds: int) -> bool:
    """
    Whether a match may be played to three winning sets although the
    tournament is set to two. Allowed from the semi-final onwards.
    """
    return best_of == 2 and rounds >= 2 and match.round >= rounds - 2


def is_upgraded_best_of(match: Match, best_of: int) -> bool:
    """Detect a match that was played with more winning sets than configured."""
    return best_of == 2 and max(count_set_wins(match.sets)) >= 3
