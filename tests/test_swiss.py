"""
Unit tests for Swiss pairing.
"""
import pytest
import sys
import os
from itertools import combinations

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ttcore.models import MatchStatus, SetScore
from ttcore.swiss import (
    current_round,
    generate_first_round,
    generate_next_round,
    pair_next_round,
    played_pairs,
    rank_by_wins,
    recommended_rounds,
)


def finish(matches, winners):
    """Complete the ready matches, the given ids winning."""
    for match in matches:
        if not match.is_ready:
            continue
        winner_is_first = match.participant1 in winners
        match.sets = [SetScore(11, 5), SetScore(11, 5)] if winner_is_first else [SetScore(5, 11), SetScore(5, 11)]
        match.winner = match.participant1 if winner_is_first else match.participant2
        match.status = MatchStatus.COMPLETED
    return matches


class TestFirstRound:
    """Tests for round 0."""

    def test_top_half_against_bottom_half(self):
        """Test i plays i + n/2."""
        matches = generate_first_round(["A", "B", "C", "D", "E", "F"])
        assert [(m.participant1, m.participant2) for m in matches] == [("A", "D"), ("B", "E"), ("C", "F")]

    def test_odd_field_bye(self):
        """Test the middle player of an odd field gets a bye."""
        matches = generate_first_round(["A", "B", "C", "D", "E"])
        assert [(m.participant1, m.participant2) for m in matches[:2]] == [("A", "D"), ("B", "E")]
        bye = matches[2]
        assert bye.is_bye
        assert bye.winner == "C"

    def test_recommended_rounds(self):
        """Test ceil(log2 n) rounds."""
        assert recommended_rounds(8) == 3
        assert recommended_rounds(9) == 4
        assert recommended_rounds(2) == 1
        assert recommended_rounds(1) == 0


class TestPairing:
    """Tests for greedy next round pairing."""

    def test_first_fit(self):
        """Test each player takes the first fresh opponent below them."""
        history = {frozenset(("A", "B"))}
        assert pair_next_round(["A", "B", "C", "D"], history) == [("A", "C"), ("B", "D")]

    def test_bye_instead_of_rematch(self):
        """Test a player with no fresh opponent left gets a bye."""
        history = {frozenset(("C", "D"))}
        pairings = pair_next_round(["A", "B", "C", "D"], history)
        assert pairings == [("A", "B"), ("C", None), ("D", None)]

    def test_odd_field_last_player_bye(self):
        """Test the unpaired player of an odd field gets a bye."""
        assert pair_next_round(["A", "B", "C"], set()) == [("A", "B"), ("C", None)]

    def test_rank_by_wins_stable(self):
        """Test equal wins keep the ranking order."""
        matches = finish(generate_first_round(["A", "B", "C", "D"]), {"C", "D"})
        assert rank_by_wins(["A", "B", "C", "D"], matches) == ["C", "D", "A", "B"]

    def test_next_round_numbering(self):
        """Test the next round follows the highest one."""
        ids = ["A", "B", "C", "D"]
        matches = finish(generate_first_round(ids), {"A", "B"})
        next_round = generate_next_round(ids, matches)
        assert all(m.round == 1 for m in next_round)
        assert [m.position for m in next_round] == [0, 1]
        assert [(m.participant1, m.participant2) for m in next_round] == [("A", "B"), ("C", "D")]

    def test_byes_are_recorded(self):
        """Test a bye round entry is a completed match."""
        matches = finish(generate_first_round(["A", "B", "C"]), {"A"})
        next_round = generate_next_round(["A", "B", "C"], matches)
        byes = [m for m in next_round if m.is_bye]
        assert len(byes) == 1
        assert current_round(matches + next_round) == 1

    @pytest.mark.parametrize("n", [4, 8])
    def test_no_rematch_while_avoidable(self, n):
        """Test several rounds never repeat a pairing with enough fresh opponents."""
        ids = [f"P{i}" for i in range(n)]
        matches = finish(generate_first_round(ids), set(ids[: n // 2]))
        for _ in range(recommended_rounds(n) - 1):
            next_round = generate_next_round(ids, matches)
            assert all(m.is_ready for m in next_round)
            matches = matches + finish(next_round, set(ids[::2]))

        pairs = [frozenset((m.participant1, m.participant2)) for m in matches]
        assert len(pairs) == len(set(pairs))
        assert set(pairs) <= {frozenset(p) for p in combinations(ids, 2)}
        assert played_pairs(matches) == set(pairs)
