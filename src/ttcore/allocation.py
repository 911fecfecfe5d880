import datetime
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .models import Match, MatchStatus

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    TABLE_OCCUPIED = "table_occupied"
    PLAYER_PLAYING = "player_playing"
    PLAYER_RESTING = "player_resting"
    MATCH_NOT_READY = "match_not_ready"
    INVALID_TABLE = "invalid_table"
    UNKNOWN_MATCH = "unknown_match"


@dataclass(frozen=True)
class Rejection:
    """Why a match could not be put on a table. Returned, never raised."""

    reason: RejectionReason
    message: str
    participant_id: Optional[str] = None
    remaining_minutes: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            'reason': self.reason.value,
            'message': self.message,
            'participant_id': self.participant_id,
            'remaining_minutes': self.remaining_minutes,
        }


class TableAllocator:
    """
    Puts ready matches on free tables.

    A pending match with both participants may go on table t when t is free,
    neither participant is in an active match and neither finished a match
    less than break_minutes ago. The allocator reads everything from the
    match list it is given and activates matches in place.
    """

    def __init__(self, matches: List[Match], table_count: int, break_minutes: int = 0,
                 now: Optional[datetime.datetime] = None):
        self.matches = matches
        self.table_count = table_count
        self.break_minutes = break_minutes
        self.now = now or datetime.datetime.now()

    def _occupied_tables(self) -> Set[int]:
        return {m.table for m in self.matches if m.status == MatchStatus.ACTIVE and m.table is not None}

    def free_tables(self) -> List[int]:
        occupied = self._occupied_tables()
        return [t for t in range(1, self.table_count + 1) if t not in occupied]

    def _playing(self) -> Set[str]:
        playing = set()
        for match in self.matches:
            if match.status == MatchStatus.ACTIVE:
                playing.update(match.participants)
        return playing

    def remaining_rest(self, participant_id: str) -> int:
        """Whole minutes (rounded up) until the participant may play again."""
        if self.break_minutes <= 0:
            return 0
        required = datetime.timedelta(minutes=self.break_minutes)
        remaining = 0
        for match in self.matches:
            if match.status != MatchStatus.COMPLETED or match.completed_at is None:
                continue
            if not match.is_ready or not match.involves(participant_id):
                continue
            elapsed = self.now - match.completed_at
            if elapsed < required:
                minutes = math.ceil((required - elapsed).total_seconds() / 60)
                remaining = max(remaining, minutes)
        return remaining

    def _check_participant_constraints(self, match: Match, playing: Set[str]) -> Optional[Rejection]:
        for participant_id in match.participants:
            if participant_id in playing:
                return Rejection(
                    RejectionReason.PLAYER_PLAYING,
                    f"{participant_id} is still playing",
                    participant_id=participant_id,
                )
            remaining = self.remaining_rest(participant_id)
            if remaining > 0:
                return Rejection(
                    RejectionReason.PLAYER_RESTING,
                    f"{participant_id} needs a break of {remaining} more minute(s)",
                    participant_id=participant_id,
                    remaining_minutes=remaining,
                )
        return None

    def check_activation(self, match: Match, table: Optional[int] = None) -> Optional[Rejection]:
        """
        Validate a manual activation.

        Args:
            match: The match to start
            table: Table number (1-based), None to start the match without a table

        Returns:
            None if the match may start, otherwise the first violated rule
        """
        if match.status != MatchStatus.PENDING or not match.is_ready:
            return Rejection(RejectionReason.MATCH_NOT_READY, f"Match {match.id} is not ready to start")

        if table is not None:
            if table < 1 or table > self.table_count:
                return Rejection(RejectionReason.INVALID_TABLE, f"Table {table} does not exist")
            if table in self._occupied_tables():
                return Rejection(RejectionReason.TABLE_OCCUPIED, f"Table {table} is occupied")

        return self._check_participant_constraints(match, self._playing())

    def activate(self, match: Match, table: Optional[int] = None) -> Optional[Rejection]:
        rejection = self.check_activation(match, table)
        if rejection is not None:
            logger.debug("Activation of %s rejected: %s", match.id, rejection.reason.value)
            return rejection
        match.status = MatchStatus.ACTIVE
        match.table = table
        logger.debug("Activated %s on table %s", match.id, table)
        return None

    def auto_assign(self) -> List[Tuple[Match, int]]:
        """
        Fill free tables with ready matches, in match list order.

        Participants claimed by an earlier match of the same batch are treated
        as playing, so two matches sharing a participant never start together.
        """
        free = self.free_tables()
        claimed = self._playing()
        assignments = []

        for match in self.matches:
            if not free:
                break
            if match.status != MatchStatus.PENDING or not match.is_ready:
                continue
            rejection = self._check_participant_constraints(match, claimed)
            if rejection is not None:
                logger.debug("Skipping %s: %s", match.id, rejection.message)
                continue

            table = free.pop(0)
            match.status = MatchStatus.ACTIVE
            match.table = table
            claimed.update(match.participants)
            assignments.append((match, table))
            logger.debug("Assigned %s to table %d", match.id, table)

        return assignments

    def get_assignment_output(self, assignments: List[Tuple[Match, int]]) -> List[Dict]:
        return [
            {'table': table, 'match_id': match.id, 'participants': match.participants}
            for match, table in assignments
        ]


def next_ready_matches(matches: List[Match], limit: Optional[int] = None) -> List[Match]:
    """Pending matches with both participants known, in list order."""
    ready = [m for m in matches if m.status == MatchStatus.PENDING and m.is_ready]
    return ready if limit is None else ready[:limit]
