"""
Exceptions raised by the tournament engine.
"""


class TournamentEngineError(Exception):
    """Base class for all engine errors."""
    pass


class InsufficientParticipantsError(TournamentEngineError):
    """Raised when a format is generated for too small a field."""

    def __init__(self, mode: str, count: int, minimum: int):
        self.mode = mode
        self.count = count
        self.minimum = minimum
        super().__init__(f"{mode} needs at least {minimum} participants, got {count}")


class UnknownMatchError(TournamentEngineError):
    """Raised when a command references a match id that is not in the snapshot."""

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Unknown match: {match_id}")


class TournamentStateError(TournamentEngineError):
    """Raised when a command does not fit the current phase of the tournament."""
    pass
