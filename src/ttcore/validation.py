"""
Checks on a seeding list before a bracket is generated.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from .models import Participant

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    level: str
    message: str
    participant_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {'level': self.level, 'message': self.message, 'participant_id': self.participant_id}


def _label(participant: Participant) -> str:
    return participant.name or participant.id


def validate_seeding(participants: List[Participant]) -> List[ValidationIssue]:
    """
    Validate a seeding list in the order it will be used.

    - warning if the list is not sorted by descending ranking
    - error for every participant without a ranking (missing or 0)
    - warning for every participant without a club

    Nothing here blocks generation; the host decides what to do with the issues.
    """
    issues = []
    if not participants:
        return issues

    if any(a.ranking < b.ranking for a, b in zip(participants, participants[1:])):
        issues.append(ValidationIssue(
            WARNING, "Seeding list is not sorted by descending ranking; matches may be unevenly distributed",
        ))

    for participant in participants:
        if not participant.ranking:
            issues.append(ValidationIssue(
                ERROR, f'Participant "{_label(participant)}" has no valid ranking (missing or 0)', participant.id,
            ))

    for participant in participants:
        if not participant.club.strip():
            issues.append(ValidationIssue(
                WARNING, f'Participant "{_label(participant)}" has no club', participant.id,
            ))

    return issues


def has_errors(issues: List[ValidationIssue]) -> bool:
    return any(issue.level == ERROR for issue in issues)
