"""Match-related enums."""

from enum import Enum


class MatchStatus(str, Enum):
    """
    Status of a buddy match request.

    Workflow: pending → accepted/rejected (one response only).
    Completed is set administratively after an accepted match has run its course.
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class MatchType(str, Enum):
    """Kinds of match request."""

    NEWCOMER_MATCH = "NEWCOMER_MATCH"  # HR placing a newcomer with a buddy
    RELOCATION_SUPPORT = "RELOCATION_SUPPORT"  # peer-to-peer
    OFFICE_CONNECTION = "OFFICE_CONNECTION"  # peer-to-peer

    @property
    def label(self) -> str:
        """Lowercase human label, e.g. 'newcomer match'."""
        return self.value.replace("_", " ").lower()


PEER_MATCH_TYPES = frozenset({MatchType.RELOCATION_SUPPORT, MatchType.OFFICE_CONNECTION})
RESPONSE_STATUSES = frozenset({MatchStatus.ACCEPTED, MatchStatus.REJECTED})
