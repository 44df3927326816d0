"""Enum definitions for application constants."""

from buddymatch.db.enums.auth import Role
from buddymatch.db.enums.matches import (
    PEER_MATCH_TYPES,
    RESPONSE_STATUSES,
    MatchStatus,
    MatchType,
)
from buddymatch.db.enums.notifications import NotificationType

# Roles allowed to see HR dashboards, stats and AI suggestions
ROLES_CAN_MANAGE_MATCHES = frozenset({Role.HR})

# Roles allowed to send match requests at all
ROLES_CAN_CREATE_MATCHES = frozenset({Role.HR, Role.BUDDY})

__all__ = [
    "MatchStatus",
    "MatchType",
    "NotificationType",
    "PEER_MATCH_TYPES",
    "RESPONSE_STATUSES",
    "ROLES_CAN_CREATE_MATCHES",
    "ROLES_CAN_MANAGE_MATCHES",
    "Role",
]
