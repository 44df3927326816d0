"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    MATCH_REQUEST = "MATCH_REQUEST"  # New match request for a buddy
    MATCH_RESPONSE = "MATCH_RESPONSE"  # Buddy accepted/rejected a request
