"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - HR: places newcomers with buddies, sees dashboards and AI suggestions
    - BUDDY: volunteer mentor with a capacity-limited buddy profile
    - NEWCOMER: new employee who can be attached to a newcomer match
    - RELOCATED_EMPLOYEE / EXISTING_EMPLOYEE: other employee variants
    """

    HR = "HR"
    BUDDY = "BUDDY"
    NEWCOMER = "NEWCOMER"
    RELOCATED_EMPLOYEE = "RELOCATED_EMPLOYEE"
    EXISTING_EMPLOYEE = "EXISTING_EMPLOYEE"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
