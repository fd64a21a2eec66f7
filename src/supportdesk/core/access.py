"""
Access Capabilities
===================

Feature access expressed as capability sets.

A principal carries the set of feature tags it may use; checking access
is a set-membership test. Roles are only a convenient way of naming a
predefined capability set.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional


class Capability(str):
    """Feature tags guarded by the UI shell and the API."""
    DASHBOARD = "dashboard"
    INBOX = "inbox"
    TICKETS = "tickets"
    CUSTOMERS = "customers"
    NOTIFICATIONS = "notifications"
    LOGS = "logs"
    ANNOUNCEMENTS = "announcements"
    CHANNELS = "channels"
    ANALYTICS = "analytics"
    USERS = "users"


ALL_CAPABILITIES: FrozenSet[str] = frozenset({
    Capability.DASHBOARD, Capability.INBOX, Capability.TICKETS,
    Capability.CUSTOMERS, Capability.NOTIFICATIONS, Capability.LOGS,
    Capability.ANNOUNCEMENTS, Capability.CHANNELS, Capability.ANALYTICS,
    Capability.USERS,
})

ROLE_CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "admin": ALL_CAPABILITIES,
    "support": frozenset({
        Capability.DASHBOARD, Capability.INBOX, Capability.TICKETS,
        Capability.CUSTOMERS, Capability.NOTIFICATIONS, Capability.LOGS,
    }),
    "marketing": frozenset({
        Capability.DASHBOARD, Capability.ANNOUNCEMENTS, Capability.CHANNELS,
        Capability.ANALYTICS, Capability.NOTIFICATIONS,
    }),
}


def capabilities_for_role(role: Optional[str]) -> FrozenSet[str]:
    """Capability set granted to a role; unknown roles get nothing."""
    if not role:
        return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())


@dataclass(frozen=True)
class Principal:
    """The user on whose behalf a request runs."""
    user_id: str
    capabilities: FrozenSet[str] = field(default_factory=frozenset)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    @classmethod
    def for_role(cls, user_id: str, role: Optional[str]) -> "Principal":
        return cls(user_id=user_id, capabilities=capabilities_for_role(role))
