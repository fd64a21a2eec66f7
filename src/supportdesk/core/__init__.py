"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from supportdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    InvalidTransitionException,
    ConcurrentModificationException,
    AccessDeniedException,
)
from supportdesk.core.access import Capability, Principal, capabilities_for_role

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from stores without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "InvalidTransitionException",
    "ConcurrentModificationException",
    "AccessDeniedException",
    "Capability",
    "Principal",
    "capabilities_for_role",
    "Clock",
    "utc_now",
    "as_utc",
]
