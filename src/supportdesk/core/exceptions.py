"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class InvalidTransitionException(DomainException):
    """Raised when a ticket status change is not an edge of the lifecycle graph."""

    def __init__(
        self,
        ticket_id: str,
        current_status: str,
        requested_status: str,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot move ticket {ticket_id} from '{current_status}' to '{requested_status}'",
            details or {
                "ticket_id": ticket_id,
                "current_status": current_status,
                "requested_status": requested_status,
            }
        )


class ConcurrentModificationException(RepositoryException):
    """
    Raised when an optimistic update loses a race.

    The stored row changed since the caller read it; the caller must
    re-fetch the ticket and retry.
    """

    def __init__(
        self,
        ticket_id: str,
        expected_version: int,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.expected_version = expected_version
        super().__init__(
            f"Ticket {ticket_id} was modified concurrently (expected version {expected_version})",
            details or {"ticket_id": ticket_id, "expected_version": expected_version}
        )


class AccessDeniedException(ApplicationException):
    """Raised when the caller's capability set lacks a required feature."""
