"""
Support Desk
============

Ticket lifecycle, SLA compliance and notification/badge dispatch for a
support back office.
"""

__version__ = "1.0.0"
