"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Tickets, Notifications, Inbox).

Architecture Pattern: Modular Monolith
- Each module (tickets, notifications, inbox) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket or notification business logic to the shared kernel.
"""
