"""
Support Inbox Adapter
=====================

Thin adapter for the support inbox that owns customer conversations.
The ticket core talks to it only through `ISupportInbox`.
"""
