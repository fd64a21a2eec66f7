"""
Tickets Module
==============

Ticket lifecycle and SLA compliance.

Layers:
- domain: Ticket entity, SLA policy and evaluator
- application: lifecycle and query services
- infrastructure: SQLAlchemy repositories, YAML policy hot-reload
- interfaces: FastAPI routes under /tickets
"""
