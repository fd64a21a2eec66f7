"""
Notifications Module
====================

Notification dispatch and navigation badges.

Layers:
- domain: Notification, dispatch state, badge counts
- application: dispatcher, notification bell service, badge aggregator
- infrastructure: SQLAlchemy repositories, alert webhook client
- interfaces: FastAPI routes under /notifications and /badges
"""
