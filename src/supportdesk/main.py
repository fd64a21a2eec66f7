"""
Support Desk - Main Application
===============================

Ticket lifecycle, SLA compliance and notification service for the
customer support console.

Modules:
- Tickets: lifecycle, SLA policy and evaluation, activity history
- Notifications: SLA escalation dispatch, notification bell, badges
- Inbox: adapter hooks for the support inbox

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, YAML policy, alert webhook, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from supportdesk.config import settings
from supportdesk.core import ApplicationException, utc_now

# Infrastructure
from supportdesk.infrastructure.database import (
    init_database, close_database, create_tables, get_session_context
)
from supportdesk.inbox.repositories import SQLAlchemySupportInbox

# Tickets Module
from supportdesk.tickets.infrastructure import SLAConfigManager, SQLAlchemyTicketRepository

# Notifications Module
from supportdesk.notifications.application import (
    NotificationDispatcher, BadgeAggregator, BadgeCounter
)
from supportdesk.notifications.infrastructure import (
    SQLAlchemyNotificationRepository, SQLAlchemyDispatchStateRepository,
    AlertWebhookClient
)

# Module Routers
from supportdesk.tickets.interfaces import tickets_router
from supportdesk.notifications.interfaces import notifications_router, badges_router
from supportdesk.inbox.controllers import inbox_router

# Shared
from supportdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    TimingMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler
)
from supportdesk.shared.infrastructure.logging import setup_logging, get_logger
from supportdesk.shared.infrastructure.scheduler import JobScheduler

logger = get_logger(__name__)


# ========== Background jobs ==========

async def run_sla_sweep(app: FastAPI) -> None:
    """
    Evaluate all open tickets and dispatch escalations.

    Webhook fan-out happens only after the notifications are committed.
    """
    clock = getattr(app.state, "clock", utc_now)

    async with get_session_context() as session:
        dispatcher = NotificationDispatcher(
            SQLAlchemyNotificationRepository(session),
            SQLAlchemyDispatchStateRepository(session),
            SQLAlchemyTicketRepository(session),
            app.state.sla_config,
            clock=clock,
        )
        result = await dispatcher.sweep()

    webhook: AlertWebhookClient = getattr(app.state, "alert_webhook", None)
    if webhook is not None and webhook.enabled and result.notifications:
        await webhook.publish_all(result.notifications)


async def run_badge_poll(app: FastAPI) -> None:
    """Recompute navigation badge counts and raise alerts on increases."""
    clock = getattr(app.state, "clock", utc_now)

    async with get_session_context() as session:
        counter = BadgeCounter(
            SQLAlchemySupportInbox(session),
            SQLAlchemyTicketRepository(session),
            app.state.sla_config,
            clock=clock,
        )
        await app.state.badge_aggregator.poll(counter)


async def startup(app: FastAPI) -> None:
    """
    Build the process-wide state.

    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA policy and watch the file
    4. Create the badge aggregator and alert webhook client
    5. Start the SLA sweep and badge poll jobs

    Runs once per process; later calls return immediately.
    """
    if getattr(app.state, "started", False):
        return

    setup_logging(level=settings.log_level, environment=settings.environment)
    logger.info("Starting Support Desk", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "serverless": settings.serverless
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # If the database is down the service starts and DB-backed endpoints fail
    logger.info("Creating database tables")
    try:
        await create_tables()
    except (OSError, SQLAlchemyError) as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading SLA configuration")
    sla_config_manager = SLAConfigManager()
    sla_config_manager.load(settings.sla_config_path)
    # Frozen between invocations, a serverless container cannot run the watcher thread
    if not settings.serverless:
        sla_config_manager.start_watching()

    app.state.settings = settings
    app.state.sla_config = sla_config_manager
    app.state.badge_aggregator = BadgeAggregator(history=settings.badge_alert_history)
    app.state.alert_webhook = AlertWebhookClient()

    async def sla_sweep_job():
        await run_sla_sweep(app)

    async def badge_poll_job():
        await run_badge_poll(app)

    scheduler = JobScheduler()
    scheduler.add_interval_job(
        "sla_sweep", "SLA Sweep Job", sla_sweep_job, settings.sla_evaluation_interval
    )
    scheduler.add_interval_job(
        "badge_poll", "Badge Poll Job", badge_poll_job, settings.badge_poll_interval
    )
    await scheduler.start()
    app.state.scheduler = scheduler
    app.state.started = True

    logger.info("Support Desk started successfully")


async def shutdown(app: FastAPI) -> None:
    """
    Release the process-wide state.

    1. Stop scheduler
    2. Stop policy watcher
    3. Close webhook client
    4. Close database connections
    """
    if not getattr(app.state, "started", False):
        return

    logger.info("Shutting down Support Desk")

    await app.state.scheduler.stop()
    app.state.sla_config.stop_watching()
    await app.state.alert_webhook.close()
    await close_database()
    app.state.started = False

    logger.info("Support Desk shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    A serverless adapter runs the lifespan around every invocation; the
    warm container keeps its state for the next one, so only a regular
    server shuts down here.
    """
    await startup(app)

    yield  # Application runs here

    if not settings.serverless:
        await shutdown(app)


# Create FastAPI application
app = FastAPI(
    title="Support Desk API",
    description="""
    ## Ticket Lifecycle & SLA Compliance

    Tickets opened on support conversations, tracked against a
    per-priority SLA policy, with escalation notifications and live
    navigation badges.

    ---

    ### Tickets

    - `GET /tickets` - List with SLA states, filters and sort
    - `GET /tickets/stats` - Counts, averages and SLA compliance
    - `POST /tickets` - Open a ticket on a conversation
    - `POST /tickets/{id}/transition` - Move along the status graph
    - `POST /tickets/{id}/assign` - Assign or unassign

    ### Notifications

    - `GET /notifications` - Notification bell (own + team-wide)
    - `GET /badges` - Unread conversations, urgent or breached tickets

    ---

    ### SLA Time Limits (Minutes)

    | Priority | First Response | Resolution |
    |----------|----------------|------------|
    | Urgent   | 60             | 120        |
    | High     | 60             | 480        |
    | Medium   | 60             | 1440       |
    | Low      | 60             | 2880       |

    A metric is **at risk** once the remaining time drops to the warning
    threshold (default 20% of the total window).

    ---

    Caller identity comes from the `X-User-Id` and `X-User-Role` headers.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(TimingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(notifications_router)
app.include_router(badges_router)
app.include_router(inbox_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sla_config": "loaded",
                        "scheduler": "running",
                        "badges": "polled",
                        "alert_webhook": "configured"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - SLA policy status
    - Scheduler state
    - Badge poll state
    """
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    aggregator = getattr(state, "badge_aggregator", None)
    webhook = getattr(state, "alert_webhook", None)

    checks = {
        "sla_config": "loaded" if getattr(state, "sla_config", None) else "missing",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "badges": "polled" if aggregator and aggregator.current is not None else "pending",
        "alert_webhook": "configured" if webhook and webhook.enabled else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Support Desk",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {"prefix": "/tickets"},
            "notifications": {"prefix": "/notifications"},
            "badges": {"prefix": "/badges"},
            "inbox": {"prefix": "/inbox"}
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "supportdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
