"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="supportdesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")
    serverless: bool = Field(
        default=False,
        description="Runtime wraps every request in its own lifespan; state is built once and kept"
    )

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/supportdesk",
        description="Async SQLAlchemy connection URL"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA policy YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between SLA sweeps (0 disables the scheduler)",
        ge=0
    )

    # ========== Badges ==========
    badge_poll_interval: int = Field(
        default=15,
        description="Seconds between badge count recomputations (0 disables the poll job)",
        ge=0
    )
    badge_alert_history: int = Field(
        default=200,
        description="Number of badge alert events kept for polling clients",
        ge=1
    )

    # ========== Inbound messages ==========
    auto_create_tickets: bool = Field(
        default=False,
        description="Open a ticket automatically for conversations without one"
    )
    default_ticket_priority: str = Field(
        default="medium",
        description="Priority used for automatically created tickets"
    )
    default_ticket_category: str = Field(
        default="support",
        description="Category used for automatically created tickets"
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for SLA alert fan-out"
    )
    slack_channel: str = Field(
        default="#support-alerts",
        description="Slack channel for SLA notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )
    public_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the UI shell, used for deep links in alerts"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("default_ticket_priority")
    @classmethod
    def validate_default_priority(cls, v: str) -> str:
        """Automatically created tickets must carry a known priority."""
        if v not in VALID_PRIORITIES:
            raise ValueError(f"default_ticket_priority must be one of {VALID_PRIORITIES}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class Priority(str):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketStatus(str):
    """Ticket lifecycle statuses."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    WAITING_CUSTOMER = "waiting_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ConversationStatus(str):
    """Support inbox conversation statuses."""
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


class SLAMetric(str):
    """SLA clocks tracked per ticket."""
    FIRST_RESPONSE = "first_response"
    RESOLUTION = "resolution"


class SLAState(str):
    """SLA status states."""
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BREACHED = "breached"
    MET = "met"


class NotificationType(str):
    """Notification kinds shown in the notification bell."""
    TICKET_ASSIGNED = "ticket_assigned"
    SLA_WARNING = "sla_warning"
    URGENT_TICKET = "urgent_ticket"
    TICKET_REPLY = "ticket_reply"
    SYSTEM = "system"


class ActivityKind(str):
    """Stored tag of ticket activity entries."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    PRIORITY_CHANGED = "priority_changed"
    CATEGORY_CHANGED = "category_changed"
    FIRST_RESPONSE = "first_response"
    NOTE_ADDED = "note_added"


SYSTEM_ACTOR = "system"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    Priority.LOW, Priority.MEDIUM,
    Priority.HIGH, Priority.URGENT
]
VALID_STATUSES = [
    TicketStatus.NEW, TicketStatus.IN_PROGRESS,
    TicketStatus.WAITING_CUSTOMER, TicketStatus.RESOLVED,
    TicketStatus.CLOSED
]
OPEN_STATUSES = [
    TicketStatus.NEW, TicketStatus.IN_PROGRESS,
    TicketStatus.WAITING_CUSTOMER
]
VALID_SLA_METRICS = [SLAMetric.FIRST_RESPONSE, SLAMetric.RESOLUTION]


# Global settings instance
settings = get_settings()
