"""
Audit Models for Cashbook

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who changed which record
2. Debugging information when recognition goes wrong
3. Ability to reconstruct what a bulk import actually saved

DESIGN DECISION: Audit events are append-only structured log records.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Authentication
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    BATCH_IMPORTED = "batch_imported"
    BATCH_IMPORT_FAILED = "batch_import_failed"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_CHANGE_REJECTED = "category_change_rejected"

    # Statement recognition
    RECOGNITION_STARTED = "recognition_started"
    RECOGNITION_COMPLETED = "recognition_completed"
    RECOGNITION_FAILED = "recognition_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - who did it and to what
    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'category', 'session')"
    )
    entity_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one recognition and its import)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.login_succeeded(user_id, username)
        event = AuditEventBuilder.transaction_created(user_id, transaction_id, amount)
    """

    @staticmethod
    def login_succeeded(user_id: str, username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_SUCCEEDED,
            user_id=user_id,
            entity_type="session",
            description=f"User logged in: {username}",
        )

    @staticmethod
    def login_failed(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            description="Login failed: invalid username or password",
            details={"username": username},
        )

    @staticmethod
    def logout(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGOUT,
            user_id=user_id,
            entity_type="session",
            description="User logged out",
        )

    @staticmethod
    def transaction_created(
        user_id: str,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def transaction_updated(user_id: str, transaction_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def transaction_deleted(user_id: str, transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
        )

    @staticmethod
    def batch_imported(
        user_id: str,
        saved_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_IMPORTED,
            user_id=user_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Imported {saved_count} transaction(s)",
            details={"saved_count": saved_count},
        )

    @staticmethod
    def batch_import_failed(
        user_id: str,
        failed_index: int,
        saved_count: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Import stopped at item {failed_index + 1}",
            details={"failed_index": failed_index, "saved_count": saved_count},
            error_message=error_message,
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        user_id: str,
        category_id: str,
        name: Optional[str] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category {verb}: {name or category_id}",
        )

    @staticmethod
    def category_change_rejected(user_id: str, category_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CHANGE_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description="Category change rejected",
            error_message=reason,
        )

    @staticmethod
    def recognition_started(
        user_id: str,
        model: str,
        image_size: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOGNITION_STARTED,
            user_id=user_id,
            entity_type="statement",
            correlation_id=correlation_id,
            description=f"Statement recognition started with {model}",
            details={"model": model, "image_size_bytes": image_size},
        )

    @staticmethod
    def recognition_completed(
        user_id: str,
        proposal_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOGNITION_COMPLETED,
            user_id=user_id,
            entity_type="statement",
            correlation_id=correlation_id,
            description=f"Recognized {proposal_count} transaction(s)",
            details={"proposal_count": proposal_count},
        )

    @staticmethod
    def recognition_failed(
        user_id: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOGNITION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="statement",
            correlation_id=correlation_id,
            description=f"Statement recognition failed: {error_type}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
