"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of who changed which record
2. Debugging capability for statement recognition
3. A record of what each bulk import saved

The audit logger:
- Is async so flows can await it uniformly
- Never raises into the calling flow
- Supports correlation IDs to trace a recognition and its import
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashbook.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Writes every event to the structured application log.
    """

    def __init__(self, logger_name: str = "cashbook.audit"):
        self._logger = structlog.get_logger(logger_name)
        self._events: list[AuditEvent] = []
        self._keep_history = False

    def keep_history(self) -> "AuditLogger":
        """Retain emitted events in memory (used by tests and the health view)."""
        self._keep_history = True
        return self

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written; never raises.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except (TypeError, ValueError) as e:
            # Unserializable details must not break the flow being audited
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=log_dict["event_id"],
            )
            return False

        if self._keep_history:
            self._events.append(event)
        return True

    async def log_login(self, user_id: Optional[str], username: str) -> None:
        """Log a login attempt; ``user_id`` is None when it failed."""
        if user_id:
            await self.log(AuditEventBuilder.login_succeeded(user_id, username))
        else:
            await self.log(AuditEventBuilder.login_failed(username))

    async def log_logout(self, user_id: Optional[str]) -> None:
        await self.log(AuditEventBuilder.logout(user_id))

    async def log_transaction_created(
        self,
        user_id: str,
        transaction_id: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            user_id=user_id,
            transaction_id=transaction_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        user_id: str,
        transaction_id: str,
        fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(user_id, transaction_id, fields))

    async def log_transaction_deleted(self, user_id: str, transaction_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(user_id, transaction_id))

    async def log_batch_imported(
        self,
        user_id: str,
        saved_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.batch_imported(user_id, saved_count, correlation_id))

    async def log_batch_import_failed(
        self,
        user_id: str,
        failed_index: int,
        saved_count: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.batch_import_failed(
            user_id=user_id,
            failed_index=failed_index,
            saved_count=saved_count,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_category_changed(
        self,
        event_type: AuditEventType,
        user_id: str,
        category_id: str,
        name: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_changed(event_type, user_id, category_id, name))

    async def log_category_change_rejected(
        self,
        user_id: str,
        category_id: str,
        reason: str,
    ) -> None:
        await self.log(AuditEventBuilder.category_change_rejected(user_id, category_id, reason))

    async def log_recognition_started(
        self,
        user_id: str,
        model: str,
        image_size: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recognition_started(
            user_id=user_id,
            model=model,
            image_size=image_size,
            correlation_id=correlation_id,
        ))

    async def log_recognition_completed(
        self,
        user_id: str,
        proposal_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recognition_completed(user_id, proposal_count, correlation_id))

    async def log_recognition_failed(
        self,
        user_id: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recognition_failed(
            user_id=user_id,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a statement upload).
    """
    return uuid4()
