"""
Main Orchestrator for Cashbook

This module ties together all the components and defines the
statement import flow:

    image → recognize (with the user's live categories) → proposals
          → user reviews/edits → confirm → batch save

DESIGN DECISION: The orchestrator enforces the boundaries:
- No recognized data persists without the user confirming it
- Categories are loaded fresh for every recognition, never cached
- Every step is audited under one correlation id

``create_app_components`` wires storage, services and flows together for
the HTTP layer and for scripts.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union
from uuid import UUID

from cashbook.agents import StatementRecognitionAgent
from cashbook.audit import AuditLogger, create_correlation_id
from cashbook.config import get_settings
from cashbook.errors import CashbookError
from cashbook.models.finance import (
    RecognitionRequest,
    Transaction,
    TransactionProposal,
)
from cashbook.services import (
    AuthService,
    CategoryService,
    Database,
    SqlCategoryStorage,
    SqlSessionStorage,
    SqlTransactionStorage,
    SqlUserStorage,
    TransactionService,
)


class ImportFlow:
    """
    Orchestrates statement import.

    Flow:
    1. Recognize → load categories, call the vision model, parse
    2. Review   → proposals go back to the client (PAUSE)
    3. Confirm  → the user submits the rows they accept
    4. Save     → sequential batch save, stop at first failure

    Human confirmation (step 3) is MANDATORY.
    The system NEVER auto-saves recognized rows.
    """

    def __init__(
        self,
        category_service: CategoryService,
        transaction_service: TransactionService,
        agent: Optional[StatementRecognitionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = category_service
        self._transactions = transaction_service
        self._agent = agent or StatementRecognitionAgent()
        self._audit_logger = audit_logger or AuditLogger()

    async def recognize(
        self,
        user_id: str,
        request: RecognitionRequest,
        correlation_id: Optional[UUID] = None,
    ) -> list[TransactionProposal]:
        """
        Run recognition for one statement image.

        Raises whatever the agent raises (InvalidInputError,
        ConfigurationError, UpstreamError, ParseError) after auditing it.
        """
        correlation_id = correlation_id or create_correlation_id()

        catalog = await self._categories.get_catalog(user_id)

        await self._audit_logger.log_recognition_started(
            user_id=user_id,
            model=request.model or get_settings().gemini.model_name,
            image_size=len(request.image_base64),
            correlation_id=correlation_id,
        )

        try:
            proposals = await self._agent.recognize(
                request.image_base64,
                catalog,
                api_key=request.api_key,
                model=request.model,
            )
        except CashbookError as e:
            await self._audit_logger.log_recognition_failed(
                user_id=user_id,
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_recognition_completed(user_id, len(proposals), correlation_id)
        return proposals

    async def confirm(
        self,
        user_id: str,
        proposals: Iterable[Union[TransactionProposal, dict]],
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Save confirmed proposals.

        Raises:
            BatchSaveError: the save stopped part-way (saved items stay saved)
        """
        correlation_id = correlation_id or create_correlation_id()
        items = (
            p.to_create_data() if isinstance(p, TransactionProposal) else p
            for p in proposals
        )
        return await self._transactions.create_transactions(user_id, items, correlation_id)


@dataclass
class AppComponents:
    """Everything the HTTP layer needs, built once per process."""

    database: Database
    auth_service: AuthService
    category_service: CategoryService
    transaction_service: TransactionService
    import_flow: ImportFlow
    audit_logger: AuditLogger


def create_app_components(
    database_url: Optional[str] = None,
    agent: Optional[StatementRecognitionAgent] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        database_url: Override the configured database (tests use
                      ``sqlite+aiosqlite://`` for an in-memory store).
        agent: Override the recognition agent (tests pass a fake).
        audit_logger: Shared audit logger; a local one is created if omitted.

    Tables are NOT created here; call ``await components.database.create_all()``.
    """
    audit_logger = audit_logger or AuditLogger()
    database = Database(url=database_url)

    user_storage = SqlUserStorage(database)
    session_storage = SqlSessionStorage(database)
    category_storage = SqlCategoryStorage(database)
    transaction_storage = SqlTransactionStorage(database)

    auth_service = AuthService(user_storage, session_storage, audit_logger)
    category_service = CategoryService(category_storage, transaction_storage, audit_logger)
    transaction_service = TransactionService(transaction_storage, audit_logger)

    import_flow = ImportFlow(
        category_service=category_service,
        transaction_service=transaction_service,
        agent=agent,
        audit_logger=audit_logger,
    )

    return AppComponents(
        database=database,
        auth_service=auth_service,
        category_service=category_service,
        transaction_service=transaction_service,
        import_flow=import_flow,
        audit_logger=audit_logger,
    )
