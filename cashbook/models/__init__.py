"""
Data Models Package

This package contains all Pydantic models used in Cashbook.
All data flowing through the system must conform to these schemas.
"""

from cashbook.models.finance import (
    Category,
    CategoryCatalog,
    CategoryCreate,
    CategoryUpdate,
    Money,
    RecognitionRequest,
    Session,
    Transaction,
    TransactionCreate,
    TransactionProposal,
    TransactionType,
    TransactionUpdate,
    User,
    UserRecord,
    new_id,
    utcnow,
)
from cashbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Category",
    "CategoryCatalog",
    "CategoryCreate",
    "CategoryUpdate",
    "Money",
    "RecognitionRequest",
    "Session",
    "Transaction",
    "TransactionCreate",
    "TransactionProposal",
    "TransactionType",
    "TransactionUpdate",
    "User",
    "UserRecord",
    "new_id",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
