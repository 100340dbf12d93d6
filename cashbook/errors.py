"""
Error Taxonomy

Every failure the core can report is one of these exceptions.
Services raise them; the HTTP layer turns each one into a
``{"success": false, "error": <message>}`` body with the status
code carried by the exception class.
"""

from typing import Optional


class CashbookError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 500


class InvalidInputError(CashbookError):
    """Missing or malformed request fields."""

    status_code = 400


class UnauthenticatedError(CashbookError):
    """Missing, unknown or expired session, or bad credentials."""

    status_code = 401


class NotFoundError(CashbookError):
    """Entity not found (or not owned by the caller)."""

    status_code = 404


class ConflictError(CashbookError):
    """Domain rule violation."""

    status_code = 409


class SystemCategoryError(ConflictError):
    """System categories are read-only."""
    pass


class CategoryInUseError(ConflictError):
    """Custom category is still referenced by transactions."""

    def __init__(self, category_id: str, reference_count: int):
        self.category_id = category_id
        self.reference_count = reference_count
        super().__init__(
            f"Category is used by {reference_count} transaction(s) and cannot be deleted"
        )


class ConfigurationError(CashbookError):
    """Required configuration is missing."""

    status_code = 500


class UpstreamError(CashbookError):
    """The external completion API failed or returned nothing usable."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[str] = None):
        self.upstream_status = upstream_status
        super().__init__(message)


class ParseError(CashbookError):
    """The model output could not be parsed as a JSON array."""

    status_code = 502


class StorageError(CashbookError):
    """Datastore operation failed."""

    status_code = 500


class BatchSaveError(StorageError):
    """
    A batch save stopped part-way.

    Records saved before the failure stay persisted; ``saved`` holds them
    and ``failed_index`` is the position of the item that failed.
    """

    def __init__(self, failed_index: int, saved: list, reason: str):
        self.failed_index = failed_index
        self.saved = saved
        self.reason = reason
        super().__init__(
            f"Failed to save item {failed_index + 1}: {reason} "
            f"({len(saved)} item(s) saved before the failure)"
        )
