"""
Statement Ledger - Custom Exceptions
====================================
Centralized exception hierarchy for structured error handling.
"""

from typing import Optional, Dict, Any


class StatementLedgerBaseException(Exception):
    """Base exception for all Statement Ledger errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }
        if self.original_error:
            result["original_error"] = str(self.original_error)
        return result


# =============================================================================
# Database Connection Errors
# =============================================================================

class DatabaseConnectionError(StatementLedgerBaseException):
    """Database connection or query failure."""

    def __init__(
        self,
        message: str = "Failed to connect to the database",
        url: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        context = {"url": _redact_url(url)} if url else {}
        super().__init__(message, context, original_error)


def _redact_url(url: str) -> str:
    """Strip credentials from a database URL."""
    scheme, sep, rest = url.partition("://")
    if "@" in rest:
        rest = "***@" + rest.split("@", 1)[1]
    return f"{scheme}{sep}{rest}"


# =============================================================================
# Lookup Errors
# =============================================================================

class NotFoundError(StatementLedgerBaseException):
    """Requested entity does not exist."""
    pass


class DocumentNotFoundError(NotFoundError):
    """Document lookup failure."""

    def __init__(self, document_id: int, message: Optional[str] = None):
        super().__init__(
            message or f"Document with id {document_id} not found",
            {"document_id": document_id},
        )
        self.document_id = document_id


class TransactionNotFoundError(NotFoundError):
    """Transaction lookup failure."""

    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction with id {transaction_id} not found",
            {"transaction_id": transaction_id},
        )
        self.transaction_id = transaction_id


# =============================================================================
# Service Errors
# =============================================================================

class ExtractionError(StatementLedgerBaseException):
    """Document processing / transaction extraction failure."""

    def __init__(
        self,
        message: str,
        document_id: Optional[int] = None,
        filename: Optional[str] = None,
        backend: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if document_id is not None:
            context["document_id"] = document_id
        if filename:
            context["filename"] = filename
        if backend:
            context["backend"] = backend
        super().__init__(message, context, original_error)


class StorageError(StatementLedgerBaseException):
    """Uploaded file could not be written to or removed from disk."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        context = {"path": path} if path else {}
        super().__init__(message, context, original_error)


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(StatementLedgerBaseException):
    """Input validation failure."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        context = {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]  # Truncate
        super().__init__(message, context)
