"""
Database Package
================
SQLAlchemy models and session management for statements and transactions.
"""

from .models import (
    Base,
    DocumentModel,
    ProcessingStatus,
    TransactionModel,
    TransactionType,
)

__all__ = [
    "Base",
    "DocumentModel",
    "ProcessingStatus",
    "TransactionModel",
    "TransactionType",
]
