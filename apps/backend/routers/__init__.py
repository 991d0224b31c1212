"""
API Routers
===========
FastAPI routers for the Statement Ledger backend.
"""

from .documents import router as documents_router
from .transactions import router as transactions_router

__all__ = ["documents_router", "transactions_router"]
