"""
Transactions Router
===================
CRUD and search endpoints for extracted transactions.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import TransactionType
from database.session import get_db_session
from schemas import (
    CreateTransactionRequest,
    DeleteResponse,
    PaginatedTransactionsResponse,
    SearchTransactionsRequest,
    SortField,
    SortOrder,
    TransactionResponse,
    UpdateTransactionRequest,
)
from services.transaction_service import TransactionService

router = APIRouter()


@router.post("", status_code=201, response_model=TransactionResponse)
async def create_transaction(
    request: CreateTransactionRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a transaction for an existing document."""
    return await TransactionService.from_session(session).create_transaction(request)


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(session: AsyncSession = Depends(get_db_session)):
    """All transactions, most recent first."""
    return await TransactionService.from_session(session).list_transactions()


@router.get("/search", response_model=PaginatedTransactionsResponse)
async def search_transactions(
    search_term: Optional[str] = Query(default=None, description="Substring of description or vendor"),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    min_amount: Optional[Decimal] = Query(default=None),
    max_amount: Optional[Decimal] = Query(default=None),
    account_number: Optional[str] = Query(default=None),
    vendor_name: Optional[str] = Query(default=None),
    transaction_type: Optional[TransactionType] = Query(default=None),
    sort_by: SortField = Query(default="transaction_date"),
    sort_order: SortOrder = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Search transactions.

    All filters are optional and combined with AND. `search_term` matches
    description or vendor name, case-insensitively.
    """
    request = SearchTransactionsRequest(
        search_term=search_term,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
        account_number=account_number,
        vendor_name=vendor_name,
        transaction_type=transaction_type,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )

    rows, total_count, total_pages = await TransactionService.from_session(
        session
    ).search_transactions(request)

    return PaginatedTransactionsResponse(
        transactions=[TransactionResponse.model_validate(row) for row in rows],
        total_count=total_count,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(transaction_id: int, session: AsyncSession = Depends(get_db_session)):
    return await TransactionService.from_session(session).get_transaction(transaction_id)


@router.patch("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    request: UpdateTransactionRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Update only the fields present in the body."""
    return await TransactionService.from_session(session).update_transaction(
        transaction_id, request
    )


@router.delete("/{transaction_id}", response_model=DeleteResponse)
async def delete_transaction(transaction_id: int, session: AsyncSession = Depends(get_db_session)):
    await TransactionService.from_session(session).delete_transaction(transaction_id)
    return DeleteResponse(success=True, id=transaction_id)
