"""
Transaction Service
===================
CRUD and filtered search over extracted transactions.
"""

import logging
import math
from typing import List, Tuple

from sqlalchemy import and_, delete, func, or_, select

from database.models import DocumentModel, TransactionModel
from exceptions import DocumentNotFoundError, TransactionNotFoundError, ValidationError
from schemas import (
    CreateTransactionRequest,
    SearchTransactionsRequest,
    UpdateTransactionRequest,
)
from services.base import SessionService

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "transaction_date": TransactionModel.transaction_date,
    "amount": TransactionModel.amount,
    "description": TransactionModel.description,
    "vendor_name": TransactionModel.vendor_name,
}

NON_NULLABLE_FIELDS = ("transaction_date", "amount", "description")


class TransactionService(SessionService):
    """
    Transaction CRUD and search.

    Mutating methods commit their own unit of work.
    """

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def create_transaction(self, request: CreateTransactionRequest) -> TransactionModel:
        """
        Insert a transaction for an existing document.

        Raises:
            DocumentNotFoundError: If the referenced document does not exist
        """
        exists = await self.session.scalar(
            select(DocumentModel.id).where(DocumentModel.id == request.document_id)
        )
        if exists is None:
            raise DocumentNotFoundError(
                request.document_id,
                message=f"Document with ID {request.document_id} not found",
            )

        row = TransactionModel(**request.model_dump())
        self.session.add(row)
        await self.session.commit()

        logger.info(
            f"Created transaction: id={row.id}, document_id={row.document_id}, "
            f"amount={row.amount}"
        )
        return row

    async def list_transactions(self) -> List[TransactionModel]:
        """All transactions, most recent transaction date first."""
        stmt = select(TransactionModel).order_by(
            TransactionModel.transaction_date.desc(),
            TransactionModel.id.desc(),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_transaction(self, transaction_id: int) -> TransactionModel:
        """
        Raises:
            TransactionNotFoundError: If no such transaction exists
        """
        row = await self.session.get(TransactionModel, transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        return row

    async def update_transaction(
        self,
        transaction_id: int,
        request: UpdateTransactionRequest,
    ) -> TransactionModel:
        """
        Apply the fields present in the request.

        Raises:
            TransactionNotFoundError: If no such transaction exists
            ValidationError: If a non-nullable field is set to null
        """
        changes = request.changes()

        for field in NON_NULLABLE_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be null", field=field)

        row = await self.get_transaction(transaction_id)

        for field, value in changes.items():
            setattr(row, field, value)

        await self.session.commit()

        logger.info(f"Updated transaction: id={transaction_id}, fields={sorted(changes)}")
        return row

    async def delete_transaction(self, transaction_id: int) -> bool:
        """
        Delete exactly one transaction.

        Raises:
            TransactionNotFoundError: If no such transaction exists
        """
        result = await self.session.execute(
            delete(TransactionModel).where(TransactionModel.id == transaction_id)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise TransactionNotFoundError(transaction_id)

        await self.session.commit()
        logger.info(f"Deleted transaction: id={transaction_id}")
        return True

    # =========================================================================
    # Search
    # =========================================================================

    @staticmethod
    def build_conditions(request: SearchTransactionsRequest) -> list:
        """Translate search filters into SQL predicates (combined with AND)."""
        conditions = []

        if request.search_term:
            conditions.append(
                or_(
                    TransactionModel.description.icontains(request.search_term, autoescape=True),
                    and_(
                        TransactionModel.vendor_name.isnot(None),
                        TransactionModel.vendor_name.icontains(request.search_term, autoescape=True),
                    ),
                )
            )

        if request.date_from is not None:
            conditions.append(TransactionModel.transaction_date >= request.date_from)
        if request.date_to is not None:
            conditions.append(TransactionModel.transaction_date <= request.date_to)

        if request.min_amount is not None:
            conditions.append(TransactionModel.amount >= request.min_amount)
        if request.max_amount is not None:
            conditions.append(TransactionModel.amount <= request.max_amount)

        if request.account_number:
            conditions.append(TransactionModel.account_number == request.account_number)
        if request.vendor_name:
            conditions.append(TransactionModel.vendor_name == request.vendor_name)
        if request.transaction_type:
            conditions.append(TransactionModel.transaction_type == request.transaction_type)

        return conditions

    async def search_transactions(
        self,
        request: SearchTransactionsRequest,
    ) -> Tuple[List[TransactionModel], int, int]:
        """
        Filter, sort and paginate transactions.

        Returns:
            (page_rows, total_count, total_pages)
        """
        conditions = self.build_conditions(request)

        count_stmt = select(func.count()).select_from(TransactionModel)
        if conditions:
            count_stmt = count_stmt.where(*conditions)
        total_count = await self.session.scalar(count_stmt) or 0

        sort_column = SORT_COLUMNS[request.sort_by]
        if request.sort_order == "asc":
            order_by = (sort_column.asc(), TransactionModel.id.asc())
        else:
            order_by = (sort_column.desc(), TransactionModel.id.desc())

        stmt = select(TransactionModel)
        if conditions:
            stmt = stmt.where(*conditions)
        stmt = stmt.order_by(*order_by).offset(request.offset).limit(request.limit)

        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())

        total_pages = math.ceil(total_count / request.limit)

        logger.debug(
            f"Search: filters={len(conditions)}, total={total_count}, "
            f"page={request.page}/{total_pages}"
        )
        return rows, total_count, total_pages
