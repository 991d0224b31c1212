"""
Statement Ledger - Data Schemas
===============================
Pydantic models for request validation and API responses.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

from database.models import ProcessingStatus, TransactionType

CENT = Decimal("0.01")

# Numeric(12, 2): at most 10 integer digits
MAX_ABS_AMOUNT = Decimal("9999999999.99")


def quantize_amount(value) -> Decimal:
    """Round a monetary value to cents, half-up."""
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise ValueError("amount must be a finite number")
    if abs(amount) > MAX_ABS_AMOUNT:
        raise ValueError(f"amount must not exceed {MAX_ABS_AMOUNT} in magnitude")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# =============================================================================
# Document Models
# =============================================================================

class DocumentResponse(BaseModel):
    """Uploaded statement as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str = Field(..., description="Generated storage filename")
    original_name: str
    file_size: int = Field(..., description="Size in bytes")
    mime_type: str
    upload_date: datetime
    processing_status: ProcessingStatus
    error_message: Optional[str] = None


class UpdateDocumentStatusRequest(BaseModel):
    """
    Request schema for a manual status change.

    `error_message` is only applied for the failed status. Omitting it keeps
    the stored message, while an explicit null clears it.
    """

    processing_status: ProcessingStatus
    error_message: Optional[str] = Field(default=None, max_length=2000)

    @property
    def error_message_provided(self) -> bool:
        return "error_message" in self.model_fields_set


# =============================================================================
# Transaction Models
# =============================================================================

class TransactionResponse(BaseModel):
    """Stored transaction as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    document_id: int
    transaction_date: date
    amount: Money
    description: str
    account_number: Optional[str] = None
    vendor_name: Optional[str] = None
    transaction_type: Optional[TransactionType] = None
    created_at: datetime


class CreateTransactionRequest(BaseModel):
    """Request schema for creating a transaction manually."""

    document_id: int = Field(..., ge=1)
    transaction_date: date
    amount: Decimal = Field(..., description="Signed amount; negative is money out")
    description: str = Field(..., max_length=2000)
    account_number: Optional[str] = Field(default=None, max_length=64)
    vendor_name: Optional[str] = Field(default=None, max_length=255)
    transaction_type: Optional[TransactionType] = None

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        return quantize_amount(v)


class UpdateTransactionRequest(BaseModel):
    """
    Partial update for a transaction.

    Only fields present in the request body are applied.
    """

    transaction_date: Optional[date] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    account_number: Optional[str] = Field(default=None, max_length=64)
    vendor_name: Optional[str] = Field(default=None, max_length=255)
    transaction_type: Optional[TransactionType] = None

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return quantize_amount(v) if v is not None else None

    def changes(self) -> dict:
        """Fields explicitly supplied by the client, including explicit nulls."""
        return self.model_dump(exclude_unset=True)


class ExtractedTransaction(BaseModel):
    """A transaction produced by an extractor, before it is stored."""

    model_config = ConfigDict(frozen=True)

    transaction_date: date
    amount: Decimal
    description: str = Field(..., min_length=1)
    account_number: Optional[str] = None
    vendor_name: Optional[str] = None
    transaction_type: Optional[TransactionType] = None

    @field_validator("amount")
    @classmethod
    def round_amount(cls, v: Decimal) -> Decimal:
        return quantize_amount(v)


# =============================================================================
# Search Models
# =============================================================================

SortField = Literal["transaction_date", "amount", "description", "vendor_name"]
SortOrder = Literal["asc", "desc"]


class SearchTransactionsRequest(BaseModel):
    """Filters, ordering and paging for transaction search. All optional."""

    search_term: Optional[str] = Field(default=None, description="Substring of description or vendor")
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    account_number: Optional[str] = None
    vendor_name: Optional[str] = None
    transaction_type: Optional[TransactionType] = None
    sort_by: SortField = "transaction_date"
    sort_order: SortOrder = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginatedTransactionsResponse(BaseModel):
    """One page of search results with totals."""

    transactions: List[TransactionResponse]
    total_count: int
    page: int
    limit: int
    total_pages: int


# =============================================================================
# Misc Responses
# =============================================================================

class DeleteResponse(BaseModel):
    success: bool = True
    id: int


class HealthResponse(BaseModel):
    """Health check response with per-dependency status."""

    status: Literal["ok", "unhealthy"]
    timestamp: datetime
    services: Dict[str, str] = Field(default_factory=dict)
