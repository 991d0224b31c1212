"""
Statement Database Models
=========================
SQLAlchemy models for uploaded statements and the transactions
extracted from them. The document row is written before its file,
and its status follows the processing pipeline.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ProcessingStatus(str, enum.Enum):
    """
    Document lifecycle status.

    PENDING: Record created and file stored, processing not started
    PROCESSING: Extraction is running
    COMPLETED: Transactions extracted and saved
    FAILED: Upload or extraction failed (see error_message)
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, enum.Enum):
    """Classification of a statement line."""
    DEBIT = "debit"
    CREDIT = "credit"
    TRANSFER = "transfer"
    FEE = "fee"
    OTHER = "other"


class DocumentModel(Base):
    """
    Uploaded statement metadata.

    Attributes:
        id: Autoincrement document identifier
        filename: Generated storage name under the upload directory
        original_name: Filename as sent by the client
        file_size: Size in bytes
        mime_type: Content type reported at upload
        upload_date: Timestamp of record creation
        processing_status: Current lifecycle state
        error_message: Error details if status is FAILED
        updated_at: Timestamp of the last status change
    """
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)

    filename = Column(
        String(255),
        nullable=False,
        unique=True,
        doc="Generated storage filename"
    )

    original_name = Column(
        String(512),
        nullable=False,
        doc="Original filename as uploaded"
    )

    file_size = Column(Integer, nullable=False, doc="Size in bytes")

    mime_type = Column(String(128), nullable=False, doc="Uploaded content type")

    upload_date = Column(
        DateTime,
        nullable=False,
        default=_utcnow,
        doc="Timestamp of record creation"
    )

    processing_status = Column(
        Enum(
            ProcessingStatus,
            name="processing_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ProcessingStatus.PENDING,
        server_default=ProcessingStatus.PENDING.value,
        doc="Current document lifecycle state"
    )

    error_message = Column(
        Text,
        nullable=True,
        doc="Error details if status is FAILED"
    )

    updated_at = Column(
        DateTime,
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        doc="Timestamp of last change (status transitions)"
    )

    transactions = relationship(
        "TransactionModel",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_documents_upload_date", "upload_date"),
        Index("ix_documents_processing_status", "processing_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<DocumentModel("
            f"id={self.id}, "
            f"filename='{self.filename}', "
            f"status={self.processing_status.value if self.processing_status else None}"
            f")>"
        )


class TransactionModel(Base):
    """
    A single statement line item belonging to a document.

    Amounts are signed: negative values are money leaving the account.
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    document_id = Column(
        Integer,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Source document"
    )

    transaction_date = Column(Date, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)

    description = Column(Text, nullable=False)

    account_number = Column(String(64), nullable=True)

    vendor_name = Column(String(255), nullable=True)

    transaction_type = Column(
        Enum(
            TransactionType,
            name="transaction_type",
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    created_at = Column(DateTime, nullable=False, default=_utcnow)

    document = relationship("DocumentModel", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_transaction_date", "transaction_date"),
        Index("ix_transactions_amount", "amount"),
        Index("ix_transactions_vendor_name", "vendor_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionModel("
            f"id={self.id}, "
            f"document_id={self.document_id}, "
            f"date={self.transaction_date}, "
            f"amount={self.amount}"
            f")>"
        )
