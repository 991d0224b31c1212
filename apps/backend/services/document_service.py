"""
Document Service
================
Database-centric operations for uploaded statements.

The document row is the source of truth: it is written (PENDING) before
the file lands on disk, and its status follows processing through
PROCESSING to COMPLETED or FAILED.
"""

import logging
import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
from sqlalchemy import delete, select, update

from database.models import DocumentModel, ProcessingStatus, TransactionModel
from exceptions import (
    DocumentNotFoundError,
    ExtractionError,
    StorageError,
    ValidationError,
)
from metrics import (
    document_processing_duration_seconds,
    document_processing_total,
    transactions_extracted_total,
)
from services.base import SessionService
from services.extraction import StatementExtractor

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPE = "application/pdf"

_BASE36 = string.digits + string.ascii_lowercase

# Sentinel: leave the stored error message untouched
KEEP_ERROR_MESSAGE = object()


def generate_storage_filename() -> str:
    """doc_<epoch millis>_<6 random base36 chars>.pdf"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"doc_{int(time.time() * 1000)}_{suffix}.pdf"


def validate_upload(mime_type: Optional[str], file_size: int, max_bytes: int) -> None:
    """
    Raises:
        ValidationError: If the upload is not an acceptable PDF
    """
    if mime_type != ALLOWED_MIME_TYPE:
        raise ValidationError("Only PDF files are allowed", field="mime_type", value=mime_type)
    if file_size <= 0:
        raise ValidationError("File size must be positive", field="file_size", value=file_size)
    if file_size > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise ValidationError(
            f"File size must be less than {max_mb}MB.", field="file_size", value=file_size
        )


class DocumentService(SessionService):
    """
    Document CRUD, upload and processing.

    Mutating methods commit their own unit of work.
    """

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_documents(self) -> List[DocumentModel]:
        """All documents, newest upload first."""
        stmt = select(DocumentModel).order_by(
            DocumentModel.upload_date.desc(),
            DocumentModel.id.desc(),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_document_by_id(self, document_id: int) -> Optional[DocumentModel]:
        stmt = select(DocumentModel).where(DocumentModel.id == document_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_document(self, document_id: int) -> DocumentModel:
        """
        Raises:
            DocumentNotFoundError: If no such document exists
        """
        doc = await self.get_document_by_id(document_id)
        if doc is None:
            raise DocumentNotFoundError(document_id)
        return doc

    async def get_document_transactions(self, document_id: int) -> List[TransactionModel]:
        """Transactions of one document, oldest first."""
        await self.get_document(document_id)

        stmt = (
            select(TransactionModel)
            .where(TransactionModel.document_id == document_id)
            .order_by(TransactionModel.transaction_date.asc(), TransactionModel.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # =========================================================================
    # Upload (write-ahead: row first, then file)
    # =========================================================================

    async def create_document_record(
        self,
        original_name: str,
        file_size: int,
        mime_type: str,
        filename: Optional[str] = None,
    ) -> DocumentModel:
        """
        Create a PENDING document record.

        Args:
            original_name: Filename as sent by the client
            file_size: Size in bytes
            mime_type: Content type reported by the client
            filename: Storage filename; generated when omitted

        Returns:
            The committed DocumentModel with status=PENDING
        """
        if file_size <= 0:
            raise ValidationError("File size must be positive", field="file_size", value=file_size)
        if mime_type != ALLOWED_MIME_TYPE:
            raise ValidationError("Only PDF files are allowed", field="mime_type", value=mime_type)

        doc = DocumentModel(
            filename=filename or generate_storage_filename(),
            original_name=original_name,
            file_size=file_size,
            mime_type=mime_type,
            processing_status=ProcessingStatus.PENDING,
        )

        self.session.add(doc)
        await self.session.commit()

        logger.info(
            f"Created document record: id={doc.id}, "
            f"filename={doc.filename}, original_name={original_name}, status=PENDING"
        )

        return doc

    async def upload_document(
        self,
        original_name: str,
        mime_type: Optional[str],
        content: bytes,
        upload_dir: str,
        max_bytes: int,
    ) -> DocumentModel:
        """
        Validate, record and store an uploaded statement.

        The record is committed before the file is written. If the write
        fails the record is marked FAILED and StorageError is raised.

        Raises:
            ValidationError: Non-PDF, empty or oversize upload (nothing written)
            StorageError: File could not be written
        """
        validate_upload(mime_type, len(content), max_bytes)

        doc = await self.create_document_record(
            original_name=original_name,
            file_size=len(content),
            mime_type=mime_type,
        )

        file_path = Path(upload_dir) / doc.filename
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            error_message = f"Failed to save file: {e}"
            logger.error(f"File write failed for document {doc.id}: {e}")
            await self.set_status(doc.id, ProcessingStatus.FAILED, error_message)
            await self.session.commit()
            raise StorageError(error_message, path=str(file_path), original_error=e) from e

        logger.info(f"Stored upload: id={doc.id}, path={file_path}, bytes={len(content)}")
        return doc

    # =========================================================================
    # Status
    # =========================================================================

    async def set_status(
        self,
        document_id: int,
        status: ProcessingStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Write status and error message with a single UPDATE (no commit).

        Returns:
            True if document was found and updated, False otherwise.
        """
        stmt = (
            update(DocumentModel)
            .where(DocumentModel.id == document_id)
            .values(processing_status=status, error_message=error_message)
            .execution_options(synchronize_session=False)
        )

        result = await self.session.execute(stmt)

        if result.rowcount > 0:
            logger.info(
                f"Updated document status: id={document_id}, "
                f"status={status.value}, error={error_message}"
            )
            return True

        logger.warning(f"Document not found for status update: id={document_id}")
        return False

    async def update_document_status(
        self,
        document_id: int,
        status: ProcessingStatus,
        error_message: Any = KEEP_ERROR_MESSAGE,
    ) -> DocumentModel:
        """
        Manually change a document's status.

        For FAILED, error_message is applied only when passed (None clears
        it); otherwise the stored message is kept. Every other status clears
        the message.

        Raises:
            DocumentNotFoundError: If no such document exists
        """
        doc = await self.get_document(document_id)

        doc.processing_status = status
        if status == ProcessingStatus.FAILED:
            if error_message is not KEEP_ERROR_MESSAGE:
                doc.error_message = error_message
        else:
            doc.error_message = None

        await self.session.commit()

        logger.info(
            f"Document status changed: id={document_id}, "
            f"status={status.value}, error={doc.error_message}"
        )
        return doc

    # =========================================================================
    # Processing
    # =========================================================================

    async def process_document(
        self,
        document_id: int,
        extractor: StatementExtractor,
    ) -> List[TransactionModel]:
        """
        Extract and store transactions for a document.

        Steps:
        1. PROCESSING (committed)
        2. extractor.extract()
        3. insert transactions + COMPLETED (one commit)

        On failure the step-3 work is rolled back and the document is
        committed as FAILED with the error text.

        Returns:
            Saved transactions in extraction order

        Raises:
            DocumentNotFoundError: Unknown id (nothing written)
            ExtractionError: Extraction or insert failed
        """
        doc = await self.get_document_by_id(document_id)
        if doc is None:
            raise DocumentNotFoundError(
                document_id, message=f"Document with ID {document_id} not found"
            )

        filename = doc.filename

        doc.processing_status = ProcessingStatus.PROCESSING
        doc.error_message = None
        await self.session.commit()
        logger.info(f"Processing document: id={document_id}, backend={extractor.name}")

        start_time = time.perf_counter()
        try:
            extracted = await extractor.extract(doc)

            rows = [
                TransactionModel(document_id=document_id, **item.model_dump())
                for item in extracted
            ]
            self.session.add_all(rows)

            doc.processing_status = ProcessingStatus.COMPLETED
            doc.error_message = None
            await self.session.commit()

        except Exception as e:
            await self.session.rollback()

            error_message = str(e) or "Unknown processing error"
            await self.set_status(document_id, ProcessingStatus.FAILED, error_message)
            await self.session.commit()

            document_processing_total.labels(backend=extractor.name, outcome="failed").inc()
            logger.error(
                f"Processing failed: id={document_id}, filename={filename}, error={error_message}",
                exc_info=True,
            )
            raise ExtractionError(
                error_message,
                document_id=document_id,
                filename=filename,
                backend=extractor.name,
                original_error=e,
            ) from e

        duration = time.perf_counter() - start_time
        document_processing_duration_seconds.labels(backend=extractor.name).observe(duration)
        document_processing_total.labels(backend=extractor.name, outcome="completed").inc()
        transactions_extracted_total.labels(backend=extractor.name).inc(len(rows))

        logger.info(
            f"Processing complete: id={document_id}, "
            f"transactions={len(rows)}, duration={duration:.2f}s"
        )
        return rows

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_document(self, document_id: int, upload_dir: Optional[str] = None) -> bool:
        """
        Delete a document, its transactions and its stored file.

        Raises:
            DocumentNotFoundError: If no such document exists
        """
        doc = await self.get_document(document_id)
        filename = doc.filename

        await self.session.execute(
            delete(TransactionModel).where(TransactionModel.document_id == document_id)
        )
        await self.session.execute(
            delete(DocumentModel).where(DocumentModel.id == document_id)
        )
        await self.session.commit()

        if upload_dir:
            file_path = Path(upload_dir) / filename
            try:
                file_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove stored file {file_path}: {e}")

        logger.info(f"Deleted document: id={document_id}, filename={filename}")
        return True

    # =========================================================================
    # Startup Recovery
    # =========================================================================

    async def rescue_stuck_documents(self, max_age_minutes: int = 30) -> Dict[str, Any]:
        """
        Fail documents stuck in PROCESSING.

        Called at startup: a document whose processing was interrupted by
        a restart would otherwise stay PROCESSING forever.

        Args:
            max_age_minutes: How long a document can be PROCESSING before rescue.

        Returns:
            Statistics about rescued documents.
        """
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        cutoff_time = now - timedelta(minutes=max_age_minutes)

        stats: Dict[str, Any] = {
            "checked": 0,
            "rescued_to_failed": 0,
            "rescued_ids": [],
        }

        stmt = (
            select(DocumentModel)
            .where(DocumentModel.processing_status == ProcessingStatus.PROCESSING)
            .where(DocumentModel.updated_at < cutoff_time)
        )

        result = await self.session.execute(stmt)
        stuck_docs = list(result.scalars().all())

        for doc in stuck_docs:
            stats["checked"] += 1
            doc.processing_status = ProcessingStatus.FAILED
            doc.error_message = (
                "Processing interrupted by server restart. "
                "Please process the document again."
            )
            stats["rescued_to_failed"] += 1
            stats["rescued_ids"].append(doc.id)
            logger.warning(
                f"Rescued stuck document to FAILED: id={doc.id}, "
                f"filename={doc.filename}"
            )

        await self.session.commit()

        logger.info(
            f"Document rescue complete: "
            f"checked={stats['checked']}, rescued={stats['rescued_to_failed']}"
        )

        return stats
