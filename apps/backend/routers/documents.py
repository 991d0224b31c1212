"""
Documents Router
================
Upload, listing, status and processing of statements.

Upload follows the Write-Ahead Log pattern:
1. Validate (type, size)
2. Write to DB (status=PENDING) and commit
3. Write file to disk (FAILED on error)
4. Optionally queue background processing
"""

import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database.session import get_db_session
from exceptions import ExtractionError, NotFoundError, StorageError, ValidationError
from schemas import (
    DeleteResponse,
    DocumentResponse,
    TransactionResponse,
    UpdateDocumentStatusRequest,
)
from services.document_service import DocumentService
from services.extraction import get_extractor
import metrics as app_metrics

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Background Worker
# =============================================================================

async def _process_document_background(document_id: int) -> None:
    """
    Process a freshly uploaded document outside the request.

    Failures are already recorded on the document (status FAILED).
    """
    try:
        async with DocumentService() as doc_service:
            await doc_service.process_document(document_id, get_extractor())
    except ExtractionError as e:
        logger.warning(f"Background processing failed for document {document_id}: {e.message}")
    except NotFoundError:
        logger.info(f"Document {document_id} was deleted before background processing ran")


# =============================================================================
# API Endpoints
# =============================================================================

@router.post("", status_code=201, response_model=DocumentResponse)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Upload a PDF statement.

    Returns the PENDING document record. When PROCESS_ON_UPLOAD is set,
    processing is queued and its progress can be polled via GET /documents/{id}.
    """
    settings = get_settings()

    try:
        content = await file.read()
    finally:
        await file.close()

    try:
        doc = await DocumentService.from_session(session).upload_document(
            original_name=file.filename or "upload.pdf",
            mime_type=file.content_type,
            content=content,
            upload_dir=settings.upload_dir,
            max_bytes=settings.max_upload_bytes,
        )
    except ValidationError as e:
        app_metrics.document_uploads_rejected_total.labels(reason=e.context.get("field", "invalid")).inc()
        raise
    except StorageError:
        app_metrics.document_uploads_rejected_total.labels(reason="storage").inc()
        raise

    app_metrics.documents_uploaded_total.inc()

    if settings.process_on_upload:
        background_tasks.add_task(_process_document_background, doc.id)

    return doc


@router.get("", response_model=List[DocumentResponse])
async def list_documents(session: AsyncSession = Depends(get_db_session)):
    """List all documents, newest first."""
    return await DocumentService.from_session(session).list_documents()


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(document_id: int, session: AsyncSession = Depends(get_db_session)):
    return await DocumentService.from_session(session).get_document(document_id)


@router.patch("/{document_id}/status", response_model=DocumentResponse)
async def update_document_status(
    document_id: int,
    request: UpdateDocumentStatusRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Manually set a document's processing status.

    For `failed`, an omitted error_message keeps the stored one.
    Any other status clears it.
    """
    service = DocumentService.from_session(session)

    if request.error_message_provided:
        return await service.update_document_status(
            document_id, request.processing_status, request.error_message
        )
    return await service.update_document_status(document_id, request.processing_status)


@router.post("/{document_id}/process", response_model=List[TransactionResponse])
async def process_document(document_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Extract transactions from a document and store them.

    On failure the document is left FAILED with the error message and a
    500 response carries the same message.
    """
    return await DocumentService.from_session(session).process_document(
        document_id, get_extractor()
    )


@router.get("/{document_id}/transactions", response_model=List[TransactionResponse])
async def get_document_transactions(
    document_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Transactions of one document, oldest first."""
    return await DocumentService.from_session(session).get_document_transactions(document_id)


@router.delete("/{document_id}", response_model=DeleteResponse)
async def delete_document(document_id: int, session: AsyncSession = Depends(get_db_session)):
    """Delete a document, its transactions and its stored file."""
    settings = get_settings()
    await DocumentService.from_session(session).delete_document(
        document_id, upload_dir=settings.upload_dir
    )
    return DeleteResponse(success=True, id=document_id)
