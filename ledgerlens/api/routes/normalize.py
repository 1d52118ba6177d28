"""
Normalization API routes.

Provides endpoints for normalizing extracted report lines into a ledger of
accounts, one document at a time or in batches.
"""
from typing import List, Optional

import structlog
from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from ledgerlens.config import Settings, get_settings
from ledgerlens.exceptions import InvalidDocumentTypeError, ValidationError
from ledgerlens.ledger_engine.models import DocumentType
from ledgerlens.ledger_engine.orchestrator import run_engine
from ledgerlens.schemas.normalize import (
    BatchNormalizeRequest,
    BatchNormalizeResponse,
    NormalizeRequest,
    NormalizeResponse,
)
from ledgerlens.services.batch_processor import BatchDocument, BatchNormalizer

logger = structlog.get_logger(__name__)

router = APIRouter()

MAX_BATCH_DOCUMENTS = 50


def validate_document(
    lines: List[str],
    document_type: Optional[str],
    settings: Optional[Settings] = None,
) -> None:
    """
    Reject documents the engine should not run on.

    Raises:
        ValidationError: Empty or oversized line list.
        InvalidDocumentTypeError: A document type that is not recognized.
    """
    settings = settings or get_settings()

    if not any(line and line.strip() for line in lines):
        raise ValidationError("Document has no lines", errors=[{"field": "lines", "error": "empty"}])

    if len(lines) > settings.max_lines_per_document:
        raise ValidationError(
            f"Document has {len(lines)} lines; the limit is {settings.max_lines_per_document}",
            errors=[{"field": "lines", "error": "too_many", "limit": settings.max_lines_per_document}],
        )

    if document_type and document_type.strip() and DocumentType.parse(document_type) is None:
        raise InvalidDocumentTypeError(document_type)


@router.post(
    "/normalize",
    response_model=NormalizeResponse,
    summary="Normalize one document",
)
async def normalize_document(request: NormalizeRequest) -> NormalizeResponse:
    """
    Normalize raw report lines.

    Returns accounts with hierarchy, totals and inversion flags. Responds
    422 (LL-201) when no line yields an account.
    """
    validate_document(request.lines, request.document_type)

    result = await run_in_threadpool(
        run_engine,
        request.lines,
        request.document_type or None,
        [entry.model_dump() for entry in request.spell_check],
    )

    logger.info(
        "Document normalized",
        run_id=result.run_id,
        accounts=len(result.accounts),
        document_type=result.summary.document_type.value,
    )
    return NormalizeResponse(**result.to_dict())


@router.post(
    "/normalize/batch",
    response_model=BatchNormalizeResponse,
    summary="Normalize several documents",
)
async def normalize_batch(request: BatchNormalizeRequest) -> BatchNormalizeResponse:
    """
    Normalize independent documents concurrently.

    A failing document is reported in its own item and does not stop the
    others.
    """
    if not request.documents:
        raise ValidationError("Batch has no documents", errors=[{"field": "documents", "error": "empty"}])
    if len(request.documents) > MAX_BATCH_DOCUMENTS:
        raise ValidationError(
            f"Batch has {len(request.documents)} documents; the limit is {MAX_BATCH_DOCUMENTS}",
            errors=[{"field": "documents", "error": "too_many", "limit": MAX_BATCH_DOCUMENTS}],
        )

    settings = get_settings()
    documents = [
        BatchDocument(
            lines=doc.lines,
            document_type=doc.document_type or None,
            spell_check=[entry.model_dump() for entry in doc.spell_check],
            document_id=doc.document_id or "",
        )
        for doc in request.documents
    ]

    normalizer = BatchNormalizer(
        max_concurrency=settings.batch_concurrency,
        validator=lambda d: validate_document(d.lines, d.document_type, settings),
    )
    result = await normalizer.process(documents)

    return BatchNormalizeResponse(
        batch_id=result.batch_id,
        total_documents=result.total_documents,
        successful=result.successful,
        failed=result.failed,
        items=result.items,
        processing_time_ms=result.processing_time_ms,
    )
