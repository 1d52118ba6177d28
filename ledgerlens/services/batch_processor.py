"""
Batch processor service for LedgerLens.

Normalizes several independent documents concurrently. Each document is a
pure engine run, so documents share no state and one failure does not
stop the batch.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from ledgerlens.exceptions import LedgerLensError
from ledgerlens.ledger_engine.orchestrator import EngineOptions, run_engine
from ledgerlens.middleware.logging import log_performance

logger = structlog.get_logger(__name__)


@dataclass
class BatchDocument:
    """One document submitted for batch normalization."""

    lines: List[str]
    document_type: Optional[str] = None
    spell_check: List[Dict[str, Any]] = field(default_factory=list)
    document_id: str = ""

    def __post_init__(self):
        if not self.document_id:
            self.document_id = str(uuid.uuid4())


@dataclass
class BatchResult:
    """Result of a batch normalization."""

    batch_id: str
    total_documents: int
    successful: int
    failed: int
    items: List[Dict[str, Any]]
    processing_time_ms: float


class BatchNormalizer:
    """
    Service for normalizing multiple documents.

    Features:
    - Parallel processing with configurable concurrency
    - Error isolation (one failure doesn't stop batch)
    - Results returned in submission order
    """

    DEFAULT_CONCURRENCY = 4

    def __init__(
        self,
        max_concurrency: int = DEFAULT_CONCURRENCY,
        options: Optional[EngineOptions] = None,
        validator: Optional[Callable[[BatchDocument], None]] = None,
    ):
        self._max_concurrency = max(1, max_concurrency)
        self._options = options
        self._validator = validator

    async def process(self, documents: Sequence[BatchDocument]) -> BatchResult:
        """
        Normalize all documents.

        Args:
            documents: Documents to normalize.

        Returns:
            BatchResult with one item per document, in submission order.
        """
        start_time = time.perf_counter()
        batch_id = str(uuid.uuid4())
        semaphore = asyncio.Semaphore(self._max_concurrency)
        loop = asyncio.get_running_loop()

        logger.info("Batch started", batch_id=batch_id, documents=len(documents))

        async def process_document(document: BatchDocument) -> Dict[str, Any]:
            async with semaphore:
                try:
                    # Engine runs are CPU-bound; keep them off the event loop
                    result = await loop.run_in_executor(None, self._normalize, document)
                    return {
                        "document_id": document.document_id,
                        "status": "success",
                        "result": result.to_dict(),
                        "error": None,
                    }
                except LedgerLensError as e:
                    logger.warning(
                        "Batch document failed",
                        batch_id=batch_id,
                        document_id=document.document_id,
                        error_code=e.error_code,
                        error=e.message,
                    )
                    return {
                        "document_id": document.document_id,
                        "status": "failed",
                        "result": None,
                        "error": e.to_dict(),
                    }
                except Exception as e:
                    logger.error(
                        "Batch document crashed",
                        batch_id=batch_id,
                        document_id=document.document_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return {
                        "document_id": document.document_id,
                        "status": "failed",
                        "result": None,
                        "error": LedgerLensError(
                            "Unexpected error while normalizing document",
                            details={"error_type": type(e).__name__},
                            error_code="LL-999",
                        ).to_dict(),
                    }

        items = await asyncio.gather(*(process_document(d) for d in documents))

        successful = sum(1 for item in items if item["status"] == "success")
        processing_time = (time.perf_counter() - start_time) * 1000

        result = BatchResult(
            batch_id=batch_id,
            total_documents=len(documents),
            successful=successful,
            failed=len(items) - successful,
            items=list(items),
            processing_time_ms=round(processing_time, 2),
        )

        logger.info(
            "Batch completed",
            batch_id=batch_id,
            successful=result.successful,
            failed=result.failed,
            time_ms=result.processing_time_ms,
        )
        return result

    @log_performance("normalize_document")
    def _normalize(self, document: BatchDocument):
        if self._validator:
            self._validator(document)
        return run_engine(
            document.lines,
            document.document_type,
            spell_check=document.spell_check,
            options=self._options,
        )
