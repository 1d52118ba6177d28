"""
Pydantic schemas for normalization API endpoints.

Defines request and response models for single and batch normalization.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SpellCheckEntry(BaseModel):
    """Spelling suggestion supplied by the narrative service."""

    original_term: str = Field(..., description="Term as extracted")
    suggested_correction: str = Field(..., description="Suggested spelling")
    confidence: str = Field("Medium", description="High, Medium or Low")


class NormalizeRequest(BaseModel):
    """Request to normalize one document."""

    lines: List[str] = Field(..., description="Raw text lines, one per table row, in order")
    document_type: Optional[str] = Field(
        None,
        description="'Balanço Patrimonial', 'Balancete', 'DRE', 'Outro' or an alias; auto-detected when omitted",
    )
    spell_check: List[SpellCheckEntry] = Field(
        default_factory=list,
        description="Spelling suggestions passed through to the result",
    )


class AccountResponse(BaseModel):
    """One normalized account."""

    name: str
    code: Optional[str] = None
    initial_balance: float = 0.0
    debit: float = 0.0
    credit: float = 0.0
    final_balance: float = 0.0
    total_value: float = 0.0
    nature: str = Field(..., description="Debit, Credit or Unknown")
    possible_inversion: bool = False
    category: Optional[str] = Field(None, description="Operacional, Investimento or Financiamento")
    level: int = 1
    is_synthetic: bool = False
    nature_indicator: Optional[str] = None
    line_number: int = 0


class SummaryResponse(BaseModel):
    """Document-level aggregates."""

    document_type: str
    total_debits: float
    total_credits: float
    is_balanced: bool
    discrepancy_amount: float
    result_value: float
    result_label: str
    period: Optional[str] = None
    hierarchy_degraded: bool = False
    analytical_count: int = 0
    synthetic_count: int = 0
    inversion_count: int = 0
    observations: List[str] = Field(default_factory=list)


class LineWarningResponse(BaseModel):
    """A recoverable problem found on one line."""

    line_number: int
    line: str
    token: str
    message: str


class NormalizeResponse(BaseModel):
    """Normalized document."""

    run_id: str = Field(..., description="Unique engine run identifier")
    summary: SummaryResponse
    accounts: List[AccountResponse]
    spell_check: List[SpellCheckEntry] = Field(default_factory=list)
    warnings: List[LineWarningResponse] = Field(default_factory=list)
    skipped_lines: int = Field(0, description="Lines rejected as headers or noise")


class BatchDocumentRequest(NormalizeRequest):
    """One document in a batch."""

    document_id: Optional[str] = Field(None, description="Caller reference, echoed in the result")


class BatchNormalizeRequest(BaseModel):
    """Request to normalize several documents."""

    documents: List[BatchDocumentRequest] = Field(..., description="Documents to normalize")


class BatchItemResponse(BaseModel):
    """Outcome for one document of a batch."""

    document_id: str
    status: str = Field(..., description="success or failed")
    result: Optional[NormalizeResponse] = None
    error: Optional[Dict[str, Any]] = None


class BatchNormalizeResponse(BaseModel):
    """Outcome of a batch normalization."""

    batch_id: str
    total_documents: int
    successful: int
    failed: int
    items: List[BatchItemResponse]
    processing_time_ms: float
