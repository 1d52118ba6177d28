"""
LedgerLens Engine - normalization of extracted accounting report lines.

Turns OCR/LLM-extracted text rows from balance sheets, trial balances and
income statements into a hierarchical ledger of accounts with totals,
balance validation and inversion flags.

Key Principles:
1. Never invent - every amount comes from a source line
2. Rules live in keyword tables, not in control flow
3. Subtotals are detected, never summed twice
4. Heuristics signal their confidence (inversions, degraded hierarchy)
"""

from ledgerlens.ledger_engine.orchestrator import run_engine, EngineOptions
from ledgerlens.ledger_engine.models import (
    AnalysisSummary,
    CashFlowCategory,
    DocumentType,
    Nature,
    NormalizationResult,
    ParsedAccount,
)

__version__ = "1.0.0"
__all__ = [
    "run_engine",
    "EngineOptions",
    "AnalysisSummary",
    "CashFlowCategory",
    "DocumentType",
    "Nature",
    "NormalizationResult",
    "ParsedAccount",
]
