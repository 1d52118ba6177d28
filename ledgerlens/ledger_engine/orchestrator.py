"""
Orchestrator for the LedgerLens engine.

Main entry point that coordinates the normalization pipeline:
Pass 1: Tokenize (noise rejection, code/name/values split)
Pass 2: Map columns and classify nature/category per line
Pass 3: Hierarchy (dedupe codes, natural order, level, synthetic flags)
Pass 4: Sign resolution (convention, derived debit/credit, inversions)
Pass 5: Aggregate (totals, balance check, bottom-line result)

The engine is pure and synchronous: the same lines and document type
always produce the same accounts and summary.
"""

import re
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

import structlog

from ledgerlens.config import Settings, get_settings
from ledgerlens.exceptions import LedgerLensError, NoAccountsIdentifiedError
from ledgerlens.ledger_engine.aggregation import AggregationEngine
from ledgerlens.ledger_engine.classifier import AccountClassifier
from ledgerlens.ledger_engine.columns import get_column_mapper
from ledgerlens.ledger_engine.hierarchy import HierarchyBuilder
from ledgerlens.ledger_engine.inversion import InversionDetector, uses_signed_convention
from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.ledger_engine.models import (
    DocumentType,
    LineWarning,
    Nature,
    NormalizationResult,
    ParsedAccount,
    SpellCheck,
    SpellConfidence,
    fold_text,
)
from ledgerlens.ledger_engine.period import get_period_detector
from ledgerlens.ledger_engine.tokenizer import LineTokenizer

logger = structlog.get_logger(__name__)


@dataclass
class EngineOptions:
    """Configuration options for the engine."""
    # Tokenizer
    min_line_length: int = 4
    max_code_length: int = 20
    max_scan_values: int = 4
    # Tolerances (currency units)
    balance_tolerance: float = 1.0
    inversion_tolerance: float = 0.01
    # Hierarchy confidence fallback
    flat_fallback_ratio: float = 0.10
    flat_fallback_min_rows: int = 5
    # Keyword tables (None = packaged table)
    keywords_path: Optional[Path] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EngineOptions":
        settings = settings or get_settings()
        return cls(
            min_line_length=settings.min_line_length,
            max_code_length=settings.max_code_length,
            max_scan_values=settings.max_scan_values,
            balance_tolerance=settings.balance_tolerance,
            inversion_tolerance=settings.inversion_tolerance,
            flat_fallback_ratio=settings.flat_fallback_ratio,
            flat_fallback_min_rows=settings.flat_fallback_min_rows,
            keywords_path=settings.keywords_path,
        )


SpellCheckInput = Union[SpellCheck, Dict[str, Any]]


def run_engine(
    lines: Sequence[str],
    document_type: Optional[Union[str, DocumentType]] = None,
    spell_check: Optional[Iterable[SpellCheckInput]] = None,
    options: Optional[EngineOptions] = None,
) -> NormalizationResult:
    """
    Main entry point for the LedgerLens engine.

    Args:
        lines: Raw text lines, one per table row, in document order.
        document_type: Document type label or alias; detected when missing
            or unrecognized.
        spell_check: Spelling suggestions from the narrative service,
            passed through after filtering.
        options: Engine configuration options.

    Returns:
        NormalizationResult with summary, accounts and warnings.

    Raises:
        NoAccountsIdentifiedError: If no line yields an account.
        KeywordTableError: If the keyword tables cannot be loaded.
    """
    run_id = str(uuid.uuid4())
    options = options or EngineOptions.from_settings()
    lines = list(lines or [])

    try:
        tables = load_keyword_tables(options.keywords_path)

        doc_type = DocumentType.parse(document_type)
        if doc_type is None:
            doc_type = detect_document_type(lines, tables)
            logger.info("Detected document type", run_id=run_id, hint=document_type, detected=doc_type.value)

        logger.info(
            "Starting LedgerLens engine",
            run_id=run_id,
            lines=len(lines),
            document_type=doc_type.value,
        )

        # =================================================================
        # Pass 1-2: TOKENIZE, MAP, CLASSIFY
        # =================================================================
        tokenizer = LineTokenizer(
            min_line_length=options.min_line_length,
            max_code_length=options.max_code_length,
            max_scan_values=options.max_scan_values,
            tables=tables,
        )
        mapper = get_column_mapper()
        classifier = AccountClassifier(tables)

        accounts: List[ParsedAccount] = []
        warnings: List[LineWarning] = []
        with_movement: Set[int] = set()
        skipped = 0

        for line_number, line in enumerate(lines, start=1):
            tokens = tokenizer.tokenize(line, doc_type, line_number)
            if tokens is None:
                skipped += 1
                continue

            warnings.extend(tokens.warnings)
            columns = mapper.map(tokens.values, doc_type)
            classification = classifier.classify(
                tokens.name, tokens.code, doc_type, tokens.nature_indicator
            )
            if columns.has_movement:
                with_movement.add(line_number)

            accounts.append(ParsedAccount(
                name=tokens.name,
                code=tokens.code,
                initial_balance=columns.initial,
                debit=columns.debit,
                credit=columns.credit,
                final_balance=columns.final,
                nature=classification.nature,
                category=classification.category,
                nature_indicator=tokens.nature_indicator,
                line_number=line_number,
            ))

        if not accounts:
            raise NoAccountsIdentifiedError(line_count=len(lines), skipped_lines=skipped)

        logger.info("Tokenization complete", run_id=run_id, accounts=len(accounts), skipped=skipped)

        # =================================================================
        # Pass 3: HIERARCHY
        # =================================================================
        builder = HierarchyBuilder(tables)
        accounts, duplicates = builder.deduplicate(accounts)
        accounts = builder.build(accounts)

        # =================================================================
        # Pass 4: SIGNS AND INVERSIONS
        # =================================================================
        detector = InversionDetector(classifier, tolerance=options.inversion_tolerance)
        signed = (
            doc_type != DocumentType.INCOME_STATEMENT
            and uses_signed_convention(accounts, options.inversion_tolerance)
        )
        if signed:
            logger.info("Using signed balance convention", run_id=run_id)

        accounts = [
            _resolve_signs(account, account.line_number in with_movement, doc_type, signed, detector)
            for account in accounts
        ]

        # =================================================================
        # Pass 5: AGGREGATE
        # =================================================================
        observations = [
            f"Código duplicado ignorado: {a.code} - {a.name} (linha {a.line_number})"
            for a in duplicates
        ]
        for warning in warnings:
            observations.append(
                f"Linha {warning.line_number}: valor suspeito '{warning.token}' ({warning.message})"
            )

        aggregator = AggregationEngine(
            tables,
            balance_tolerance=options.balance_tolerance,
            flat_fallback_ratio=options.flat_fallback_ratio,
            flat_fallback_min_rows=options.flat_fallback_min_rows,
        )
        summary = aggregator.aggregate(
            accounts,
            doc_type,
            period=get_period_detector().detect(lines),
            observations=observations,
        )

        result = NormalizationResult(
            run_id=run_id,
            summary=summary,
            accounts=accounts,
            spell_check=filter_spell_check(spell_check or []),
            warnings=warnings,
            skipped_lines=skipped,
        )

        logger.info(
            "LedgerLens engine complete",
            run_id=run_id,
            accounts=len(accounts),
            analytical=summary.analytical_count,
            synthetic=summary.synthetic_count,
            inversions=summary.inversion_count,
            balanced=summary.is_balanced,
            degraded=summary.hierarchy_degraded,
        )
        return result

    except LedgerLensError as e:
        logger.warning(
            "LedgerLens engine failed",
            run_id=run_id,
            error_code=e.error_code,
            error=e.message,
        )
        raise


def _resolve_signs(
    account: ParsedAccount,
    has_movement: bool,
    document_type: DocumentType,
    signed_convention: bool,
    detector: InversionDetector,
) -> ParsedAccount:
    """Flag inversions, derive debit/credit and settle the final balance sign."""
    possible_inversion = detector.detect(
        account.name,
        account.nature,
        account.final_balance,
        indicator=account.nature_indicator,
        code=account.code,
        is_synthetic=account.is_synthetic,
        document_type=document_type,
        signed_convention=signed_convention,
    )

    final = account.final_balance
    debit, credit = account.debit, account.credit
    magnitude = abs(final)

    if document_type == DocumentType.INCOME_STATEMENT:
        side = Nature.from_indicator(account.nature_indicator) or account.nature
        if not has_movement:
            debit, credit = (magnitude, 0.0) if side == Nature.DEBIT else (0.0, magnitude)
        # Debit-nature lines negative, credit-nature lines positive
        final = -magnitude if account.nature == Nature.DEBIT else magnitude
    elif not has_movement:
        side = detector.balance_side(
            account.name, account.code, final, account.nature_indicator, signed_convention
        )
        if side == Nature.DEBIT:
            debit, credit = magnitude, 0.0
        elif side == Nature.CREDIT:
            debit, credit = 0.0, magnitude

    total_value = abs(final) if final else max(debit, credit)

    return replace(
        account,
        debit=debit,
        credit=credit,
        final_balance=final,
        total_value=total_value,
        possible_inversion=possible_inversion,
    )


def detect_document_type(lines: Sequence[str], tables: Optional[KeywordTables] = None) -> DocumentType:
    """
    Detect the document type by weighted keyword scoring.

    Returns:
        Best-scoring type, or OTHER below the minimum score.
    """
    tables = tables or load_keyword_tables()
    text = fold_text(" ".join(lines))

    scores: Dict[DocumentType, int] = {}
    for doc_type, weights in tables.document_type_scores.items():
        scores[doc_type] = sum(
            weight
            for keyword, weight in weights.items()
            if re.search(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", text)
        )

    if not scores:
        return DocumentType.OTHER

    best = max(scores, key=scores.get)
    if scores[best] < tables.document_type_min_score:
        return DocumentType.OTHER

    logger.debug("Document type scores", scores={k.value: v for k, v in scores.items()})
    return best


def filter_spell_check(entries: Iterable[SpellCheckInput]) -> List[SpellCheck]:
    """Keep suggestions that actually change the term."""
    result: List[SpellCheck] = []
    for entry in entries:
        if isinstance(entry, dict):
            try:
                confidence = SpellConfidence(entry.get("confidence") or "Medium")
            except ValueError:
                confidence = SpellConfidence.MEDIUM
            entry = SpellCheck(
                original_term=entry.get("original_term") or entry.get("originalTerm") or "",
                suggested_correction=(
                    entry.get("suggested_correction") or entry.get("suggestedCorrection") or ""
                ),
                confidence=confidence,
            )
        if entry.is_meaningful:
            result.append(entry)
    return result
