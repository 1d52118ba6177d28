"""
Aggregation engine for the LedgerLens engine.

Computes the document summary from the full account set:
- Trial balance / balance sheet: debits = credits within tolerance
- Income statement: credit-nature lines minus debit-nature lines
- Bottom-line result with label, overridden by an explicit net-profit line

Only analytical accounts are summed so subtotals are not counted twice.
When almost nothing is analytical the hierarchy is treated as unreliable
and every row that is not labelled as a total contributes instead.

Never modifies accounts - only reads them.
"""

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.ledger_engine.models import (
    AnalysisSummary,
    DocumentType,
    Nature,
    ParsedAccount,
)

logger = structlog.get_logger(__name__)


def _sum(values: Iterable[float]) -> float:
    """Sum through Decimal so cents do not drift."""
    total = sum((Decimal(str(v)) for v in values), Decimal("0"))
    return float(round(total, 2))


def format_amount(value: float) -> str:
    """Brazilian formatting used in observations: 1.234,56."""
    text = f"{value:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


class AggregationEngine:
    """Builds the AnalysisSummary for one document."""

    def __init__(
        self,
        tables: Optional[KeywordTables] = None,
        balance_tolerance: float = 1.0,
        flat_fallback_ratio: float = 0.10,
        flat_fallback_min_rows: int = 5,
    ):
        self.tables = tables or load_keyword_tables()
        self.balance_tolerance = balance_tolerance
        self.flat_fallback_ratio = flat_fallback_ratio
        self.flat_fallback_min_rows = flat_fallback_min_rows

    def aggregate(
        self,
        accounts: Sequence[ParsedAccount],
        document_type: DocumentType,
        period: Optional[str] = None,
        observations: Optional[List[str]] = None,
    ) -> AnalysisSummary:
        """
        Aggregate accounts into the document summary.

        Args:
            accounts: Accounts with hierarchy flags already assigned.
            document_type: Type of the source document.
            period: Detected reporting period, if any.
            observations: Findings gathered by earlier stages.

        Returns:
            Immutable AnalysisSummary.
        """
        synthetic = [a for a in accounts if a.is_synthetic]
        analytical = [a for a in accounts if not a.is_synthetic]

        degraded = self.is_hierarchy_degraded(len(accounts), len(analytical))
        if degraded:
            contributing = [a for a in accounts if not self.tables.is_aggregate_label(a.name)]
            logger.warning(
                "Hierarchy unreliable, summing all non-total rows",
                accounts=len(accounts),
                analytical=len(analytical),
                contributing=len(contributing),
            )
        else:
            contributing = analytical

        total_debits = _sum(abs(a.debit) for a in contributing)
        total_credits = _sum(abs(a.credit) for a in contributing)
        discrepancy = round(abs(total_debits - total_credits), 2)

        is_income_statement = document_type == DocumentType.INCOME_STATEMENT
        # P&L debits/credits are components, not a trial-balance equality
        is_balanced = True if is_income_statement else discrepancy < self.balance_tolerance

        if is_income_statement:
            result_value = self._income_statement_result(contributing)
            result_label = self.tables.result_label(result_value)
        else:
            result_value, result_label = self._computed_result(contributing, synthetic)

        inverted = [a for a in contributing if a.possible_inversion and not a.is_synthetic]

        findings: List[str] = []
        if not is_balanced:
            findings.append(
                f"Débitos ({format_amount(total_debits)}) e créditos ({format_amount(total_credits)}) "
                f"divergem em {format_amount(discrepancy)}"
            )
        for account in inverted:
            ref = f"{account.code} - {account.name}" if account.code else account.name
            findings.append(f"Possível inversão de natureza: {ref}")
        if degraded:
            findings.append("Hierarquia não identificada; totais calculados sobre todas as linhas")
        findings.extend(observations or [])

        summary = AnalysisSummary(
            document_type=document_type,
            total_debits=total_debits,
            total_credits=total_credits,
            is_balanced=is_balanced,
            discrepancy_amount=discrepancy,
            result_value=result_value,
            result_label=result_label,
            period=period,
            hierarchy_degraded=degraded,
            analytical_count=len(analytical),
            synthetic_count=len(synthetic),
            inversion_count=len(inverted),
            observations=tuple(findings),
        )

        logger.info(
            "Aggregation complete",
            document_type=document_type.value,
            total_debits=total_debits,
            total_credits=total_credits,
            balanced=is_balanced,
            result=result_value,
        )
        return summary

    def is_hierarchy_degraded(self, total_rows: int, analytical_rows: int) -> bool:
        """Analytical rows under the ratio on a document with more than a handful of rows."""
        if total_rows <= self.flat_fallback_min_rows:
            return False
        return analytical_rows < total_rows * self.flat_fallback_ratio

    def _income_statement_result(self, accounts: Sequence[ParsedAccount]) -> float:
        credits = _sum(abs(a.final_balance) for a in accounts if a.nature == Nature.CREDIT)
        debits = _sum(abs(a.final_balance) for a in accounts if a.nature == Nature.DEBIT)
        return round(credits - debits, 2)

    def _computed_result(
        self,
        contributing: Sequence[ParsedAccount],
        synthetic: Sequence[ParsedAccount],
    ) -> Tuple[float, str]:
        """Revenue credits minus expense debits, unless an explicit result line exists."""
        revenue = _sum(
            abs(a.credit) for a in contributing if self.tables.is_revenue(a.name, a.code)
        )
        expenses = _sum(
            abs(a.debit) for a in contributing if self.tables.is_expense(a.name, a.code)
        )
        result_value = round(revenue - expenses, 2)

        if result_value == 0:
            # An explicit "lucro liquido" line beats the computed zero
            for account in list(contributing) + list(synthetic):
                if self.tables.is_net_result(account.name):
                    logger.debug("Using explicit net result line", name=account.name)
                    return account.final_balance, account.name

        return result_value, self.tables.result_label(result_value)


# Singleton instance
_engine_instance: Optional[AggregationEngine] = None


def get_aggregation_engine() -> AggregationEngine:
    """Get singleton AggregationEngine instance."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = AggregationEngine()
    return _engine_instance
