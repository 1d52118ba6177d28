"""
Account classifier: debit/credit nature and IFRS 18 category.

Nature is resolved in priority order:
1. Explicit D/C marker printed on the line
2. First digit of the account code (1 = assets, 2 = liabilities)
3. Keyword rules from the keyword tables
4. Debit

Categories only apply to income statements. Classification is a pure
function of its inputs.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.ledger_engine.models import CashFlowCategory, DocumentType, Nature

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Classification:
    """Result of classifying one account."""
    nature: Nature
    category: Optional[CashFlowCategory] = None
    nature_source: str = "default"  # indicator, code, keyword, default


class AccountClassifier:
    """Rule-driven classifier backed by the keyword tables."""

    def __init__(self, tables: Optional[KeywordTables] = None):
        self.tables = tables or load_keyword_tables()

    def classify(
        self,
        name: str,
        code: Optional[str],
        document_type: Optional[DocumentType],
        indicator: Optional[str] = None,
    ) -> Classification:
        """
        Classify an account.

        Args:
            name: Account name.
            code: Account code, if any.
            document_type: Type of the source document.
            indicator: Raw D/C marker from the line, if any.

        Returns:
            Classification with nature, category and where the nature came from.
        """
        category = None
        if document_type == DocumentType.INCOME_STATEMENT:
            category = self.tables.match_category(name, code)

        marked = Nature.from_indicator(indicator)
        if marked:
            return Classification(nature=marked, category=category, nature_source="indicator")

        nature, source = self._infer_nature(name, code)
        return Classification(nature=nature, category=category, nature_source=source)

    def expected_nature(self, name: str, code: Optional[str], apply_contra: bool = True) -> Nature:
        """
        Nature an account should have judging by its code and name alone.

        Contra accounts (accumulated depreciation, allowances, "(-)" lines)
        reduce their group, so their expected nature is flipped unless
        ``apply_contra`` is False.
        """
        nature, _ = self._infer_nature(name, code)
        if apply_contra and self.tables.is_contra(name):
            return nature.opposite
        return nature

    def _infer_nature(self, name: str, code: Optional[str]):
        by_code = self.tables.nature_for_code(code)
        if by_code:
            return by_code, "code"

        by_keyword = self.tables.match_nature(name)
        if by_keyword:
            return by_keyword, "keyword"

        logger.debug("No nature rule matched, defaulting to Debit", name=name, code=code)
        return Nature.DEBIT, "default"


# Singleton instance
_classifier_instance: Optional[AccountClassifier] = None


def get_account_classifier() -> AccountClassifier:
    """Get singleton AccountClassifier instance."""
    global _classifier_instance
    if _classifier_instance is None:
        _classifier_instance = AccountClassifier()
    return _classifier_instance
