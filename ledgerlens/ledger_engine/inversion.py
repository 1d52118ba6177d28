"""
Inversion detector: balances whose side contradicts the account's nature.

Two sign conventions appear in real reports:
- presentation: balances printed positive on their normal side, a negative
  balance meaning the opposite side
- signed: debit balances positive, credit balances negative

The expected nature is derived from code and name alone, independently of
any D/C marker, so a marker that disagrees with the chart is itself a
signal. Contra accounts reduce their group and expect the opposite side.
"""

from typing import Optional, Sequence

import structlog

from ledgerlens.ledger_engine.classifier import AccountClassifier
from ledgerlens.ledger_engine.models import DocumentType, Nature, ParsedAccount

logger = structlog.get_logger(__name__)


def uses_signed_convention(accounts: Sequence[ParsedAccount], tolerance: float = 0.01) -> bool:
    """
    Whether balances follow the signed convention.

    True when at least two credit-nature analytical accounts carry a
    balance and more than half of them are negative.
    """
    balances = [
        a.final_balance
        for a in accounts
        if not a.is_synthetic and a.nature == Nature.CREDIT and abs(a.final_balance) > tolerance
    ]
    if len(balances) < 2:
        return False
    negatives = sum(1 for b in balances if b < 0)
    return negatives * 2 > len(balances)


class InversionDetector:
    """Flags accounts whose balance side contradicts their expected nature."""

    def __init__(self, classifier: Optional[AccountClassifier] = None, tolerance: float = 0.01):
        self.classifier = classifier or AccountClassifier()
        self.tolerance = tolerance

    def resolve_side(
        self,
        nature: Nature,
        final_balance: float,
        indicator: Optional[str] = None,
        signed_convention: bool = False,
    ) -> Optional[Nature]:
        """
        Side on which a balance actually sits.

        Args:
            nature: Assigned nature of the account.
            final_balance: Signed final balance as read.
            indicator: Explicit D/C marker, if any.
            signed_convention: Whether the document uses signed balances.

        Returns:
            Debit or Credit, or None for a zero balance without a marker.
        """
        marked = Nature.from_indicator(indicator)
        if marked:
            return marked
        if abs(final_balance) <= self.tolerance:
            return None
        if signed_convention:
            return Nature.DEBIT if final_balance > 0 else Nature.CREDIT

        normal_side = nature if nature != Nature.UNKNOWN else Nature.DEBIT
        return normal_side if final_balance > 0 else normal_side.opposite

    def balance_side(
        self,
        name: str,
        code: Optional[str],
        final_balance: float,
        indicator: Optional[str] = None,
        signed_convention: bool = False,
    ) -> Optional[Nature]:
        """
        Side on which a named account's balance sits.

        The normal side is the expected nature, so contra accounts count as
        reducers. Without a marker, a contra account in a presentation layout
        sits on its reducing side whether printed plain or in parentheses.
        """
        expected = self.classifier.expected_nature(name, code)
        if (
            not signed_convention
            and Nature.from_indicator(indicator) is None
            and abs(final_balance) > self.tolerance
            and self.classifier.tables.is_contra(name)
        ):
            return expected
        return self.resolve_side(expected, final_balance, indicator, signed_convention)

    def detect(
        self,
        name: str,
        nature: Nature,
        final_balance: float,
        indicator: Optional[str] = None,
        code: Optional[str] = None,
        is_synthetic: bool = False,
        document_type: Optional[DocumentType] = None,
        signed_convention: bool = False,
    ) -> bool:
        """
        Whether the account looks inverted.

        Subtotals are never flagged. On income statements "(-)" marks every
        deduction line, so only an explicit marker contradicting the expected
        nature, or a credit-nature line printed negative, counts.
        """
        if is_synthetic:
            return False

        if document_type == DocumentType.INCOME_STATEMENT:
            expected = self.classifier.expected_nature(name, code, apply_contra=False)
            marked = Nature.from_indicator(indicator)
            if marked:
                return marked != expected
            return expected == Nature.CREDIT and final_balance < -self.tolerance

        expected = self.classifier.expected_nature(name, code)
        actual = self.balance_side(name, code, final_balance, indicator, signed_convention)
        if actual is None:
            return False

        inverted = actual != expected
        if inverted:
            logger.debug(
                "Possible inversion",
                name=name,
                code=code,
                expected=expected.value,
                actual=actual.value,
                final_balance=final_balance,
            )
        return inverted
