"""
Hierarchy builder: ordering, nesting level and synthetic detection.

Accounts are sorted by code with numeric-aware ordering ("1.2" before
"1.10"). An account is synthetic when the next coded account in that order
extends its code past a separator, so "1" is the parent of "1.01" while
"10" is not the parent of "100". Uncoded accounts keep their source order
after the coded ones and are synthetic only when their name is an
aggregate label such as "Total" or "Resultado".
"""

import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

import structlog

from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.ledger_engine.models import ParsedAccount

logger = structlog.get_logger(__name__)

CODE_SEPARATORS = ".-"
SEGMENT_PATTERN = re.compile(r"[.\-]")


def code_segments(code: Optional[str]) -> List[str]:
    if not code:
        return []
    return [segment for segment in SEGMENT_PATTERN.split(code) if segment]


def code_level(code: Optional[str]) -> int:
    """Hierarchy depth: number of non-empty code segments (1 without a code)."""
    return max(1, len(code_segments(code)))


def natural_code_key(code: Optional[str]) -> Tuple[int, ...]:
    """Sort key comparing code segments as numbers."""
    key = []
    for segment in code_segments(code):
        key.append(int(segment) if segment.isdigit() else 0)
    return tuple(key)


def is_child_code(parent: str, candidate: str) -> bool:
    """Whether ``candidate`` nests under ``parent`` (prefix followed by a separator)."""
    if len(candidate) <= len(parent) or not candidate.startswith(parent):
        return False
    return candidate[len(parent)] in CODE_SEPARATORS


class HierarchyBuilder:
    """Builds the account hierarchy over a full batch of accounts."""

    def __init__(self, tables: Optional[KeywordTables] = None):
        self.tables = tables or load_keyword_tables()

    def deduplicate(
        self, accounts: Sequence[ParsedAccount]
    ) -> Tuple[List[ParsedAccount], List[ParsedAccount]]:
        """
        Keep the first account per code, in source order.

        Returns:
            Tuple of (kept accounts, dropped duplicates).
        """
        seen = set()
        kept: List[ParsedAccount] = []
        dropped: List[ParsedAccount] = []
        for account in accounts:
            if account.code and account.code in seen:
                dropped.append(account)
                continue
            if account.code:
                seen.add(account.code)
            kept.append(account)

        if dropped:
            logger.warning(
                "Dropped duplicate account codes",
                codes=[a.code for a in dropped],
            )
        return kept, dropped

    def build(self, accounts: Sequence[ParsedAccount]) -> List[ParsedAccount]:
        """
        Order accounts and assign level and synthetic flags.

        Args:
            accounts: All accounts of one document.

        Returns:
            New account list: coded accounts in natural code order,
            then uncoded accounts in source order.
        """
        unique, _ = self.deduplicate(accounts)

        coded = sorted((a for a in unique if a.code), key=lambda a: natural_code_key(a.code))
        uncoded = [a for a in unique if not a.code]

        result: List[ParsedAccount] = []
        for index, account in enumerate(coded):
            following = coded[index + 1] if index + 1 < len(coded) else None
            is_synthetic = following is not None and is_child_code(account.code, following.code)
            result.append(replace(
                account,
                level=code_level(account.code),
                is_synthetic=is_synthetic,
            ))

        for account in uncoded:
            result.append(replace(
                account,
                level=1,
                is_synthetic=self.tables.is_aggregate_label(account.name),
            ))

        logger.debug(
            "Hierarchy built",
            accounts=len(result),
            synthetic=sum(1 for a in result if a.is_synthetic),
        )
        return result


# Singleton instance
_builder_instance: Optional[HierarchyBuilder] = None


def get_hierarchy_builder() -> HierarchyBuilder:
    """Get singleton HierarchyBuilder instance."""
    global _builder_instance
    if _builder_instance is None:
        _builder_instance = HierarchyBuilder()
    return _builder_instance
