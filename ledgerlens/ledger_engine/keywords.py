"""
Keyword tables for nature, category, aggregate and noise detection.

The tables live in ``ledgerlens/data/ledger_keywords.yaml`` so they can be
extended without touching control flow. Everything is folded (lowercase,
accent-free) at load time; callers pass raw names and the matchers fold them.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

import structlog
import yaml

from ledgerlens.exceptions import KeywordTableError
from ledgerlens.ledger_engine.models import CashFlowCategory, DocumentType, Nature, fold_text

logger = structlog.get_logger(__name__)

DEFAULT_KEYWORDS_PATH = Path(__file__).resolve().parent.parent / "data" / "ledger_keywords.yaml"


def compile_keywords(keywords: Sequence[str]) -> Optional[Pattern]:
    """Build a whole-word alternation over folded keywords, longest first."""
    folded = sorted({fold_text(k) for k in keywords if k}, key=len, reverse=True)
    if not folded:
        return None
    alternation = "|".join(re.escape(k) for k in folded)
    return re.compile(rf"(?<![a-z0-9])(?:{alternation})(?![a-z0-9])")


def _has_prefix(folded: str, prefixes: Sequence[str]) -> bool:
    for prefix in prefixes:
        if folded.startswith(prefix):
            rest = folded[len(prefix):]
            if not rest or not rest[0].isalnum():
                return True
    return False


def _code_has_prefix(code: Optional[str], prefixes: Sequence[str]) -> bool:
    return bool(code) and any(code.startswith(p) for p in prefixes)


@dataclass
class KeywordTables:
    """Compiled keyword tables."""
    nature_rules: List[Tuple[Nature, Pattern]] = field(default_factory=list)
    nature_code_prefixes: Dict[str, Nature] = field(default_factory=dict)
    contra_prefixes: List[str] = field(default_factory=list)
    contra_pattern: Optional[Pattern] = None
    category_rules: List[Tuple[CashFlowCategory, Pattern]] = field(default_factory=list)
    operational_code_prefixes: List[str] = field(default_factory=list)
    default_category: CashFlowCategory = CashFlowCategory.OPERATIONAL
    aggregate_prefixes: List[str] = field(default_factory=list)
    revenue_pattern: Optional[Pattern] = None
    expense_pattern: Optional[Pattern] = None
    revenue_code_prefixes: List[str] = field(default_factory=list)
    expense_code_prefixes: List[str] = field(default_factory=list)
    net_result_patterns: List[Pattern] = field(default_factory=list)
    positive_label: str = "LUCRO / SUPERÁVIT"
    negative_label: str = "PREJUÍZO / DÉFICIT"
    noise_patterns: List[Pattern] = field(default_factory=list)
    document_type_scores: Dict[DocumentType, Dict[str, int]] = field(default_factory=dict)
    document_type_min_score: int = 5

    # -- nature ---------------------------------------------------------------

    def match_nature(self, name: str) -> Optional[Nature]:
        folded = fold_text(name)
        for nature, pattern in self.nature_rules:
            if pattern.search(folded):
                return nature
        return None

    def nature_for_code(self, code: Optional[str]) -> Optional[Nature]:
        if not code:
            return None
        return self.nature_code_prefixes.get(code[0])

    def is_contra(self, name: str) -> bool:
        folded = fold_text(name)
        if any(folded.startswith(p) for p in self.contra_prefixes):
            return True
        return bool(self.contra_pattern and self.contra_pattern.search(folded))

    # -- category -------------------------------------------------------------

    def match_category(self, name: str, code: Optional[str] = None) -> CashFlowCategory:
        folded = fold_text(name)
        for category, pattern in self.category_rules:
            if pattern.search(folded):
                return category
        if _code_has_prefix(code, self.operational_code_prefixes):
            return CashFlowCategory.OPERATIONAL
        return self.default_category

    # -- aggregation ----------------------------------------------------------

    def is_aggregate_label(self, name: str) -> bool:
        return _has_prefix(fold_text(name), self.aggregate_prefixes)

    def is_revenue(self, name: str, code: Optional[str] = None) -> bool:
        folded = fold_text(name)
        if self.expense_pattern and self.expense_pattern.search(folded):
            return False
        if self.revenue_pattern and self.revenue_pattern.search(folded):
            return True
        return _code_has_prefix(code, self.revenue_code_prefixes)

    def is_expense(self, name: str, code: Optional[str] = None) -> bool:
        folded = fold_text(name)
        if self.expense_pattern and self.expense_pattern.search(folded):
            return True
        if self.revenue_pattern and self.revenue_pattern.search(folded):
            return False
        return _code_has_prefix(code, self.expense_code_prefixes)

    def is_net_result(self, name: str) -> bool:
        folded = fold_text(name)
        return any(p.search(folded) for p in self.net_result_patterns)

    def result_label(self, value: float) -> str:
        return self.positive_label if value >= 0 else self.negative_label

    # -- noise ----------------------------------------------------------------

    def is_noise(self, line: str) -> bool:
        folded = fold_text(line)
        return any(p.search(folded) for p in self.noise_patterns)


def _build_tables(raw: Dict) -> KeywordTables:
    nature = raw["nature"]
    contra = raw.get("contra_accounts", {})
    category = raw["category"]
    result = raw["result"]
    noise = raw.get("noise", {})
    doc_types = raw.get("document_types", {})

    tables = KeywordTables()
    for rule in nature["rules"]:
        pattern = compile_keywords(rule.get("keywords", []))
        if pattern:
            tables.nature_rules.append((Nature(rule["nature"]), pattern))
    tables.nature_code_prefixes = {
        str(prefix): Nature(value) for prefix, value in nature.get("code_prefixes", {}).items()
    }

    tables.contra_prefixes = [fold_text(p) for p in contra.get("prefixes", [])]
    tables.contra_pattern = compile_keywords(contra.get("keywords", []))

    for rule in category["rules"]:
        pattern = compile_keywords(rule.get("keywords", []))
        if pattern:
            tables.category_rules.append((CashFlowCategory(rule["category"]), pattern))
    tables.operational_code_prefixes = [str(p) for p in category.get("operational_code_prefixes", [])]
    tables.default_category = CashFlowCategory(category.get("default", "Operacional"))

    tables.aggregate_prefixes = [fold_text(p) for p in raw.get("aggregates", {}).get("prefixes", [])]

    tables.revenue_pattern = compile_keywords(result.get("revenue_keywords", []))
    tables.expense_pattern = compile_keywords(result.get("expense_keywords", []))
    tables.revenue_code_prefixes = [str(p) for p in result.get("revenue_code_prefixes", [])]
    tables.expense_code_prefixes = [str(p) for p in result.get("expense_code_prefixes", [])]
    tables.net_result_patterns = [re.compile(p) for p in result.get("net_result_patterns", [])]
    labels = result.get("labels", {})
    tables.positive_label = labels.get("positive", tables.positive_label)
    tables.negative_label = labels.get("negative", tables.negative_label)

    tables.noise_patterns = [
        re.compile(p)
        for p in noise.get("header_patterns", []) + noise.get("footer_patterns", [])
    ]

    tables.document_type_min_score = int(doc_types.get("min_score", 5))
    for type_label, scores in doc_types.get("scores", {}).items():
        tables.document_type_scores[DocumentType(type_label)] = {
            fold_text(k): int(v) for k, v in scores.items()
        }

    return tables


@lru_cache(maxsize=8)
def load_keyword_tables(path: Optional[Path] = None) -> KeywordTables:
    """
    Load and compile keyword tables from YAML.

    Args:
        path: Optional override; defaults to the packaged table.

    Returns:
        Compiled KeywordTables.

    Raises:
        KeywordTableError: If the file is missing or malformed.
    """
    path = Path(path) if path else DEFAULT_KEYWORDS_PATH
    if not path.exists():
        raise KeywordTableError(str(path), "file not found")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        tables = _build_tables(raw)
    except (yaml.YAMLError, KeyError, TypeError, ValueError, re.error) as e:
        raise KeywordTableError(str(path), str(e)) from e

    logger.info(
        "Loaded keyword tables",
        path=str(path),
        nature_rules=len(tables.nature_rules),
        category_rules=len(tables.category_rules),
        noise_patterns=len(tables.noise_patterns),
    )
    return tables
