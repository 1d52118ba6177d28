"""
Data model for the LedgerLens engine.

Holds the typed records that flow through the normalization pipeline:
- TokenizedLine / ColumnValues: intermediate per-line results
- ParsedAccount: one normalized ledger account
- AnalysisSummary: aggregates computed once per run
- NormalizationResult: the single atomic output handed to callers
"""

import unicodedata
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def fold_text(text: str) -> str:
    """Lowercase and strip accents so keyword matching ignores both."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


class DocumentType(str, Enum):
    """Supported accounting document types."""
    BALANCE_SHEET = "Balanço Patrimonial"
    TRIAL_BALANCE = "Balancete"
    INCOME_STATEMENT = "DRE"
    OTHER = "Outro"

    @classmethod
    def parse(cls, hint: Optional[str]) -> Optional["DocumentType"]:
        """Resolve a caller hint (label or alias) to a document type."""
        if not hint:
            return None
        if isinstance(hint, DocumentType):
            return hint
        return _DOCUMENT_TYPE_ALIASES.get(fold_text(hint))


_DOCUMENT_TYPE_ALIASES: Dict[str, DocumentType] = {
    "balanco patrimonial": DocumentType.BALANCE_SHEET,
    "balanco": DocumentType.BALANCE_SHEET,
    "balance_sheet": DocumentType.BALANCE_SHEET,
    "balancesheet": DocumentType.BALANCE_SHEET,
    "balance sheet": DocumentType.BALANCE_SHEET,
    "bs": DocumentType.BALANCE_SHEET,
    "balancete": DocumentType.TRIAL_BALANCE,
    "trial_balance": DocumentType.TRIAL_BALANCE,
    "trialbalance": DocumentType.TRIAL_BALANCE,
    "trial balance": DocumentType.TRIAL_BALANCE,
    "tb": DocumentType.TRIAL_BALANCE,
    "dre": DocumentType.INCOME_STATEMENT,
    "income_statement": DocumentType.INCOME_STATEMENT,
    "incomestatement": DocumentType.INCOME_STATEMENT,
    "income statement": DocumentType.INCOME_STATEMENT,
    "is": DocumentType.INCOME_STATEMENT,
    "p&l": DocumentType.INCOME_STATEMENT,
    "pnl": DocumentType.INCOME_STATEMENT,
    "outro": DocumentType.OTHER,
    "other": DocumentType.OTHER,
}


class Nature(str, Enum):
    """Expected accounting side of an account."""
    DEBIT = "Debit"
    CREDIT = "Credit"
    UNKNOWN = "Unknown"

    @property
    def opposite(self) -> "Nature":
        if self is Nature.DEBIT:
            return Nature.CREDIT
        if self is Nature.CREDIT:
            return Nature.DEBIT
        return Nature.UNKNOWN

    @classmethod
    def from_indicator(cls, indicator: Optional[str]) -> Optional["Nature"]:
        """Map a D/C marker from the source line to a nature."""
        if not indicator:
            return None
        return {"D": cls.DEBIT, "C": cls.CREDIT}.get(indicator.upper())


class CashFlowCategory(str, Enum):
    """IFRS 18 income-statement categories."""
    OPERATIONAL = "Operacional"
    INVESTMENT = "Investimento"
    FINANCING = "Financiamento"


class SpellConfidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# =============================================================================
# Per-line intermediate records
# =============================================================================

@dataclass(frozen=True)
class LineWarning:
    """A recoverable problem found while reading one line."""
    line_number: int
    line: str
    token: str
    message: str


@dataclass
class TokenizedLine:
    """Fields split out of one raw line."""
    raw: str
    name: str
    values: List[float]
    raw_values: List[str] = field(default_factory=list)
    code: Optional[str] = None
    nature_indicator: Optional[str] = None
    strategy: str = "delimited"  # delimited, reverse_scan
    warnings: List[LineWarning] = field(default_factory=list)


@dataclass(frozen=True)
class ColumnValues:
    """Numeric values assigned to their semantic slots."""
    initial: float = 0.0
    debit: float = 0.0
    credit: float = 0.0
    final: float = 0.0
    has_movement: bool = False  # debit/credit came from the line itself


# =============================================================================
# Core entities
# =============================================================================

@dataclass(frozen=True)
class ParsedAccount:
    """A normalized ledger account."""
    name: str
    code: Optional[str] = None
    initial_balance: float = 0.0
    debit: float = 0.0
    credit: float = 0.0
    final_balance: float = 0.0
    total_value: float = 0.0
    nature: Nature = Nature.UNKNOWN
    possible_inversion: bool = False
    category: Optional[CashFlowCategory] = None
    level: int = 1
    is_synthetic: bool = False
    nature_indicator: Optional[str] = None
    line_number: int = 0

    @property
    def key(self) -> str:
        """Merge key used by downstream comparison: code, else name."""
        return self.code or self.name

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["nature"] = self.nature.value
        data["category"] = self.category.value if self.category else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedAccount":
        values = dict(data)
        values["nature"] = Nature(values.get("nature", Nature.UNKNOWN.value))
        category = values.get("category")
        values["category"] = CashFlowCategory(category) if category else None
        return cls(**values)


@dataclass(frozen=True)
class SpellCheck:
    """Spelling suggestion supplied by an external narrative service."""
    original_term: str
    suggested_correction: str
    confidence: SpellConfidence = SpellConfidence.MEDIUM

    @property
    def is_meaningful(self) -> bool:
        return bool(
            self.original_term
            and self.suggested_correction
            and self.original_term.lower() != self.suggested_correction.lower()
        )


@dataclass(frozen=True)
class AnalysisSummary:
    """Aggregates computed once per normalization run."""
    document_type: DocumentType
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
    observations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["document_type"] = self.document_type.value
        data["observations"] = list(self.observations)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisSummary":
        values = dict(data)
        values["document_type"] = DocumentType(values["document_type"])
        values["observations"] = tuple(values.get("observations", ()))
        return cls(**values)


@dataclass
class NormalizationResult:
    """Final output of an engine run."""
    summary: AnalysisSummary
    accounts: List[ParsedAccount]
    spell_check: List[SpellCheck] = field(default_factory=list)
    warnings: List[LineWarning] = field(default_factory=list)
    skipped_lines: int = 0
    run_id: str = ""

    def __post_init__(self):
        if not self.run_id:
            self.run_id = str(uuid.uuid4())

    def inverted_accounts(self) -> List[ParsedAccount]:
        """Analytical accounts whose balance contradicts their nature."""
        return [a for a in self.accounts if a.possible_inversion and not a.is_synthetic]

    def category_totals(self) -> Dict[CashFlowCategory, float]:
        """Sum of total_value per IFRS 18 category (income statements only)."""
        totals = {category: 0.0 for category in CashFlowCategory}
        if self.summary.document_type != DocumentType.INCOME_STATEMENT:
            return totals
        for account in self.accounts:
            if account.is_synthetic:
                continue
            category = account.category or CashFlowCategory.OPERATIONAL
            totals[category] += account.total_value
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "summary": self.summary.to_dict(),
            "accounts": [a.to_dict() for a in self.accounts],
            "spell_check": [
                {
                    "original_term": s.original_term,
                    "suggested_correction": s.suggested_correction,
                    "confidence": s.confidence.value,
                }
                for s in self.spell_check
            ],
            "warnings": [asdict(w) for w in self.warnings],
            "skipped_lines": self.skipped_lines,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NormalizationResult":
        return cls(
            run_id=data.get("run_id", ""),
            summary=AnalysisSummary.from_dict(data["summary"]),
            accounts=[ParsedAccount.from_dict(a) for a in data.get("accounts", [])],
            spell_check=[
                SpellCheck(
                    original_term=s["original_term"],
                    suggested_correction=s["suggested_correction"],
                    confidence=SpellConfidence(s.get("confidence", "Medium")),
                )
                for s in data.get("spell_check", [])
            ],
            warnings=[LineWarning(**w) for w in data.get("warnings", [])],
            skipped_lines=data.get("skipped_lines", 0),
        )
