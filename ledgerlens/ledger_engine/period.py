"""
Reporting period detection.

Report headers carry the period in a handful of shapes:
- 01/01/2024 a 31/12/2024
- 01/2024 a 12/2024
- Exercício findo em 31/12/2024
- 31 de dezembro de 2024

The tokenizer drops these header lines, so detection runs on the raw lines.
The first match wins and is normalized to "dd/mm/yyyy a dd/mm/yyyy".
"""
import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

import structlog

from ledgerlens.ledger_engine.models import fold_text

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReportingPeriod:
    """A closed date range covered by a report."""
    start: date
    end: date

    @property
    def label(self) -> str:
        return f"{self.start:%d/%m/%Y} a {self.end:%d/%m/%Y}"


def _year_ending(end: date) -> date:
    """First day of the twelve months ending on ``end``."""
    try:
        start = end.replace(year=end.year - 1)
    except ValueError:
        # 29/02 on a leap year
        start = end.replace(year=end.year - 1, day=28)
    return start + timedelta(days=1)


class PeriodDetector:
    """Finds the reporting period in raw report lines."""

    RANGE_SEPARATOR = r"\s*(?:a|ate|-|–)\s*"

    DATE_RANGE_PATTERN = re.compile(
        r"(\d{1,2})/(\d{1,2})/(\d{4})" + RANGE_SEPARATOR + r"(\d{1,2})/(\d{1,2})/(\d{4})"
    )
    MONTH_RANGE_PATTERN = re.compile(
        r"(?<![\d/])(\d{1,2})/(\d{4})" + RANGE_SEPARATOR + r"(\d{1,2})/(\d{4})(?![\d/])"
    )
    FISCAL_YEAR_END_PATTERN = re.compile(
        r"exercicios?\s+(?:social\s+)?(?:findos?|encerrados?)\s+em\s+(\d{1,2})/(\d{1,2})/(\d{4})"
    )
    LONG_DATE_PATTERN = re.compile(
        r"(\d{1,2})\s+de\s+(janeiro|fevereiro|marco|abril|maio|junho|julho|agosto|"
        r"setembro|outubro|novembro|dezembro)\s+de\s+(\d{4})"
    )

    MONTH_MAP = {
        "janeiro": 1, "fevereiro": 2, "marco": 3, "abril": 4,
        "maio": 5, "junho": 6, "julho": 7, "agosto": 8,
        "setembro": 9, "outubro": 10, "novembro": 11, "dezembro": 12,
    }

    def detect(self, lines: Iterable[str]) -> Optional[str]:
        """
        Detect the reporting period of a document.

        Args:
            lines: Raw document lines in order.

        Returns:
            Normalized period label, or None when no line carries one.
        """
        for line in lines:
            period = self.detect_period(line)
            if period:
                logger.debug("Detected reporting period", period=period.label, line=line)
                return period.label
        return None

    def detect_period(self, text: str) -> Optional[ReportingPeriod]:
        """Detect a period in a single line."""
        folded = fold_text(text)
        if not folded:
            return None

        for parse in (
            self._parse_date_range,
            self._parse_month_range,
            self._parse_fiscal_year_end,
            self._parse_long_date,
        ):
            try:
                period = parse(folded)
            except ValueError:
                # Date-shaped but impossible (31/02/2024)
                continue
            if period and period.start <= period.end:
                return period
        return None

    def _parse_date_range(self, text: str) -> Optional[ReportingPeriod]:
        match = self.DATE_RANGE_PATTERN.search(text)
        if not match:
            return None
        d1, m1, y1, d2, m2, y2 = (int(g) for g in match.groups())
        return ReportingPeriod(start=date(y1, m1, d1), end=date(y2, m2, d2))

    def _parse_month_range(self, text: str) -> Optional[ReportingPeriod]:
        match = self.MONTH_RANGE_PATTERN.search(text)
        if not match:
            return None
        m1, y1, m2, y2 = (int(g) for g in match.groups())
        last_day = calendar.monthrange(y2, m2)[1]
        return ReportingPeriod(start=date(y1, m1, 1), end=date(y2, m2, last_day))

    def _parse_fiscal_year_end(self, text: str) -> Optional[ReportingPeriod]:
        match = self.FISCAL_YEAR_END_PATTERN.search(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
        end = date(year, month, day)
        return ReportingPeriod(start=_year_ending(end), end=end)

    def _parse_long_date(self, text: str) -> Optional[ReportingPeriod]:
        match = self.LONG_DATE_PATTERN.search(text)
        if not match:
            return None
        end = date(int(match.group(3)), self.MONTH_MAP[match.group(2)], int(match.group(1)))
        return ReportingPeriod(start=_year_ending(end), end=end)


def get_period_detector() -> PeriodDetector:
    """Get PeriodDetector instance."""
    return PeriodDetector()
