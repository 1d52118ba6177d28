"""
Line tokenizer for the LedgerLens engine.

Splits one raw text line into code, name, ordered numeric values and an
optional D/C nature marker. Two strategies are tried in order:

1. Delimited: the line carries an explicit field delimiter (|, tab, ;).
2. Reverse scan: tokens are read right to left, collecting amounts until
   the first token that belongs to the account label.

Header, footer and border lines are rejected before either strategy runs.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import structlog

from ledgerlens.ledger_engine.keywords import KeywordTables, load_keyword_tables
from ledgerlens.ledger_engine.models import DocumentType, LineWarning, TokenizedLine
from ledgerlens.ledger_engine.numbers import NumberParser, ParsedNumber, get_number_parser

logger = structlog.get_logger(__name__)


class ScanState(str, Enum):
    """States of the reverse-scan strategy."""
    COLLECTING_VALUES = "collecting_values"
    LABEL = "label"


class TokenKind(str, Enum):
    VALUE = "value"
    MARKER = "marker"
    CURRENCY = "currency"
    PERCENT = "percent"
    TEXT = "text"


@dataclass
class _Values:
    """Amounts collected by one strategy."""
    values: List[float] = field(default_factory=list)
    raw_values: List[str] = field(default_factory=list)
    indicator: Optional[str] = None
    warnings: List[LineWarning] = field(default_factory=list)


class LineTokenizer:
    """
    Turns raw report lines into TokenizedLine records.

    Lines judged to be noise yield None; the tokenizer never raises.
    """

    DELIMITERS = ("|", "\t", ";")
    DELIMITER_PATTERN = re.compile(r"[|\t;]")

    CODE_PATTERN = re.compile(r"^\d+(?:[.\-]\d+)*[.\-]?$")
    MARKER_PATTERN = re.compile(r"^[DCdc]$")
    GLUED_MARKER_PATTERN = re.compile(r"^(.*[\d)\-])([DCdc])$")
    PERCENT_PATTERN = re.compile(r"^[-+(]?[\d.,]+\)?%$|^%$")

    BORDER_PATTERN = re.compile(r"^[\s\-=_+|.*:#~–—]+$")
    FILLER_FIELD_PATTERN = re.compile(r"^(?:[._=…·]+|[.\-_=…·–—]{2,})$")
    FILLER_RUN_PATTERN = re.compile(r"\.{2,}|…+|_{2,}|-{3,}|\|+")
    OPERATOR_PREFIX_PATTERN = re.compile(r"^\((?:\+|=)\)\s*")
    TRAILING_PUNCT_PATTERN = re.compile(r"[\s:\-–—]+$")

    def __init__(
        self,
        min_line_length: int = 4,
        max_code_length: int = 20,
        max_scan_values: int = 4,
        parser: Optional[NumberParser] = None,
        tables: Optional[KeywordTables] = None,
    ):
        self.min_line_length = min_line_length
        self.max_code_length = max_code_length
        self.max_scan_values = max_scan_values
        self.parser = parser or get_number_parser()
        self.tables = tables or load_keyword_tables()

    def tokenize(
        self,
        line: str,
        document_type: Optional[DocumentType] = None,
        line_number: int = 0,
    ) -> Optional[TokenizedLine]:
        """
        Tokenize one raw line.

        Args:
            line: Raw text line as supplied by the extraction service.
            document_type: Document type hint, used for log context.
            line_number: 1-based position of the line in the document.

        Returns:
            TokenizedLine, or None when the line is noise.
        """
        text = (line or "").strip()

        reason = self.noise_reason(text)
        if reason:
            logger.debug("Skipped line", line_number=line_number, reason=reason)
            return None

        result = self._tokenize_delimited(line, text, line_number)
        if result is None:
            result = self._tokenize_reverse_scan(line, text, line_number)

        if result is None:
            logger.debug(
                "Skipped line",
                line_number=line_number,
                reason="no_account",
                document_type=document_type.value if document_type else None,
            )
        return result

    def noise_reason(self, text: str) -> Optional[str]:
        """Why a stripped line is noise, or None when it may hold an account."""
        if len(text) < self.min_line_length:
            return "too_short"
        if self.BORDER_PATTERN.match(text):
            return "border"
        if self.tables.is_noise(text):
            return "header"
        return None

    def match_code(self, token: str) -> Optional[str]:
        """Return the normalized account code if the token is one."""
        token = token.strip()
        if not token or not self.CODE_PATTERN.match(token):
            return None
        code = token.rstrip(".-")
        if len(code) > self.max_code_length:
            return None
        return code

    # =========================================================================
    # Delimited strategy
    # =========================================================================

    def _split_fields(self, text: str) -> Optional[List[str]]:
        for delimiter in self.DELIMITERS:
            if delimiter not in text:
                continue
            fields = [f.strip() for f in text.split(delimiter)]
            fields = [f for f in fields if f and not self.FILLER_FIELD_PATTERN.match(f)]
            if len(fields) >= 2:
                return fields
        return None

    def _tokenize_delimited(self, raw: str, text: str, line_number: int) -> Optional[TokenizedLine]:
        fields = self._split_fields(text)
        if not fields:
            return None

        code = self.match_code(fields[0])
        if code:
            if len(fields) < 2:
                return None
            name, value_fields = fields[1], fields[2:]
        else:
            head = fields[0].split(None, 1)
            code = self.match_code(head[0]) if len(head) == 2 else None
            if code:
                name = head[1]
            else:
                name = fields[0]
            value_fields = fields[1:]

        collected = _Values()
        for value_field in value_fields:
            for token in value_field.split():
                self._consume_token(token, collected, raw, line_number)

        if not collected.values:
            return None

        name = self.clean_name(name)
        if name is None:
            return None

        return TokenizedLine(
            raw=raw,
            name=name,
            values=collected.values,
            raw_values=collected.raw_values,
            code=code,
            nature_indicator=collected.indicator,
            strategy="delimited",
            warnings=collected.warnings,
        )

    def _consume_token(self, token: str, collected: _Values, raw: str, line_number: int) -> TokenKind:
        kind, parsed, marker = self._classify_token(token)
        if kind is TokenKind.VALUE:
            collected.values.append(parsed.value)
            collected.raw_values.append(token)
            collected.warnings.extend(self._warnings_for(parsed, raw, line_number))
        if marker:
            # Read left to right, so the right-most marker wins
            collected.indicator = marker
        return kind

    # =========================================================================
    # Reverse-scan strategy
    # =========================================================================

    def _tokenize_reverse_scan(self, raw: str, text: str, line_number: int) -> Optional[TokenizedLine]:
        tokens = self.DELIMITER_PATTERN.sub(" ", text).split()
        collected = _Values()
        state = ScanState.COLLECTING_VALUES
        index = len(tokens)

        while index > 0 and state is ScanState.COLLECTING_VALUES:
            token = tokens[index - 1]
            kind, parsed, marker = self._classify_token(token)

            if kind is TokenKind.TEXT:
                state = ScanState.LABEL
                break

            if marker and collected.indicator is None:
                collected.indicator = marker
            if kind is TokenKind.VALUE:
                collected.values.append(parsed.value)
                collected.raw_values.append(token)
                collected.warnings.extend(self._warnings_for(parsed, raw, line_number))
                if len(collected.values) >= self.max_scan_values:
                    state = ScanState.LABEL
            index -= 1

        if not collected.values:
            return None

        # Scanned right to left; restore reading order
        collected.values.reverse()
        collected.raw_values.reverse()
        collected.warnings.reverse()

        label = tokens[:index]
        code = self.match_code(label[0]) if label else None
        if code:
            label = label[1:]

        name = self.clean_name(" ".join(label))
        if name is None:
            return None

        return TokenizedLine(
            raw=raw,
            name=name,
            values=collected.values,
            raw_values=collected.raw_values,
            code=code,
            nature_indicator=collected.indicator,
            strategy="reverse_scan",
            warnings=collected.warnings,
        )

    # =========================================================================
    # Shared helpers
    # =========================================================================

    def _classify_token(self, token: str) -> Tuple[TokenKind, Optional[ParsedNumber], Optional[str]]:
        """
        Classify one whitespace-free token.

        Returns:
            Tuple of (kind, parsed amount or None, D/C marker or None).
        """
        if self.MARKER_PATTERN.match(token):
            return TokenKind.MARKER, None, token.upper()
        if self.parser.is_currency_symbol(token):
            return TokenKind.CURRENCY, None, None
        if self.PERCENT_PATTERN.match(token):
            return TokenKind.PERCENT, None, None

        if self.parser.is_numeric_token(token):
            return TokenKind.VALUE, self.parser.parse_detailed(token), None

        glued = self.GLUED_MARKER_PATTERN.match(token)
        if glued and self.parser.is_numeric_token(glued.group(1)):
            # 1.000,00D
            return TokenKind.VALUE, self.parser.parse_detailed(glued.group(1)), glued.group(2).upper()

        return TokenKind.TEXT, None, None

    def _warnings_for(self, parsed: ParsedNumber, raw: str, line_number: int) -> List[LineWarning]:
        if not parsed.is_valid:
            return [LineWarning(
                line_number=line_number,
                line=raw,
                token=parsed.raw_value,
                message="Unparseable amount read as 0",
            )]
        if parsed.ocr_corrected:
            return [LineWarning(
                line_number=line_number,
                line=raw,
                token=parsed.raw_value,
                message="Amount corrected for OCR substitutions",
            )]
        return []

    def clean_name(self, name: str) -> Optional[str]:
        """Strip visual fillers from a label; None when nothing usable is left."""
        cleaned = self.FILLER_RUN_PATTERN.sub(" ", name or "")
        cleaned = " ".join(cleaned.split())
        cleaned = self.OPERATOR_PREFIX_PATTERN.sub("", cleaned)
        cleaned = self.TRAILING_PUNCT_PATTERN.sub("", cleaned).strip()
        if len(cleaned) < 2 or not any(ch.isalpha() for ch in cleaned):
            return None
        return cleaned
