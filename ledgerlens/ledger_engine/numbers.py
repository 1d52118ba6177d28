"""
Numeric parser for ledger amounts.

Handles the formats found in Brazilian and US accounting reports:
- Brazilian: 1.234,56  R$ 1.500,00
- US: 1,234.56
- Negative: (123,45), -123,45, 123,45-
- Placeholders: "-" for zero
- OCR noise: capital O for 0, lowercase l for 1 inside numeric tokens

Parsing never raises. Unparseable input yields 0.0 with zero confidence so
callers can surface a warning instead of silently trusting the value.
"""
import math
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ParsedNumber:
    """Result of parsing a numeric string."""

    value: float
    raw_value: str
    confidence: float
    is_negative: bool = False
    currency: Optional[str] = None
    ocr_corrected: bool = False

    @property
    def is_valid(self) -> bool:
        return self.confidence > 0.0


class NumberParser:
    """
    Parser for ledger amounts.

    The decimal convention is decided per token: with both separators present
    the right-most one is the decimal point; with only commas a single comma
    is decimal; with only dots a 3-digit grouping is thousands.
    """

    CURRENCY_SYMBOLS = ("R$", "US$", "$", "€", "£", "BRL", "USD", "EUR")
    DASHES = {"-", "–", "—"}

    CURRENCY_PATTERN = re.compile(r"R\$|US\$|\$|€|£|\bBRL\b|\bUSD\b|\bEUR\b")
    WHITESPACE_PATTERN = re.compile(r"\s+")
    PARENTHESES_PATTERN = re.compile(r"^\((.*)\)$")
    OCR_SHAPE_PATTERN = re.compile(r"^[\dOl.,]+$")
    THOUSANDS_DOT_PATTERN = re.compile(r"^\d{1,3}(\.\d{3})+$")
    DIGITS_AND_SEPARATORS = re.compile(r"^\d[\d.,]*$|^[.,]\d+$")

    # Shape of a money-like token, used by the tokenizer before parsing.
    NUMERIC_TOKEN_PATTERN = re.compile(r"^\(?[-+]?[\dOl]*\d[\dOl.,]*\)?-?$")

    def parse(self, raw: Optional[str]) -> float:
        """Parse a raw token into a signed float; 0.0 when unparseable."""
        return self.parse_detailed(raw).value

    def parse_detailed(self, raw: Optional[str]) -> ParsedNumber:
        """
        Parse a raw token and keep the metadata.

        Args:
            raw: The token as it appears on the line.

        Returns:
            ParsedNumber with value and confidence.
        """
        original = raw or ""
        text = original.strip().replace("\u2212", "-")
        if not text:
            return ParsedNumber(value=0.0, raw_value=original, confidence=0.0)

        currency = self._find_currency(text)
        text = self.CURRENCY_PATTERN.sub("", text)
        text = self.WHITESPACE_PATTERN.sub("", text)

        if not text or text in self.DASHES:
            # A dash is a deliberate zero placeholder
            confidence = 1.0 if text in self.DASHES else 0.0
            return ParsedNumber(value=0.0, raw_value=original, confidence=confidence, currency=currency)

        is_negative = False
        paren_match = self.PARENTHESES_PATTERN.match(text)
        if paren_match:
            is_negative = True
            text = paren_match.group(1)

        if text.startswith("-"):
            is_negative = True
            text = text[1:]
        elif text.startswith("+"):
            text = text[1:]
        elif text.endswith("-"):
            is_negative = True
            text = text[:-1]

        ocr_corrected = False
        if any(ch in text for ch in "Ol") and self._is_ocr_candidate(text):
            text = text.replace("O", "0").replace("l", "1")
            ocr_corrected = True

        value, confidence = self._parse_number(text)
        if ocr_corrected:
            confidence = min(confidence, 0.6)

        if is_negative and value:
            value = -value

        return ParsedNumber(
            value=value,
            raw_value=original,
            confidence=confidence,
            is_negative=is_negative and value != 0.0,
            currency=currency,
            ocr_corrected=ocr_corrected,
        )

    def is_numeric_token(self, token: str) -> bool:
        """Whether a token is shaped like an amount (before parsing)."""
        text = self.CURRENCY_PATTERN.sub("", token or "")
        text = self.WHITESPACE_PATTERN.sub("", text)
        if text in self.DASHES:
            return True
        return bool(text) and bool(self.NUMERIC_TOKEN_PATTERN.match(text))

    def is_currency_symbol(self, token: str) -> bool:
        return token.strip().upper() in {s.upper() for s in self.CURRENCY_SYMBOLS}

    def _find_currency(self, text: str) -> Optional[str]:
        match = self.CURRENCY_PATTERN.search(text)
        return match.group(0) if match else None

    def _is_ocr_candidate(self, text: str) -> bool:
        """Only numeric-shaped tokens with at least one real digit qualify."""
        return bool(self.OCR_SHAPE_PATTERN.match(text)) and any(ch.isdigit() for ch in text)

    def _parse_number(self, text: str) -> Tuple[float, float]:
        """
        Parse a cleaned numeric string into a float.

        Args:
            text: String with digits and separators only.

        Returns:
            Tuple of (value, confidence); (0.0, 0.0) when invalid.
        """
        if not self.DIGITS_AND_SEPARATORS.match(text):
            logger.debug("Rejected non-numeric token", value=text)
            return 0.0, 0.0

        comma_count = text.count(",")
        period_count = text.count(".")

        if comma_count and period_count:
            # Right-most separator is the decimal point
            if text.rfind(",") > text.rfind("."):
                cleaned = text.replace(".", "").replace(",", ".")
            else:
                cleaned = text.replace(",", "")
            confidence = 0.95
        elif comma_count:
            if comma_count == 1:
                # Brazilian decimal: 1234,56
                cleaned = text.replace(",", ".")
                confidence = 0.9
            else:
                # Repeated commas can only be grouping: 1,234,567
                cleaned = text.replace(",", "")
                confidence = 0.8
        elif period_count:
            if self.THOUSANDS_DOT_PATTERN.match(text):
                cleaned = text.replace(".", "")
                confidence = 0.9
            elif period_count == 1:
                cleaned = text
                confidence = 0.9
            else:
                logger.debug("Ambiguous dotted number", value=text)
                return 0.0, 0.0
        else:
            cleaned = text
            confidence = 1.0

        try:
            value = float(cleaned)
        except ValueError as e:
            logger.debug("Failed to parse number", value=text, error=str(e))
            return 0.0, 0.0

        if not math.isfinite(value):
            return 0.0, 0.0

        return value, confidence


# Singleton instance
_parser_instance: Optional[NumberParser] = None


def get_number_parser() -> NumberParser:
    """Get singleton NumberParser instance."""
    global _parser_instance
    if _parser_instance is None:
        _parser_instance = NumberParser()
    return _parser_instance
