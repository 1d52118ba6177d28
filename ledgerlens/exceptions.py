"""
Custom exceptions for LedgerLens.

Provides a hierarchy of exceptions with error codes for consistent error handling.
"""
from typing import Optional, Dict, Any


class LedgerLensError(Exception):
    """
    Base exception for all LedgerLens errors.

    Attributes:
        error_code: Unique error code (e.g., LL-001)
        message: Human-readable error message
        details: Additional error context
    """
    error_code: str = "LL-000"
    http_status: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Input Errors (LL-1XX)
class DocumentInputError(LedgerLensError):
    """The submitted document could not be accepted."""
    error_code = "LL-100"
    http_status = 400

    def __init__(self, message: str = "Invalid document input", **kwargs):
        super().__init__(message, **kwargs)


class InvalidDocumentTypeError(DocumentInputError):
    """Document type hint is not one of the supported types."""
    error_code = "LL-101"
    http_status = 400

    def __init__(self, document_type: str, **kwargs):
        message = f"Unsupported document type: {document_type}"
        super().__init__(message, details={"document_type": document_type}, **kwargs)


# Normalization Errors (LL-2XX)
class NormalizationError(LedgerLensError):
    """Normalization could not produce usable data."""
    error_code = "LL-200"
    http_status = 422

    def __init__(self, message: str = "Failed to normalize document", **kwargs):
        super().__init__(message, **kwargs)


class NoAccountsIdentifiedError(NormalizationError):
    """Every line was rejected; the document yielded no accounts."""
    error_code = "LL-201"
    http_status = 422

    def __init__(self, line_count: int, skipped_lines: int, **kwargs):
        message = "No accounts identified in document"
        super().__init__(
            message,
            details={"line_count": line_count, "skipped_lines": skipped_lines},
            **kwargs,
        )


# Configuration Errors (LL-3XX)
class KeywordTableError(LedgerLensError):
    """Keyword tables are missing or malformed."""
    error_code = "LL-301"
    http_status = 500

    def __init__(self, path: str, reason: str, **kwargs):
        message = f"Invalid keyword table {path}: {reason}"
        super().__init__(message, details={"path": path, "reason": reason}, **kwargs)


# Validation Errors (LL-7XX)
class ValidationError(LedgerLensError):
    """Input validation failed."""
    error_code = "LL-700"
    http_status = 400

    def __init__(self, message: str = "Validation failed", errors: list = None, **kwargs):
        details = kwargs.pop("details", {})
        details["errors"] = errors or []
        super().__init__(message, details=details, **kwargs)
