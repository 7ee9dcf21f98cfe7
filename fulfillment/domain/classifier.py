"""
Classification of remote provisioning errors for operator reports.
"""
from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    INVALID_CATALOG_ITEM = "InvalidCatalogItem"
    INVALID_TERM_DURATION = "InvalidTermDuration"
    AUTHENTICATION_ERROR = "AuthenticationError"
    TIMEOUT_ERROR = "TimeoutError"
    HTTP_ERROR = "HttpError"
    OTHER = "Other"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    ErrorCategory.INVALID_CATALOG_ITEM: "Invalid Catalog ID",
    ErrorCategory.INVALID_TERM_DURATION: "Invalid Term Duration",
    ErrorCategory.AUTHENTICATION_ERROR: "Authentication Error",
    ErrorCategory.TIMEOUT_ERROR: "Timeout Error",
    ErrorCategory.HTTP_ERROR: "HTTP Error",
    ErrorCategory.OTHER: "Other Error",
}


def classify(raw_error_text: str | None) -> ErrorCategory:
    """
    Map raw error text to a category.

    Rules are checked in order and the first match wins, so text mentioning
    both "TermDuration" and "HTTP" is an invalid term duration.
    """
    text = (raw_error_text or "").lower()

    if "catalogitem id" in text and "invalid" in text:
        return ErrorCategory.INVALID_CATALOG_ITEM
    if "termduration" in text:
        return ErrorCategory.INVALID_TERM_DURATION
    if "token" in text or "authentication" in text:
        return ErrorCategory.AUTHENTICATION_ERROR
    if "timeout" in text:
        return ErrorCategory.TIMEOUT_ERROR
    if "http" in text:
        return ErrorCategory.HTTP_ERROR
    return ErrorCategory.OTHER
