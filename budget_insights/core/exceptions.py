"""Exceptions raised by the insight rules engine.

Suppressed insights (not enough history, budget already adequate, ...) are
not errors and never show up here: rules return ``None`` for those. Only
inputs that would make the engine print a wrong number are raised.
"""

from typing import Any, Dict, Optional


class InsightEngineError(Exception):
    """Base class for insight engine failures.

    Attributes:
        error_code: Stable machine-readable code (e.g. "DATA_001")
        details: Extra context for logs, never shown to end users
    """

    def __init__(self, message: str, error_code: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class DataQualityError(InsightEngineError):
    """Raised for malformed dates, negative amounts or non-finite numbers."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="DATA_001", details=details)
