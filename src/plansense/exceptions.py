"""
Package-level exception hierarchy for PlanSense.

All exceptions inherit from PlanSenseError, enabling:
- Catching all PlanSense errors with a single except clause
- Structured serialization via to_dict() for JSON error output

Parsers never raise on malformed plan text: a report that cannot be
understood produces an empty ParsedPlan. These exceptions cover the
surrounding concerns (reading files, loading configuration).

Hierarchy:
    PlanSenseError
    ├── ParseError         – Plan input could not be read
    └── ConfigurationError – Invalid configuration value or file
"""

from __future__ import annotations

from typing import Any


class PlanSenseError(Exception):
    """
    Base exception for all PlanSense errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Input Errors ─────────────────────────────────────────────────────────


class ParseError(PlanSenseError):
    """
    Plan input could not be read.

    Raised for missing, unreadable, or oversized files. Malformed plan
    content is not an error: it yields an empty plan instead.

    Attributes:
        source: Description of the input source (file path, "stdin", etc.).
        detail: Technical details for debugging (optional).
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        *,
        detail: str | None = None,
    ) -> None:
        self.source = source
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}\n\nDetails: {self.detail}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["source"] = self.source
        result["detail"] = self.detail
        return result


# ── Configuration Errors ─────────────────────────────────────────────────


class ConfigurationError(PlanSenseError):
    """
    Error in PlanSense configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result
