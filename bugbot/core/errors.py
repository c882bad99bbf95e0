"""
Report Generation Errors
========================
The three failure kinds a generation attempt can raise.

    NeedMoreInfoError    — the backend affirmatively said the input is not
                           enough. A data verdict, not a fault: never retried,
                           never failed over.
    InfrastructureError  — transport error, timeout or non-2xx response.
                           Eligible for one cross-backend failover.
    ConfigurationError   — the selected backend is missing credentials or
                           settings. Raised before any network call.

Malformed backend output is deliberately absent: the normalizer always
resolves it to a usable fallback report.
"""
from typing import Iterable, List, Optional


class ReportGenerationError(Exception):
    """Base class for every error a generation attempt can surface."""


class NeedMoreInfoError(ReportGenerationError):
    """
    Raised when a backend declares the input insufficient.

    Parameters
    ----------
    missing_fields : iterable of str
        Canonical field identifiers. Order is kept, duplicates are dropped.
        May be empty when the backend asked for nothing recognisable.
    message : str or None
        Optional human-readable explanation from the backend.
    """

    def __init__(self, missing_fields: Iterable[str] = (), message: Optional[str] = None) -> None:
        super().__init__(message or "Missing information for bug report generation")
        self.missing_fields: List[str] = list(dict.fromkeys(missing_fields))
        self.details = message

    def __repr__(self) -> str:
        return f"NeedMoreInfoError(missing_fields={self.missing_fields!r}, details={self.details!r})"


class InfrastructureError(ReportGenerationError):
    """A backend could not be reached or answered with a transport-level failure."""

    def __init__(self, provider_name: str, reason: str) -> None:
        super().__init__(f"{provider_name}: {reason}")
        self.provider_name = provider_name
        self.reason = reason


class ConfigurationError(ReportGenerationError):
    """The selected backend cannot be used with the current settings."""
