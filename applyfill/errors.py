"""Exception hierarchy shared across the autofill engine."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class AutofillError(Exception):
    """Base class for engine errors."""


@dataclass(slots=True)
class APIError(AutofillError):
    """Raised when the remote autofill service returns an error response."""

    status: int
    message: str
    data: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"API error {self.status}: {self.message}"


class RateLimitError(APIError):
    """HTTP 429 from the AI service."""


class AuthenticationError(APIError):
    """HTTP 401; the configured token is missing or expired."""


class ProfileUnavailableError(AutofillError):
    """No candidate profile could be loaded for the pass."""


class FillError(AutofillError):
    """Every strategy for writing a field raised."""


class DocumentFetchError(AutofillError):
    """A stored document could not be downloaded or failed validation."""
