"""applyfill: fill job applications in a Playwright page from a candidate profile.

The engine lives in :mod:`applyfill.engine`; it is not imported here so that
callers can load a ``.env`` file before :mod:`applyfill.config` reads the
environment.
"""

from .errors import (
    APIError,
    AuthenticationError,
    AutofillError,
    DocumentFetchError,
    FillError,
    ProfileUnavailableError,
    RateLimitError,
)
from .models import (
    ClassifiedField,
    FillDetail,
    FillResult,
    MappedField,
    ScannedField,
    ScreeningAnswer,
)

__version__ = "0.1.0"

__all__ = [
    "APIError",
    "AuthenticationError",
    "AutofillError",
    "ClassifiedField",
    "DocumentFetchError",
    "FillDetail",
    "FillError",
    "FillResult",
    "MappedField",
    "ProfileUnavailableError",
    "RateLimitError",
    "ScannedField",
    "ScreeningAnswer",
    "__version__",
]
