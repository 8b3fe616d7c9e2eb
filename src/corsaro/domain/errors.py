"""Pipeline error taxonomy."""

from __future__ import annotations


class CorsaroError(Exception):
    """Base class for all pipeline errors."""


class ProviderFailure(CorsaroError):
    """A provider adapter failed; absorbed at the fan-out boundary."""

    def __init__(self, provider: str, query: str, cause: BaseException) -> None:
        super().__init__(f"{provider} failed for {query!r}: {cause!r}")
        self.provider = provider
        self.query = query
        self.cause = cause


class DebridError(CorsaroError):
    """Base class for debrid service failures.

    ``code`` is a stable, machine-readable identifier.
    """

    code: str = "DEBRID_ERROR"

    def __init__(self, message: str = "", *, status: int | None = None) -> None:
        super().__init__(message or self.code)
        self.status = status


class DebridAuthError(DebridError):
    """Invalid or expired API token. Fatal for the whole batch."""

    code = "INVALID_TOKEN"


class DebridPermissionDenied(DebridError):
    code = "PERMISSION_DENIED"


class DebridServiceUnavailable(DebridError):
    code = "SERVICE_UNAVAILABLE"


class DebridRateLimited(DebridError):
    code = "RATE_LIMITED"


class DebridTransientError(DebridError):
    """Timeouts, other 5xx responses, network failures, malformed payloads."""

    code = "TRANSIENT"
