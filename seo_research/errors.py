"""Exception hierarchy shared by the orchestrator, adapters and workflows."""

from typing import Any, Optional


class ResearchError(Exception):
    """Base class for every error raised by the research core."""


class ValidationError(ResearchError, ValueError):
    """Bad input: invalid parameters, unknown template, missing template variables."""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class RateLimitError(ResearchError):
    """A submission was denied by the rate limiter. Nothing was sent."""

    def __init__(self, limiter: str, status: Optional[dict[str, Any]] = None):
        super().__init__(f"Rate limit exceeded for {limiter!r}")
        self.limiter = limiter
        self.status = status or {}


class ProviderError(ResearchError):
    """The provider reported a task or request as failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        status_message: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.status_message = status_message


class TransportError(ProviderError):
    """Network failure, timeout or unreadable body while talking to a backend."""


class WaitTimeoutError(ResearchError, TimeoutError):
    """``wait_for_all`` ran out of budget before every id resolved."""

    def __init__(self, pending: list[str], timeout: float):
        super().__init__(
            f"Timed out after {timeout:g}s waiting for {len(pending)} entr"
            f"{'y' if len(pending) == 1 else 'ies'}: {', '.join(pending)}"
        )
        self.pending = pending
        self.timeout = timeout


class EntryNotFoundError(ResearchError, KeyError):
    """An unknown task or job id was passed to a ledger."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "entry not found"


class InvalidTransitionError(ResearchError):
    """A terminal record was asked to change state, or an immutable field was reassigned."""
