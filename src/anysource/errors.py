from __future__ import annotations

"""Error taxonomy for source dispatch.

CONTRACT
- Inputs: Provider names, source names, messages
- Outputs:
  - Exception instances carrying enough context to report per provider
- Invariants:
  - CancellationSignal is NOT an AnySourceError; it must never be caught by
    handlers written for provider failures
  - ProviderError always names the offending provider
- Failure:
  - N/A (definitions only)
"""


class CancellationSignal(Exception):
    """Caller aborted the operation (declined confirmation, pipeline stopped)."""


class AnySourceError(Exception):
    """Base class for dispatch errors."""


class ProviderError(AnySourceError):
    """A provider failed while handling a request."""

    def __init__(self, provider: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.cause = cause


class NoProviderSucceededError(AnySourceError):
    def __init__(self, name: str) -> None:
        super().__init__("Package provider did not set the package source configuration.")
        self.name = name


class ProviderNotFoundError(AnySourceError):
    def __init__(self, provider: str, reason: str = "is not registered") -> None:
        super().__init__(f"Package provider '{provider}' {reason}.")
        self.provider = provider
        self.reason = reason


class OutputSinkError(AnySourceError):
    """The caller's record sink failed after a provider completed the change."""

    def __init__(self, provider: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Output sink failed for '{provider}' result: {message}")
        self.provider = provider
        self.message = message
        self.cause = cause
