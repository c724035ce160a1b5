from __future__ import annotations


class KomiError(Exception):
    """Base class for errors raised by the search pipeline."""


class ValidationError(KomiError):
    """Malformed or missing caller input."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class UpstreamUnavailable(KomiError):
    """Network failure or timeout while talking to a collaborator."""

    def __init__(self, dependency: str, message: str = "") -> None:
        super().__init__(message or f"{dependency} unavailable")
        self.dependency = dependency


class MalformedUpstreamResponse(KomiError):
    """A collaborator replied, but its content does not fit the expected schema."""

    def __init__(self, dependency: str, message: str = "") -> None:
        super().__init__(message or f"{dependency} returned a malformed response")
        self.dependency = dependency
