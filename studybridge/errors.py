from __future__ import annotations

from typing import Sequence


class StudyBridgeError(Exception):
    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str, details: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ProviderUnavailable(StudyBridgeError):
    """A provider has no credential configured."""

    code = "PROVIDER_UNAVAILABLE"
    status = 503

    def __init__(self, provider: str, message: str | None = None) -> None:
        super().__init__(message or f"{provider} is not configured")
        self.provider = provider


class ProviderTransportFailure(StudyBridgeError):
    """Network error, timeout or non-success status from a provider call."""

    code = "PROVIDER_TRANSPORT_ERROR"
    status = 502

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.timed_out = timed_out

    @property
    def quota_exhausted(self) -> bool:
        return self.status_code in (402, 429)


class ProviderShapeFailure(StudyBridgeError):
    """Transport succeeded but the payload is not what the provider documents."""

    code = "PROVIDER_SHAPE_ERROR"
    status = 502

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class EmptyProviderResponse(StudyBridgeError):
    code = "EMPTY_AI_OUTPUT"
    status = 422

    def __init__(self, message: str = "Empty response from provider", provider: str | None = None) -> None:
        super().__init__(message, details={"provider": provider} if provider else None)
        self.provider = provider


class ParseFailure(StudyBridgeError):
    """No parsing strategy recovered structured data from a provider reply."""

    code = "INVALID_AI_OUTPUT"
    status = 422

    def __init__(self, excerpt: str, provider: str | None = None) -> None:
        details: dict[str, object] = {"content": excerpt}
        if provider:
            details["provider"] = provider
        super().__init__("Unparsable provider response", details=details)
        self.excerpt = excerpt
        self.provider = provider


class ExhaustedFailover(StudyBridgeError):
    code = "AI_SERVICE_ERROR"
    status = 500

    def __init__(self, attempts: Sequence[object], cause: StudyBridgeError | None) -> None:
        if cause is None:
            message = "No generation provider configured"
        else:
            provider = getattr(cause, "provider", None) or "unknown"
            message = f"All generation providers failed; last error from {provider}: {cause}"
        super().__init__(message, details={"last_error": str(cause) if cause else None})
        self.attempts = tuple(attempts)
        self.cause = cause


class ClientRequestInvalid(StudyBridgeError):
    code = "INVALID_REQUEST"
    status = 400

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code:
            self.code = code
