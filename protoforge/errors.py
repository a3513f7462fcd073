"""Error taxonomy shared by every ProtoForge component.

Each failure carries an ``ErrorKind`` so the request boundary in
``protoforge.pipeline`` can turn it into a ``GenerationFailure`` without
inspecting messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable failure category."""

    PROVIDER_UNREACHABLE = "provider_unreachable"
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    MALFORMED_UPSTREAM = "malformed_upstream"
    UNKNOWN_PROVIDER = "unknown_provider"
    INVALID_JSON = "invalid_json"
    UNSAFE_PATH = "unsafe_path"
    IO_ERROR = "io_error"
    INVALID_REQUEST = "invalid_request"
    INTERNAL_ERROR = "internal_error"


class ProtoForgeError(Exception):
    """Base class for all recoverable ProtoForge errors."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)


class ProviderError(ProtoForgeError):
    """Raised when an AI provider cannot be reached or answers badly."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(kind, message)


class ExtractionError(ProtoForgeError):
    """Raised when no JSON document can be pulled out of a completion.

    ``snippet`` holds a bounded prefix of the raw text for diagnostics.
    """

    def __init__(self, message: str, snippet: str = "") -> None:
        self.snippet = snippet
        super().__init__(ErrorKind.INVALID_JSON, message)


class MaterializeError(ProtoForgeError):
    """Raised when a document cannot be written to disk."""

    def __init__(self, kind: ErrorKind, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(kind, message)
