"""
eFrontPro SDK - Custom Exception Classes

Defines the exception hierarchy for the SDK.
All custom exceptions inherit from SDKError.
"""

from efrontpro.core.types import TransportErrorKind


class SDKError(Exception):
    """Base exception for all eFrontPro SDK errors."""

    pass


class ConfigurationError(SDKError, ValueError):
    """Raised when there are configuration issues."""

    pass


class IllegalStateError(SDKError):
    """Raised when a request is executed without an open session."""

    pass


class TransportError(SDKError):
    """
    Raised when the transport engine fails.

    Attributes:
        kind: Which stage of the request lifecycle failed
        message: Engine error message (or an SDK message key)
        code: Native engine error code, 0 when the engine reports none
    """

    def __init__(self, kind: TransportErrorKind, message: str, code: int = 0):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} (code {self.code})"
        return self.message

    def __repr__(self) -> str:
        return (
            f"TransportError(kind={self.kind.name}, "
            f"message={self.message!r}, code={self.code})"
        )
