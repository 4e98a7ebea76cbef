"""
eFrontPro SDK - Core Types

Option keys, enums and the per-call option value shared by the
request handler and the transport engines.
"""

from enum import Enum
from types import MappingProxyType
from collections.abc import Mapping
from typing import Any, Dict, Optional


class TransportOption(Enum):
    """Keys understood by the transport engines."""

    URL = "url"
    CUSTOM_REQUEST = "custom_request"  # HTTP method override
    USER_PWD = "user_pwd"  # "user:password" credentials
    POST_FIELDS = "post_fields"  # URL-encoded request body
    RETURN_TRANSFER = "return_transfer"  # Return body instead of writing it out
    CONNECT_TIMEOUT = "connect_timeout"  # Seconds
    TIMEOUT = "timeout"  # Seconds
    SSL_VERIFY_PEER = "ssl_verify_peer"
    HTTP_AUTH = "http_auth"
    HTTP_HEADER = "http_header"


class AuthMode(Enum):
    """HTTP authentication schemes."""

    BASIC = "basic"


class TransportErrorKind(Enum):
    """Stage of the request lifecycle at which the transport failed."""

    EXTENSION_UNAVAILABLE = "Request.Transport.ExtensionNotLoaded"
    INITIALIZATION_FAILURE = "Request.Transport.InitializationFailure"
    OPTION_APPLICATION_FAILURE = "Request.Transport.SetOptionsFailure"
    EXECUTION_FAILURE = "Request.Transport.ExecutionFailure"


OptionMap = Dict[TransportOption, Any]


class RequestOptions(Mapping):
    """
    Immutable option set for a single request.

    Built from the handler's persistent defaults plus the overrides of one
    verb call. Overrides win over defaults.
    """

    def __init__(
        self,
        defaults: Optional[Mapping[TransportOption, Any]] = None,
        **overrides: Any,
    ):
        merged: OptionMap = dict(defaults or {})
        for name, value in overrides.items():
            merged[TransportOption[name.upper()]] = value
        self._options = MappingProxyType(merged)

    def __getitem__(self, key: TransportOption) -> Any:
        return self._options[key]

    def __iter__(self):
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __repr__(self) -> str:
        # Credentials are never echoed
        shown = {
            k.name: ("***" if k is TransportOption.USER_PWD else v)
            for k, v in self._options.items()
        }
        return f"RequestOptions({shown})"
