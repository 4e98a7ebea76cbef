"""
eFrontPro SDK - Request Handler Interface

Defines the interface every request handler of the SDK implements.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class RequestHandlerInterface(ABC):
    """
    Interface for request handlers.

    A request handler owns one transport session and executes one
    synchronous request at a time, authenticating with an API key.
    Lifecycle methods return the handler so calls can be chained.
    """

    @abstractmethod
    def init(self, sdk_version: Optional[str] = None) -> "RequestHandlerInterface":
        """
        Open the session (if needed) and install the default options.

        Args:
            sdk_version: SDK version reported to the API (handlers may
                fall back to their configured version)
        """
        pass

    @abstractmethod
    def get(self, url: str, api_key: str) -> str:
        """Execute an HTTP GET request and return the raw response body."""
        pass

    @abstractmethod
    def post(self, url: str, api_key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Execute an HTTP POST request and return the raw response body."""
        pass

    @abstractmethod
    def put(self, url: str, api_key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Execute an HTTP PUT request and return the raw response body."""
        pass

    @abstractmethod
    def set_option_list(self, options: Optional[Mapping] = None) -> "RequestHandlerInterface":
        """Replace the option list."""
        pass

    @abstractmethod
    def reset(self) -> "RequestHandlerInterface":
        """Reset the session state held by the transport."""
        pass

    @abstractmethod
    def close(self) -> "RequestHandlerInterface":
        """Release the session."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
