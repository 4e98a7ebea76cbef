"""
eFrontPro SDK - Transport Engine Abstraction

Provides the session/option model the request handler drives.
This allows mocking in tests and keeps all HTTP mechanics out of the handler.
"""

import collections.abc
import importlib.util
import logging
import sys
import warnings
from dataclasses import dataclass, field
from time import monotonic
from typing import Protocol, Dict, Any, List, Mapping, Optional, TextIO, Tuple
from urllib.parse import urlsplit

import requests
from requests.auth import HTTPBasicAuth
from urllib3.exceptions import InsecureRequestWarning, NameResolutionError

from efrontpro.core.types import AuthMode, OptionMap, TransportOption

logger = logging.getLogger(__name__)

# libcurl-compatible error codes
ERR_UNSUPPORTED_PROTOCOL = 1
ERR_URL_MALFORMAT = 3
ERR_COULDNT_RESOLVE_HOST = 6
ERR_COULDNT_CONNECT = 7
ERR_OPERATION_TIMEDOUT = 28
ERR_SSL_CONNECT_ERROR = 35
ERR_TOO_MANY_REDIRECTS = 47
ERR_RECV_ERROR = 56

_NUMBER = (int, float)

_OPTION_TYPES: Dict[TransportOption, Tuple[type, ...]] = {
    TransportOption.URL: (str,),
    TransportOption.CUSTOM_REQUEST: (str,),
    TransportOption.USER_PWD: (str,),
    TransportOption.POST_FIELDS: (str, bytes),
    TransportOption.RETURN_TRANSFER: (bool,),
    TransportOption.CONNECT_TIMEOUT: _NUMBER,
    TransportOption.TIMEOUT: _NUMBER,
    TransportOption.SSL_VERIFY_PEER: (bool,),
    TransportOption.HTTP_AUTH: (AuthMode,),
    TransportOption.HTTP_HEADER: (collections.abc.Mapping,),
}

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_CHUNK_SIZE = 64 * 1024


class TransportEngine(Protocol):
    """Protocol for transport engines driven by the request handler."""

    def is_available(self) -> bool:
        """Whether the engine can be used in this interpreter."""
        ...

    def open(self) -> Any:
        """Create a session handle. A falsy return means allocation failed."""
        ...

    def reset(self, session: Any) -> None:
        """Drop all per-session state: applied options, last error, cookies."""
        ...

    def close(self, session: Any) -> None:
        """Release the session handle."""
        ...

    def configure(self, session: Any, options: Mapping[TransportOption, Any]) -> bool:
        """Apply an option set atomically. Returns False if any option is rejected."""
        ...

    def perform(self, session: Any) -> Optional[str]:
        """Execute the configured request. Returns None on failure."""
        ...

    def last_error(self, session: Any) -> Tuple[str, int]:
        """Message and numeric code of the last failed perform()."""
        ...


def validate_options(options: Mapping[Any, Any]) -> bool:
    """Check option keys and value types against what the engines accept."""
    for key, value in options.items():
        expected = _OPTION_TYPES.get(key)
        if expected is None:
            return False
        if not isinstance(value, expected):
            return False
        if expected is _NUMBER and (isinstance(value, bool) or value < 0):
            return False
    return True


def _timeout(value: Optional[float]) -> Optional[float]:
    # 0 means no limit, as in libcurl
    return value if value else None


def describe_failure(exc: requests.RequestException, url: str) -> Tuple[str, int]:
    """Map a requests exception onto a (message, libcurl code) pair."""
    if isinstance(exc, requests.exceptions.InvalidSchema):
        return str(exc), ERR_UNSUPPORTED_PROTOCOL
    if isinstance(exc, (requests.exceptions.MissingSchema, requests.exceptions.InvalidURL)):
        return str(exc), ERR_URL_MALFORMAT
    # ConnectTimeout is also a ConnectionError
    if isinstance(exc, requests.exceptions.Timeout):
        return str(exc), ERR_OPERATION_TIMEDOUT
    if isinstance(exc, requests.exceptions.SSLError):
        return str(exc), ERR_SSL_CONNECT_ERROR
    if isinstance(exc, requests.exceptions.TooManyRedirects):
        return str(exc), ERR_TOO_MANY_REDIRECTS
    if isinstance(exc, requests.exceptions.ConnectionError):
        reason = getattr(exc.args[0], "reason", None) if exc.args else None
        if isinstance(reason, NameResolutionError):
            return f"Could not resolve host: {urlsplit(url).hostname}", ERR_COULDNT_RESOLVE_HOST
        return str(exc), ERR_COULDNT_CONNECT
    return str(exc), ERR_RECV_ERROR


@dataclass
class RequestsSession:
    """Session handle of RequestsTransport."""

    http: requests.Session
    options: OptionMap = field(default_factory=dict)
    error: Tuple[str, int] = ("", 0)


class RequestsTransport:
    """
    Real transport engine using the requests library.

    Redirects are not followed: a 3xx response is returned as is.
    CONNECT_TIMEOUT bounds connection setup. TIMEOUT bounds the whole
    transfer and is checked while the body is read, so a slow body is
    cut off once the deadline passes. A value of 0 disables either limit.
    """

    def __init__(self, output: Optional[TextIO] = None):
        """
        Args:
            output: Stream receiving response bodies when RETURN_TRANSFER
                is off (defaults to stdout)
        """
        self._output = output

    def is_available(self) -> bool:
        return importlib.util.find_spec("ssl") is not None

    def open(self) -> RequestsSession:
        logger.debug("Opening requests session")
        return RequestsSession(http=requests.Session())

    def reset(self, session: RequestsSession) -> None:
        session.options = {}
        session.error = ("", 0)
        session.http.cookies.clear()
        session.http.headers = requests.utils.default_headers()

    def close(self, session: RequestsSession) -> None:
        logger.debug("Closing requests session")
        session.http.close()

    def configure(self, session: RequestsSession, options: Mapping[TransportOption, Any]) -> bool:
        if not validate_options(options):
            return False
        session.options = dict(options)
        return True

    def perform(self, session: RequestsSession) -> Optional[str]:
        opts = session.options
        url = opts.get(TransportOption.URL)
        if not url:
            session.error = ("No URL set", ERR_URL_MALFORMAT)
            return None

        body = opts.get(TransportOption.POST_FIELDS)
        method = opts.get(TransportOption.CUSTOM_REQUEST) or ("POST" if body is not None else "GET")

        auth = None
        credentials = opts.get(TransportOption.USER_PWD)
        if credentials is not None and opts.get(TransportOption.HTTP_AUTH, AuthMode.BASIC) is AuthMode.BASIC:
            user, _, password = credentials.partition(":")
            auth = HTTPBasicAuth(user, password)

        headers = dict(opts.get(TransportOption.HTTP_HEADER, {}))
        if body is not None:
            headers.setdefault("Content-Type", FORM_CONTENT_TYPE)

        connect_timeout = _timeout(opts.get(TransportOption.CONNECT_TIMEOUT))
        total_timeout = _timeout(opts.get(TransportOption.TIMEOUT))
        verify = opts.get(TransportOption.SSL_VERIFY_PEER, True)

        try:
            with warnings.catch_warnings():
                if not verify:
                    warnings.simplefilter("ignore", InsecureRequestWarning)
                text = self._fetch(
                    session,
                    method,
                    url,
                    auth=auth,
                    headers=headers,
                    data=body,
                    connect_timeout=connect_timeout,
                    total_timeout=total_timeout,
                    verify=verify,
                )
        except requests.RequestException as e:
            session.error = describe_failure(e, url)
            return None

        if text is None:
            session.error = (
                f"Operation timed out after {total_timeout:g} seconds",
                ERR_OPERATION_TIMEDOUT,
            )
            return None

        session.error = ("", 0)
        if opts.get(TransportOption.RETURN_TRANSFER, False):
            return text

        (self._output or sys.stdout).write(text)
        return ""

    def _fetch(
        self,
        session: RequestsSession,
        method: str,
        url: str,
        connect_timeout: Optional[float],
        total_timeout: Optional[float],
        **kwargs: Any,
    ) -> Optional[str]:
        """
        Send the request and read the body within the total deadline.

        Returns None when the deadline passes before the body is complete.
        """
        deadline = monotonic() + total_timeout if total_timeout is not None else None
        response = session.http.request(
            method,
            url,
            timeout=(connect_timeout, total_timeout),
            allow_redirects=False,
            stream=True,
            **kwargs,
        )
        try:
            chunks = []
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                chunks.append(chunk)
                if deadline is not None and monotonic() > deadline:
                    return None
            response._content = b"".join(chunks)
            return response.text
        finally:
            response.close()

    def last_error(self, session: RequestsSession) -> Tuple[str, int]:
        return session.error


@dataclass
class MockSession:
    """Session handle of MockTransport."""

    number: int
    options: OptionMap = field(default_factory=dict)
    error: Tuple[str, int] = ("", 0)
    closed: bool = False
    reset_count: int = 0


class MockTransport:
    """Mock transport engine for testing."""

    def __init__(
        self,
        responses: Optional[Dict[str, str]] = None,
        available: bool = True,
        fail_open: bool = False,
        reject_options: bool = False,
        error: Optional[Tuple[str, int]] = None,
    ):
        """
        Args:
            responses: Response body per URL (unknown URLs return "")
            available: Value reported by is_available()
            fail_open: Make open() fail to allocate a handle
            reject_options: Make configure() reject every option set
            error: (message, code) reported by every perform()
        """
        self._responses = responses or {}
        self.available = available
        self.fail_open = fail_open
        self.reject_options = reject_options
        self.error = error
        self.sessions: List[MockSession] = []
        self._call_history: List[Dict[TransportOption, Any]] = []

    def is_available(self) -> bool:
        return self.available

    def open(self) -> Optional[MockSession]:
        if self.fail_open:
            return None
        session = MockSession(number=len(self.sessions) + 1)
        self.sessions.append(session)
        return session

    def reset(self, session: MockSession) -> None:
        session.options = {}
        session.error = ("", 0)
        session.reset_count += 1

    def close(self, session: MockSession) -> None:
        session.closed = True

    def configure(self, session: MockSession, options: Mapping[TransportOption, Any]) -> bool:
        if self.reject_options or not validate_options(options):
            return False
        session.options = dict(options)
        return True

    def perform(self, session: MockSession) -> Optional[str]:
        # Record call
        self._call_history.append(dict(session.options))

        if self.error is not None:
            session.error = self.error
            return None

        return self._responses.get(session.options.get(TransportOption.URL), "")

    def last_error(self, session: MockSession) -> Tuple[str, int]:
        return session.error

    def get_call_history(self) -> List[Dict[TransportOption, Any]]:
        """Get the option sets of all performed requests, oldest first."""
        return self._call_history
