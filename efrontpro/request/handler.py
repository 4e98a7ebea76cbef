"""
eFrontPro SDK - Request Handler

Executes authenticated GET/POST/PUT calls against the eFrontPro API
through a transport engine session.
"""

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

from efrontpro.config.settings import HandlerConfig
from efrontpro.core.errors import IllegalStateError, TransportError
from efrontpro.core.types import (
    AuthMode,
    OptionMap,
    RequestOptions,
    TransportErrorKind,
    TransportOption,
)
from efrontpro.infrastructure.transport import RequestsTransport, TransportEngine
from efrontpro.request.base import RequestHandlerInterface
from efrontpro.request.encoding import build_query

logger = logging.getLogger(__name__)

SDK_VERSION_HEADER = "eFrontPro-SDK-Version"


class RequestHandler(RequestHandlerInterface):
    """
    Request handler backed by a transport engine session.

    The handler keeps a persistent option list (installed by init() or
    set_option_list()). Every verb call builds its own immutable
    RequestOptions from that list plus the call's URL, method, credentials
    and body, so per-call values never carry over to the next request.

    Not thread-safe: one request in flight per handler.
    """

    def __init__(
        self,
        engine: Optional[TransportEngine] = None,
        config: Optional[HandlerConfig] = None,
    ):
        """
        Initialize the request handler.

        Args:
            engine: Transport engine (defaults to RequestsTransport)
            config: Timeouts and TLS settings (defaults to HandlerConfig())

        Raises:
            TransportError: If the engine is not usable in this interpreter
            ConfigurationError: If config is invalid
        """
        self._engine = engine if engine is not None else RequestsTransport()
        self._config = config if config is not None else HandlerConfig()
        self._config.validate()

        if not self._engine.is_available():
            raise TransportError(
                TransportErrorKind.EXTENSION_UNAVAILABLE,
                TransportErrorKind.EXTENSION_UNAVAILABLE.value,
            )

        self._session: Any = None
        self._option_list: OptionMap = {}

    @property
    def option_list(self) -> Mapping[TransportOption, Any]:
        """Read-only view of the persistent option list."""
        return MappingProxyType(self._option_list)

    @property
    def is_open(self) -> bool:
        return self._session is not None

    def init(self, sdk_version: Optional[str] = None) -> "RequestHandler":
        if sdk_version is None:
            sdk_version = self._config.sdk_version
        if not isinstance(sdk_version, str) or not sdk_version:
            raise ValueError("sdk_version must be a non-empty string")

        if self._session is None:
            session = self._engine.open()
            if not session:
                raise TransportError(
                    TransportErrorKind.INITIALIZATION_FAILURE,
                    TransportErrorKind.INITIALIZATION_FAILURE.value,
                )
            self._session = session
            logger.debug("Transport session opened")

        return self.reset().set_option_list(
            {
                TransportOption.RETURN_TRANSFER: True,
                TransportOption.CONNECT_TIMEOUT: self._config.connect_timeout,
                TransportOption.TIMEOUT: self._config.timeout,
                TransportOption.SSL_VERIFY_PEER: self._config.verify_peer,
                TransportOption.HTTP_AUTH: AuthMode.BASIC,
                TransportOption.HTTP_HEADER: {SDK_VERSION_HEADER: sdk_version},
            }
        )

    def get(self, url: str, api_key: str) -> str:
        return self._execute(
            RequestOptions(
                self._option_list,
                url=url,
                custom_request="GET",
                user_pwd=f"{api_key}:",
            )
        )

    def post(self, url: str, api_key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return self._execute(
            RequestOptions(
                self._option_list,
                url=url,
                custom_request="POST",
                user_pwd=f"{api_key}:",
                post_fields=build_query(params),
            )
        )

    def put(self, url: str, api_key: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return self._execute(
            RequestOptions(
                self._option_list,
                url=url,
                custom_request="PUT",
                user_pwd=f"{api_key}:",
                post_fields=build_query(params),
            )
        )

    def set_option_list(self, options: Optional[Mapping] = None) -> "RequestHandler":
        self._option_list = dict(options or {})
        return self

    def reset(self) -> "RequestHandler":
        if self._session is not None:
            self._engine.reset(self._session)
            logger.debug("Transport session reset")
        return self

    def close(self) -> "RequestHandler":
        if self._session is not None:
            self._engine.close(self._session)
            self._session = None
            logger.debug("Transport session closed")
        return self

    def _execute(self, options: RequestOptions) -> str:
        """
        Apply the option set to the session and run the request.

        Returns:
            Raw response body, unprocessed

        Raises:
            IllegalStateError: If no session is open
            TransportError: If the engine rejects the options or the request fails
        """
        if self._session is None:
            raise IllegalStateError("Request handler is not initialized; call init() first")

        if not self._engine.configure(self._session, options):
            raise TransportError(
                TransportErrorKind.OPTION_APPLICATION_FAILURE,
                TransportErrorKind.OPTION_APPLICATION_FAILURE.value,
            )

        method = options.get(TransportOption.CUSTOM_REQUEST)
        url = options.get(TransportOption.URL)
        logger.debug(f"{method} {url}")

        response = self._engine.perform(self._session)
        if response is None:
            message, code = self._engine.last_error(self._session)
            logger.error(f"{method} {url} failed: {message} ({code})")
            raise TransportError(TransportErrorKind.EXECUTION_FAILURE, message, code)

        return response
