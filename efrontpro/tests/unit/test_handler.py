"""
Unit tests for the request handler.
"""

import pytest
from efrontpro.config.settings import HandlerConfig
from efrontpro.core.errors import (
    ConfigurationError,
    IllegalStateError,
    SDKError,
    TransportError,
)
from efrontpro.core.types import AuthMode, TransportErrorKind, TransportOption
from efrontpro.infrastructure.transport import MockTransport
from efrontpro.request.base import RequestHandlerInterface
from efrontpro.request.handler import SDK_VERSION_HEADER, RequestHandler

API_URL = "https://school.example.com/API/v1.0/User/12"


@pytest.fixture
def engine():
    """Create mock transport with one canned response."""
    return MockTransport(responses={API_URL: '{"success": true}'})


@pytest.fixture
def handler(engine):
    """Create an initialized request handler."""
    return RequestHandler(engine=engine).init("2.0.0")


class TestConstruction:
    """Tests for handler construction."""

    def test_implements_interface(self, engine):
        assert isinstance(RequestHandler(engine=engine), RequestHandlerInterface)

    def test_unavailable_engine_raises(self):
        with pytest.raises(TransportError) as exc_info:
            RequestHandler(engine=MockTransport(available=False))

        assert exc_info.value.kind is TransportErrorKind.EXTENSION_UNAVAILABLE

    def test_invalid_config_raises(self, engine):
        with pytest.raises(ConfigurationError, match="timeout must be positive"):
            RequestHandler(engine=engine, config=HandlerConfig(timeout=0))

    def test_no_session_before_init(self, engine):
        handler = RequestHandler(engine=engine)
        assert handler.is_open is False
        assert engine.sessions == []


class TestInit:
    """Tests for init()."""

    def test_installs_default_options(self, handler):
        assert dict(handler.option_list) == {
            TransportOption.RETURN_TRANSFER: True,
            TransportOption.CONNECT_TIMEOUT: 30.0,
            TransportOption.TIMEOUT: 60.0,
            TransportOption.SSL_VERIFY_PEER: False,
            TransportOption.HTTP_AUTH: AuthMode.BASIC,
            TransportOption.HTTP_HEADER: {SDK_VERSION_HEADER: "2.0.0"},
        }

    def test_defaults_follow_config(self, engine):
        config = HandlerConfig(connect_timeout=5, timeout=10, verify_peer=True)
        handler = RequestHandler(engine=engine, config=config).init("2.0.0")

        assert handler.option_list[TransportOption.CONNECT_TIMEOUT] == 5
        assert handler.option_list[TransportOption.TIMEOUT] == 10
        assert handler.option_list[TransportOption.SSL_VERIFY_PEER] is True

    def test_version_defaults_to_config(self, engine):
        handler = RequestHandler(engine=engine, config=HandlerConfig(sdk_version="3.4.5")).init()

        assert handler.option_list[TransportOption.HTTP_HEADER] == {SDK_VERSION_HEADER: "3.4.5"}

    def test_returns_self(self, engine):
        handler = RequestHandler(engine=engine)
        assert handler.init("2.0.0") is handler

    def test_empty_version_raises(self, engine):
        with pytest.raises(ValueError):
            RequestHandler(engine=engine).init("")

    def test_non_string_version_raises(self, engine):
        handler = RequestHandler(engine=engine)

        with pytest.raises(ValueError, match="non-empty string"):
            handler.init(2)

        assert handler.is_open is False

    def test_open_failure_raises(self):
        handler = RequestHandler(engine=MockTransport(fail_open=True))

        with pytest.raises(TransportError) as exc_info:
            handler.init("2.0.0")

        assert exc_info.value.kind is TransportErrorKind.INITIALIZATION_FAILURE
        assert handler.is_open is False

    def test_second_init_reuses_session(self, engine, handler):
        handler.init("2.0.1")

        assert len(engine.sessions) == 1
        assert engine.sessions[0].reset_count == 2
        assert handler.option_list[TransportOption.HTTP_HEADER] == {SDK_VERSION_HEADER: "2.0.1"}


class TestVerbs:
    """Tests for get(), post() and put()."""

    def test_get_returns_raw_body(self, handler):
        assert handler.get(API_URL, "secret") == '{"success": true}'

    def test_get_sets_method_and_credentials(self, engine, handler):
        handler.get(API_URL, "secret")

        sent = engine.get_call_history()[-1]
        assert sent[TransportOption.URL] == API_URL
        assert sent[TransportOption.CUSTOM_REQUEST] == "GET"
        assert sent[TransportOption.USER_PWD] == "secret:"
        assert TransportOption.POST_FIELDS not in sent

    def test_get_carries_default_options(self, engine, handler):
        handler.get(API_URL, "secret")

        sent = engine.get_call_history()[-1]
        assert sent[TransportOption.HTTP_HEADER] == {SDK_VERSION_HEADER: "2.0.0"}
        assert sent[TransportOption.TIMEOUT] == 60.0

    def test_post_encodes_params(self, engine, handler):
        handler.post(API_URL, "secret", {"name": "Jane Doe", "active": 1})

        sent = engine.get_call_history()[-1]
        assert sent[TransportOption.CUSTOM_REQUEST] == "POST"
        assert sent[TransportOption.POST_FIELDS] == "name=Jane+Doe&active=1"

    def test_post_without_params_sends_empty_body(self, engine, handler):
        handler.post(API_URL, "secret")

        assert engine.get_call_history()[-1][TransportOption.POST_FIELDS] == ""

    def test_put_encodes_params(self, engine, handler):
        handler.put(API_URL, "secret", {"email": "jane@example.com"})

        sent = engine.get_call_history()[-1]
        assert sent[TransportOption.CUSTOM_REQUEST] == "PUT"
        assert sent[TransportOption.USER_PWD] == "secret:"
        assert sent[TransportOption.POST_FIELDS] == "email=jane%40example.com"

    def test_call_options_do_not_persist(self, engine, handler):
        handler.post(API_URL, "secret", {"a": "1"})
        handler.get(API_URL, "secret")

        assert TransportOption.URL not in handler.option_list
        assert TransportOption.POST_FIELDS not in engine.get_call_history()[-1]


class TestSetOptionList:
    """Tests for set_option_list()."""

    def test_replaces_options(self, handler):
        handler.set_option_list({TransportOption.TIMEOUT: 5})
        assert dict(handler.option_list) == {TransportOption.TIMEOUT: 5}

    def test_empty_clears_defaults(self, engine, handler):
        handler.set_option_list({}).get(API_URL, "secret")

        assert engine.get_call_history()[-1] == {
            TransportOption.URL: API_URL,
            TransportOption.CUSTOM_REQUEST: "GET",
            TransportOption.USER_PWD: "secret:",
        }

    def test_copies_input(self, handler):
        options = {TransportOption.TIMEOUT: 5}
        handler.set_option_list(options)
        options[TransportOption.TIMEOUT] = 99

        assert handler.option_list[TransportOption.TIMEOUT] == 5

    def test_rejected_options_raise(self, handler):
        handler.set_option_list({"not-an-option": True})

        with pytest.raises(TransportError) as exc_info:
            handler.get(API_URL, "secret")

        assert exc_info.value.kind is TransportErrorKind.OPTION_APPLICATION_FAILURE


class TestLifecycle:
    """Tests for reset(), close() and execution state."""

    def test_reset_without_session_is_noop(self, engine):
        handler = RequestHandler(engine=engine)
        assert handler.reset() is handler

    def test_reset_keeps_option_list(self, engine, handler):
        before = dict(handler.option_list)
        handler.reset()

        assert dict(handler.option_list) == before
        assert engine.sessions[0].reset_count == 2

    def test_close_releases_session(self, engine, handler):
        handler.close()

        assert engine.sessions[0].closed is True
        assert handler.is_open is False

    def test_close_is_idempotent(self, handler):
        handler.close()
        assert handler.close() is handler

    def test_request_before_init_raises(self, engine):
        handler = RequestHandler(engine=engine)

        with pytest.raises(IllegalStateError):
            handler.get(API_URL, "secret")

    def test_request_after_close_raises(self, handler):
        handler.close()

        with pytest.raises(IllegalStateError):
            handler.post(API_URL, "secret")

    def test_init_after_close_opens_new_session(self, engine, handler):
        handler.close().init("2.0.0")

        assert len(engine.sessions) == 2
        assert handler.is_open is True

    def test_context_manager_closes(self, engine):
        with RequestHandler(engine=engine) as handler:
            handler.init("2.0.0")
            handler.get(API_URL, "secret")

        assert engine.sessions[0].closed is True


class TestExecutionFailure:
    """Tests for engine failures during perform()."""

    def test_failure_carries_message_and_code(self):
        engine = MockTransport(error=("Could not resolve host", 6))
        handler = RequestHandler(engine=engine).init("2.0.0")

        with pytest.raises(TransportError) as exc_info:
            handler.get(API_URL, "secret")

        error = exc_info.value
        assert error.kind is TransportErrorKind.EXECUTION_FAILURE
        assert error.message == "Could not resolve host"
        assert error.code == 6
        assert str(error) == "Could not resolve host (code 6)"

    def test_failure_is_sdk_error(self):
        engine = MockTransport(error=("Operation timed out", 28))
        handler = RequestHandler(engine=engine).init("2.0.0")

        with pytest.raises(SDKError):
            handler.put(API_URL, "secret", {"a": "b"})

    def test_failure_is_not_retried(self):
        engine = MockTransport(error=("Connection refused", 7))
        handler = RequestHandler(engine=engine).init("2.0.0")

        with pytest.raises(TransportError):
            handler.get(API_URL, "secret")

        assert len(engine.get_call_history()) == 1
