"""End-to-end receive tests over a stubbed requests transport."""

from __future__ import annotations

import ssl
from collections.abc import Callable

import pytest
import requests
from pydantic import BaseModel

from httpsling import (
    CancellationError,
    ConnectionFailedError,
    Deadline,
    DecodeError,
    HttpSender,
    HttpSettings,
    InvalidSchemeError,
    RawCapture,
    Sling,
    TlsCertificateError,
    TlsError,
    TooManyRedirectsError,
    TransportTimeoutError,
    Typed,
)
from tests.httpsling._stubs import StubAdapter, make_response

SenderFactory = Callable[..., tuple[HttpSender, StubAdapter]]


class Greeting(BaseModel):
    message: str


class ApiError(BaseModel):
    code: str


class TestReceive:
    """Tests for Sling.receive over HttpSender."""

    def test_success_decoded(self, stub_sender: SenderFactory) -> None:
        """2xx bodies decode into the success target."""
        sender, adapter = stub_sender(make_response(200, b'{"message": "hi"}'))
        success, failure = Typed(Greeting), Typed(ApiError)
        response = Sling(sender).base("http://api.test/").get("hello").receive(success, failure)
        assert response.status_code == 200
        assert response.content == b'{"message": "hi"}'
        assert success.value == Greeting(message="hi")
        assert failure.value is None
        assert adapter.requests[0].url == "http://api.test/hello"

    def test_failure_decoded(self, stub_sender: SenderFactory) -> None:
        """Non-2xx bodies decode into the failure target and are not raised."""
        sender, _ = stub_sender(make_response(422, b'{"code": "invalid"}'))
        success, failure = Typed(Greeting), Typed(ApiError)
        response = Sling(sender).base("http://api.test/").receive(success, failure)
        assert response.status_code == 422
        assert failure.value == ApiError(code="invalid")
        assert success.value is None

    def test_no_content_skips_decoding(self, stub_sender: SenderFactory) -> None:
        """A 204 leaves both targets untouched."""
        sender, _ = stub_sender(make_response(204))
        success, failure = Typed(Greeting), Typed(ApiError)
        response = Sling(sender).base("http://api.test/").delete("x").receive(success, failure)
        assert response.status_code == 204
        assert success.value is None
        assert failure.value is None

    def test_zero_content_length_skips_decoding(self, stub_sender: SenderFactory) -> None:
        """A declared empty body is never handed to the decoder."""
        sender, _ = stub_sender(make_response(200, b"", headers={"Content-Length": "0"}))
        success = Typed(Greeting)
        Sling(sender).base("http://api.test/").receive_success(success)
        assert success.value is None

    def test_raw_capture(self, stub_sender: SenderFactory) -> None:
        """Raw targets receive the exact bytes with no decoding."""
        sender, _ = stub_sender(make_response(200, b"hello", headers={"Content-Type": "text/plain"}))
        raw = RawCapture()
        response = Sling(sender).base("http://api.test/").receive_success(raw)
        assert raw.data == b"hello"
        assert response.text == "hello"

    def test_decode_error_carries_envelope(self, stub_sender: SenderFactory) -> None:
        """Decode failures raise with the envelope attached."""
        sender, _ = stub_sender(make_response(200, b"not json"))
        with pytest.raises(DecodeError) as excinfo:
            Sling(sender).base("http://api.test/").receive_success(Typed(Greeting))
        assert excinfo.value.response is not None
        assert excinfo.value.response.content == b"not json"

    def test_headers_and_body_sent(self, stub_sender: SenderFactory) -> None:
        """Configured headers and the body reach the transport."""
        sender, adapter = stub_sender(make_response(201, b"{}"))
        (
            Sling(sender)
            .base("http://api.test/")
            .post("items")
            .set_bearer_auth("tok")
            .body_json({"name": "x"})
            .receive_success(None)
        )
        sent = adapter.requests[0]
        assert sent.method == "POST"
        assert sent.headers["Authorization"] == "Bearer tok"
        assert sent.body == b'{"name":"x"}'

    def test_timeouts_from_settings(self, stub_sender: SenderFactory) -> None:
        """Connect and read timeouts come from the settings."""
        settings = HttpSettings(connect_timeout_s=2.0, read_timeout_s=7.0)
        sender, adapter = stub_sender(make_response(200), settings=settings)
        Sling(sender).base("http://api.test/").receive_success(None)
        assert adapter.timeouts == [(2.0, 7.0)]

    def test_timeouts_capped_by_deadline(self, stub_sender: SenderFactory) -> None:
        """A deadline shorter than the read timeout caps both timeouts."""
        sender, adapter = stub_sender(make_response(200))
        Sling(sender).base("http://api.test/").timeout(1.0).receive_success(None)
        connect, read = adapter.timeouts[0]  # type: ignore[misc]
        assert 0 < connect <= 1.0
        assert 0 < read <= 1.0


def _cert_error() -> requests.exceptions.SSLError:
    reason = ssl.SSLCertVerificationError(1, "[SSL: CERTIFICATE_VERIFY_FAILED] self-signed")
    return requests.exceptions.SSLError(reason)


class TestTransportErrors:
    """Tests for transport error mapping."""

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (requests.TooManyRedirects("Exceeded 10 redirects."), TooManyRedirectsError),
            (requests.exceptions.InvalidSchema("No connection adapters"), InvalidSchemeError),
            (_cert_error(), TlsCertificateError),
            (requests.exceptions.SSLError("EOF occurred in violation of protocol"), TlsError),
            (requests.ConnectTimeout("connect timed out"), TransportTimeoutError),
            (requests.ConnectionError("connection refused"), ConnectionFailedError),
        ],
    )
    def test_mapping(
        self, stub_sender: SenderFactory, exc: Exception, expected: type[Exception]
    ) -> None:
        """requests exceptions map onto the transport error hierarchy."""
        sender, _ = stub_sender(exc)
        with pytest.raises(expected) as excinfo:
            Sling(sender).base("http://api.test/").receive_success(None)
        assert type(excinfo.value) is expected
        assert excinfo.value.cause is exc  # type: ignore[attr-defined]
        assert excinfo.value.response is not None  # type: ignore[attr-defined]
        assert excinfo.value.response.status_code is None  # type: ignore[attr-defined]

    def test_expired_deadline(self, stub_sender: SenderFactory) -> None:
        """An already expired deadline fails with CancellationError without sending."""
        sender, adapter = stub_sender(make_response(200))
        deadline = Deadline.after(0.0)
        with pytest.raises(CancellationError, match="deadline exceeded"):
            Sling(sender).base("http://api.test/").deadline(deadline).receive_success(None)
        assert adapter.requests == []

    def test_timeout_after_deadline_is_cancellation(self, stub_sender: SenderFactory) -> None:
        """A socket timeout caused by a fired deadline is reported as cancellation."""
        deadline = Deadline()

        class _CancellingAdapter(StubAdapter):
            def send(self, request, **kwargs):  # type: ignore[no-untyped-def, override]
                deadline.cancel("shutting down")
                return super().send(request, **kwargs)

        adapter = _CancellingAdapter([requests.ReadTimeout("read timed out")])
        session = requests.Session()
        session.mount("http://", adapter)
        with pytest.raises(CancellationError, match="shutting down"):
            Sling(HttpSender(session=session)).base("http://api.test/").deadline(
                deadline
            ).receive_success(None)

    def test_retried_then_succeeds(self, stub_sender: SenderFactory) -> None:
        """Connection failures are retried by auto_retry over a real sender."""
        sender, adapter = stub_sender(
            requests.ConnectionError("refused"), make_response(200, b'{"message": "ok"}')
        )
        success = Typed(Greeting)
        Sling(sender).base("http://api.test/").auto_retry(
            min_wait=0.0, max_wait=0.0
        ).receive_success(success)
        assert len(adapter.requests) == 2
        assert success.value == Greeting(message="ok")


class TestSenderSession:
    """Tests for HttpSender session handling."""

    def test_created_session_uses_redirect_limit(self) -> None:
        """A session created by the sender gets the configured redirect limit."""
        sender = HttpSender(settings=HttpSettings(max_redirects=3))
        assert sender.session.max_redirects == 3

    def test_supplied_session_left_untouched(self) -> None:
        """A caller's session keeps its own redirect limit."""
        session = requests.Session()
        session.max_redirects = 7
        sender = HttpSender(session=session, settings=HttpSettings(max_redirects=3))
        assert sender.session is session
        assert session.max_redirects == 7
