"""Byte sender: one physical HTTP attempt with a fully buffered body.

HttpSender executes exactly one request over a :class:`requests.Session`,
reads the body to completion and closes the response before returning, so the
connection can be reused and downstream stages can inspect the bytes freely.
It never retries and never classifies; transport failures are reported as
values on :class:`SendResult`.
"""

from __future__ import annotations

import ssl
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

import requests

from httpsling.deadline import Deadline
from httpsling.errors import (
    ConnectionFailedError,
    HttpSlingError,
    InvalidSchemeError,
    TlsCertificateError,
    TlsError,
    TooManyRedirectsError,
    TransportError,
    TransportTimeoutError,
)
from httpsling.logging import get_logger
from httpsling.settings import HttpSettings

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ["HttpSender", "OutgoingRequest", "SendResult", "default_sender"]

logger = get_logger(__name__)

_SCHEME_ERRORS = (
    requests.exceptions.InvalidSchema,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidURL,
)


@dataclass(frozen=True)
class OutgoingRequest:
    """A materialized request paired with its deadline.

    Attributes
    ----------
    prepared : requests.PreparedRequest
        Request ready for the transport.
    deadline : Deadline
        Cancellation/timeout token governing every attempt.
    """

    prepared: requests.PreparedRequest
    deadline: Deadline

    @property
    def method(self) -> str | None:
        return self.prepared.method

    @property
    def url(self) -> str | None:
        return self.prepared.url

    @property
    def headers(self) -> Mapping[str, str]:
        return self.prepared.headers

    @property
    def body(self) -> bytes | str | None:
        return self.prepared.body  # type: ignore[return-value]


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send: metadata, drained bytes and transport error.

    ``response`` may be None when the transport failed before any response
    arrived. ``content`` is always the complete body read so far.
    """

    response: requests.Response | None
    content: bytes = b""
    error: HttpSlingError | None = None

    @property
    def status_code(self) -> int | None:
        return None if self.response is None else self.response.status_code


def _is_certificate_failure(exc: BaseException) -> bool:
    seen: set[int] = set()
    pending: list[object] = [exc]
    while pending:
        current = pending.pop()
        if not isinstance(current, BaseException) or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, ssl.SSLCertVerificationError):
            return True
        pending.extend([current.__cause__, current.__context__, *current.args])
    return "CERTIFICATE_VERIFY_FAILED" in str(exc)


def _classify(exc: requests.RequestException, deadline: Deadline) -> HttpSlingError:
    """Map a requests exception onto the transport error hierarchy."""
    message = str(exc) or type(exc).__name__
    if isinstance(exc, requests.TooManyRedirects):
        return TooManyRedirectsError(message, cause=exc)
    if isinstance(exc, _SCHEME_ERRORS):
        return InvalidSchemeError(message, cause=exc)
    if isinstance(exc, requests.exceptions.SSLError):
        if _is_certificate_failure(exc):
            return TlsCertificateError(message, cause=exc)
        return TlsError(message, cause=exc)
    if isinstance(exc, requests.Timeout):
        if deadline.done:
            cancelled = deadline.error()
            cancelled.cause = exc
            return cancelled
        return TransportTimeoutError(message, cause=exc)
    if isinstance(exc, requests.ConnectionError):
        return ConnectionFailedError(message, cause=exc)
    return TransportError(message, cause=exc)


class HttpSender:
    """Sender executing one attempt over a requests session.

    Parameters
    ----------
    session : requests.Session | None, optional
        Session to send through. A caller-supplied session is used as-is,
        including its own ``max_redirects``. Defaults to None, which creates a
        session limited to ``settings.max_redirects``.
    settings : HttpSettings | None, optional
        Timeouts, and the redirect limit for a created session. Defaults to
        ``HttpSettings()``.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        settings: HttpSettings | None = None,
    ) -> None:
        self.settings = settings or HttpSettings()
        if session is None:
            session = requests.Session()
            session.max_redirects = self.settings.max_redirects
        self.session = session

    def _timeout(self, deadline: Deadline) -> tuple[float, float]:
        connect = self.settings.connect_timeout_s
        read = self.settings.read_timeout_s
        remaining = deadline.remaining()
        if remaining is None:
            return connect, read
        remaining = max(remaining, 0.001)
        return min(connect, remaining), min(read, remaining)

    def send(self, request: OutgoingRequest) -> SendResult:
        """Send ``request`` once and drain its body.

        Parameters
        ----------
        request : OutgoingRequest
            Materialized request.

        Returns
        -------
        SendResult
            Response metadata and body, or the mapped transport error. When the
            body read fails part-way the response metadata is still returned.
        """
        deadline = request.deadline
        if deadline.done:
            return SendResult(response=None, error=deadline.error())
        started = time.monotonic()
        try:
            response = self.session.send(
                request.prepared,
                timeout=self._timeout(deadline),
                stream=True,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            error = _classify(exc, deadline)
            logger.debug(
                "HTTP send failed",
                extra={
                    "operation": "http.send",
                    "status": "error",
                    "method": request.method,
                    "url": request.url,
                    "error_type": type(error).__name__,
                },
            )
            return SendResult(response=None, error=error)

        try:
            content = response.content
        except requests.RequestException as exc:
            return SendResult(response=response, error=_classify(exc, deadline))
        finally:
            response.close()

        logger.debug(
            "HTTP send completed",
            extra={
                "operation": "http.send",
                "method": request.method,
                "url": request.url,
                "status_code": response.status_code,
                "size_bytes": len(content),
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
            },
        )
        return SendResult(response=response, content=content)


@lru_cache(maxsize=1)
def default_sender() -> HttpSender:
    """Return the process-wide default sender, created on first use.

    Builders fall back to it only when no sender is given explicitly.
    """
    return HttpSender()

