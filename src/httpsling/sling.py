"""Fluent HTTP request builder and sender.

A :class:`Sling` accumulates request intent (method, URL, headers, query, body)
through chained calls that never raise; every builder error is deferred to
:meth:`Sling.request`. Builders are reused by branching: :meth:`Sling.branch`
copies the mutable containers and shares the strategies, so configuring a
branch never affects its parent or siblings.

Examples
--------
>>> from httpsling import Sling, Typed, RawCapture
>>> api = Sling().base("https://api.example.com/v1/").set_bearer_auth("token")
>>> issues = api.branch().get("issues/").query_params({"state": "open"})
>>> issues.request().url
'https://api.example.com/v1/issues/?state=open'
"""

from __future__ import annotations

import base64
from typing import IO, TYPE_CHECKING, Final, Self
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests

from httpsling.body import FormBodyProvider, JsonBodyProvider, RawBodyProvider
from httpsling.deadline import Deadline
from httpsling.decoder import JsonDecoder, as_target, dispatch
from httpsling.errors import HttpSlingError, UrlParseError
from httpsling.headers import Headers
from httpsling.logging import get_logger
from httpsling.query import merge_query
from httpsling.response import Response, decode_on_success
from httpsling.retry import RetryOptions, RetrySender, default_retry_options
from httpsling.sender import OutgoingRequest, default_sender

if TYPE_CHECKING:
    from collections.abc import Mapping

    from httpsling.decoder import Target
    from httpsling.types import BodyProvider, ResponseDecoder, Sender, SuccessDecider

__all__ = ["Sling"]

logger = get_logger(__name__)

CONTENT_TYPE: Final = "Content-Type"
AUTHORIZATION: Final = "Authorization"


def _parse_url(raw_url: str) -> str:
    parts = urlsplit(raw_url)
    # Accessing .port validates the authority section.
    _ = parts.port
    return urlunsplit(parts)


class Sling:
    """HTTP request builder and sender.

    Parameters
    ----------
    sender : Sender | None, optional
        Sender executing requests. Defaults to :func:`~httpsling.sender.default_sender`.

    Notes
    -----
    Chained methods mutate the builder and return it. Use :meth:`branch` before
    specializing a shared builder.
    """

    def __init__(self, sender: Sender | None = None) -> None:
        self._sender: Sender = sender or default_sender()
        self._method = "GET"
        self._raw_url = ""
        self._headers = Headers()
        self._query_structs: list[object] = []
        self._query_params: dict[str, str] = {}
        self._body: BodyProvider | None = None
        self._decoder: ResponseDecoder = JsonDecoder()
        self._is_success: SuccessDecider = decode_on_success
        self._deadline: Deadline | None = None
        self._timeout_s: float | None = None

    def branch(self) -> Sling:
        """Return a copy sharing strategies but owning its headers and query containers.

        The header multimap is deep-copied and the query-struct list and flat
        params are copied; the sender, decoder, success decider and body
        provider are shared by reference. A timeout set with :meth:`timeout`
        is copied as a duration and starts afresh for every request. A token
        attached with :meth:`deadline` is shared, so cancelling it cancels
        every branch that carries it.
        """
        clone = Sling.__new__(Sling)
        clone._sender = self._sender
        clone._method = self._method
        clone._raw_url = self._raw_url
        clone._headers = self._headers.copy()
        clone._query_structs = list(self._query_structs)
        clone._query_params = dict(self._query_params)
        clone._body = self._body
        clone._decoder = self._decoder
        clone._is_success = self._is_success
        clone._deadline = self._deadline
        clone._timeout_s = self._timeout_s
        return clone

    # Sender and cancellation

    def sender(self, sender: Sender | None) -> Self:
        """Set the sender; None restores the default sender."""
        self._sender = sender or default_sender()
        return self

    def auto_retry(self, options: RetryOptions | None = None, **overrides: object) -> Self:
        """Wrap the current sender in a :class:`~httpsling.retry.RetrySender`.

        Parameters
        ----------
        options : RetryOptions | None, optional
            Base options. Defaults to options built from ``HttpSettings``.
        **overrides : object
            ``max_attempts``, ``min_wait``, ``max_wait``, ``policy`` or ``backoff``.

        Returns
        -------
        Self
            This builder.
        """
        resolved = (options or default_retry_options()).with_overrides(**overrides)
        self._sender = RetrySender(self._sender, resolved)
        return self

    def deadline(self, deadline: Deadline | None) -> Self:
        """Attach the cancellation/timeout token used by every send.

        Replaces any timeout set with :meth:`timeout`.
        """
        self._deadline = deadline
        self._timeout_s = None
        return self

    def timeout(self, seconds: float | None) -> Self:
        """Bound each request to ``seconds``, counted from when it is built.

        Replaces any token set with :meth:`deadline`; None removes the bound.
        """
        self._timeout_s = seconds
        self._deadline = None
        return self

    def _request_deadline(self) -> Deadline:
        if self._deadline is not None:
            return self._deadline
        if self._timeout_s is not None:
            return Deadline.after(self._timeout_s)
        return Deadline.never()

    # Method

    def method(self, method: str, path: str = "") -> Self:
        """Set the HTTP method and, when given, resolve ``path`` against the URL."""
        self._method = method.upper()
        return self.path(path) if path else self

    def head(self, path: str = "") -> Self:
        """Set the method to HEAD and resolve ``path``."""
        return self.method("HEAD", path)

    def get(self, path: str = "") -> Self:
        """Set the method to GET and resolve ``path``."""
        return self.method("GET", path)

    def post(self, path: str = "") -> Self:
        """Set the method to POST and resolve ``path``."""
        return self.method("POST", path)

    def put(self, path: str = "") -> Self:
        """Set the method to PUT and resolve ``path``."""
        return self.method("PUT", path)

    def patch(self, path: str = "") -> Self:
        """Set the method to PATCH and resolve ``path``."""
        return self.method("PATCH", path)

    def delete(self, path: str = "") -> Self:
        """Set the method to DELETE and resolve ``path``."""
        return self.method("DELETE", path)

    def options(self, path: str = "") -> Self:
        """Set the method to OPTIONS and resolve ``path``."""
        return self.method("OPTIONS", path)

    def trace(self, path: str = "") -> Self:
        """Set the method to TRACE and resolve ``path``."""
        return self.method("TRACE", path)

    def connect(self, path: str = "") -> Self:
        """Set the method to CONNECT and resolve ``path``."""
        return self.method("CONNECT", path)

    # Headers

    def add_header(self, key: str, value: str) -> Self:
        """Append ``value`` under ``key``, keeping prior values."""
        self._headers.add(key, value)
        return self

    def set_header(self, key: str, value: str) -> Self:
        """Replace every value under ``key``."""
        self._headers.set(key, value)
        return self

    def set_headers(self, headers: Mapping[str, str]) -> Self:
        """Apply :meth:`set_header` for every entry of ``headers``."""
        for key, value in headers.items():
            self._headers.set(key, value)
        return self

    @property
    def headers(self) -> Headers:
        """A copy of the configured headers."""
        return self._headers.copy()

    def set_basic_auth(self, username: str, password: str) -> Self:
        """Set HTTP Basic ``Authorization``; credentials are encoded, not encrypted."""
        token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        return self.set_header(AUTHORIZATION, f"Basic {token}")

    def set_bearer_auth(self, token: str) -> Self:
        """Set ``Authorization`` to ``Bearer <token>``."""
        return self.set_header(AUTHORIZATION, f"Bearer {token}")

    # URL

    def base(self, raw_url: str) -> Self:
        """Set the URL. End it with ``/`` when extending it with :meth:`path`."""
        self._raw_url = raw_url
        return self

    def path(self, path: str) -> Self:
        """Resolve ``path`` against the current URL.

        If either URL fails to parse the URL is left unchanged; the error
        surfaces from :meth:`request`. A trailing slash on ``path`` is kept.
        """
        try:
            _parse_url(self._raw_url)
            _parse_url(path)
        except ValueError:
            return self
        resolved = urljoin(self._raw_url, path)
        if path.endswith("/") and not resolved.endswith("/"):
            resolved += "/"
        self._raw_url = resolved
        return self

    @property
    def url(self) -> str:
        """The current unresolved URL; parse errors surface from :meth:`request`."""
        return self._raw_url

    def query_struct(self, value: object | None) -> Self:
        """Append a query structure, encoded when the request is built."""
        if value is not None:
            self._query_structs.append(value)
        return self

    def query_params(self, params: Mapping[str, str] | None) -> Self:
        """Replace the flat query parameters applied after every structure."""
        if params is not None:
            self._query_params = dict(params)
        return self

    # Body

    def body(self, data: bytes | str | IO[bytes] | None) -> Self:
        """Send ``data`` unchanged as the body."""
        if data is None:
            return self
        return self.body_provider(RawBodyProvider(data))

    def body_provider(self, provider: BodyProvider | None) -> Self:
        """Replace the body provider and set its non-empty content type."""
        if provider is None:
            return self
        self._body = provider
        content_type = provider.content_type
        if content_type:
            self.set_header(CONTENT_TYPE, content_type)
        return self

    def body_json(self, payload: object | None) -> Self:
        """Send ``payload`` as compact JSON (``application/json``)."""
        if payload is None:
            return self
        return self.body_provider(JsonBodyProvider(payload))

    def body_form(self, payload: object | None) -> Self:
        """Send ``payload`` URL-encoded (``application/x-www-form-urlencoded``)."""
        if payload is None:
            return self
        return self.body_provider(FormBodyProvider(payload))

    # Strategies

    def response_decoder(self, decoder: ResponseDecoder | None) -> Self:
        """Set the decoder for :class:`~httpsling.decoder.Typed` targets; None keeps the current one."""
        if decoder is not None:
            self._decoder = decoder
        return self

    def success_decider(self, decider: SuccessDecider | None) -> Self:
        """Set the success classification; None keeps the current one."""
        if decider is not None:
            self._is_success = decider
        return self

    # Requests

    def request(self) -> OutgoingRequest:
        """Materialize the configured request.

        Returns
        -------
        OutgoingRequest
            Prepared request paired with the builder's deadline (or an
            unbounded one).

        Raises
        ------
        UrlParseError
            If the URL cannot be parsed or lacks a scheme and host.
        QueryEncodeError
            If a query structure fails to encode.
        BodyEncodeError
            If the body provider fails to marshal its payload.
        """
        try:
            parts = urlsplit(_parse_url(self._raw_url))
        except ValueError as exc:
            msg = f"invalid URL {self._raw_url!r}: {exc}"
            raise UrlParseError(msg, cause=exc) from exc
        query = merge_query(parts.query, self._query_structs, self._query_params)
        url = urlunsplit(parts._replace(query=query))

        data = self._body.body() if self._body is not None else None
        if data is not None and not isinstance(data, (bytes, str)):
            # Retries resend the prepared request, so the body must be replayable.
            data = data.read()
        try:
            prepared = requests.Request(
                method=self._method,
                url=url,
                headers=self._headers.flatten(),
                data=data,
            ).prepare()
        except (requests.exceptions.MissingSchema, requests.exceptions.InvalidURL) as exc:
            msg = f"invalid URL {url!r}: {exc}"
            raise UrlParseError(msg, cause=exc) from exc
        logger.debug(
            "Materialized request",
            extra={"operation": "http.build", "method": self._method, "url": prepared.url},
        )
        return OutgoingRequest(prepared=prepared, deadline=self._request_deadline())

    def receive_success(self, success: Target | None) -> Response:
        """Send the request, decoding only success responses into ``success``."""
        return self.receive(success, None)

    def receive(self, success: Target | None, failure: Target | None) -> Response:
        """Build, send and decode.

        Parameters
        ----------
        success : Target | None
            Target for responses the success decider accepts.
        failure : Target | None
            Target for every other response.

        Returns
        -------
        Response
            Envelope with the response metadata and buffered bytes.

        Raises
        ------
        HttpSlingError
            Any build, transport, cancellation or decode error; errors raised
            after the send carry the envelope on ``response``.
        """
        success_target = as_target(success)
        failure_target = as_target(failure)
        return self._do(self.request(), success_target, failure_target)

    def do(
        self,
        request: OutgoingRequest | requests.PreparedRequest,
        success: Target | None = None,
        failure: Target | None = None,
    ) -> Response:
        """Send a caller-supplied request and decode it like :meth:`receive`.

        A bare :class:`requests.PreparedRequest` is paired with this builder's
        deadline.
        """
        if isinstance(request, requests.PreparedRequest):
            request = OutgoingRequest(prepared=request, deadline=self._request_deadline())
        return self._do(request, as_target(success), as_target(failure))

    def _do(self, request: OutgoingRequest, success: Target, failure: Target) -> Response:
        result = self._sender.send(request)
        envelope = Response(raw=result.response, content=result.content)
        if result.error is not None:
            raise result.error.with_response(envelope)

        status = envelope.status_code
        if status == 204 or envelope.content_length == 0:
            return envelope

        try:
            dispatch(self._is_success(envelope), result.content, success, failure, self._decoder)
        except HttpSlingError as exc:
            exc.with_response(envelope)
            raise
        return envelope
