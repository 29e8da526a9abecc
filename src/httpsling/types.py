"""Capability protocols for the request pipeline.

These protocols describe the pluggable seams of the pipeline: senders, retry
policies, backoff strategies, response decoders, success deciders and body
providers. Any object or callable with a matching shape can be plugged in.
"""

from __future__ import annotations

from enum import Enum
from typing import IO, TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from httpsling.decoder import Typed
    from httpsling.response import Response
    from httpsling.sender import OutgoingRequest, SendResult

__all__ = [
    "BackoffStrategy",
    "BodyProvider",
    "ResponseDecoder",
    "RetryDecision",
    "RetryPolicy",
    "Sender",
    "SuccessDecider",
]


class RetryDecision(Enum):
    """Outcome of a retry policy evaluation."""

    RETRY = "retry"
    TERMINAL = "terminal"


@runtime_checkable
class Sender(Protocol):
    """Protocol for anything that executes one request and buffers the response."""

    def send(self, request: OutgoingRequest) -> SendResult:
        """Execute ``request`` and return the fully drained outcome.

        Parameters
        ----------
        request : OutgoingRequest
            Materialized request with its deadline.

        Returns
        -------
        SendResult
            Response metadata, body bytes and transport error (if any).
            Transport failures are reported through ``SendResult.error``
            rather than raised.
        """
        ...


class RetryPolicy(Protocol):
    """Pure function classifying a send outcome as retryable or terminal."""

    def __call__(self, result: SendResult) -> RetryDecision: ...


class BackoffStrategy(Protocol):
    """Pure function computing the wait (seconds) before retry ``attempt``.

    ``attempt`` counts from 0 for the wait preceding the first retry.
    """

    def __call__(self, attempt: int, min_wait: float, max_wait: float) -> float: ...


class SuccessDecider(Protocol):
    """Predicate classifying a response as success or failure for decode routing."""

    def __call__(self, response: Response) -> bool: ...


@runtime_checkable
class ResponseDecoder(Protocol):
    """Protocol for converting buffered response bytes into a typed value."""

    def decode(self, content: bytes, target: Typed) -> None:
        """Decode ``content`` and store the result on ``target.value``.

        Raises
        ------
        DecodeError
            If the bytes cannot be decoded into the target's model.
        """
        ...


@runtime_checkable
class BodyProvider(Protocol):
    """Protocol for request body sources."""

    @property
    def content_type(self) -> str:
        """Content type to send, or an empty string to leave the header alone."""
        ...

    def body(self) -> bytes | IO[bytes]:
        """Return the encoded body.

        A returned stream is read to the end when the request is built.

        Raises
        ------
        BodyEncodeError
            If the payload cannot be marshalled.
        """
        ...
