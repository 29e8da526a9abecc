"""HTTP request pipeline exception classes.

This module defines the exception hierarchy for request building, transport failures,
cancellation and response decoding. Errors raised from a send carry the best-effort
response envelope on ``response`` so callers can inspect partial data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from httpsling.response import Response

__all__ = [
    "BodyEncodeError",
    "CancellationError",
    "ConnectionFailedError",
    "DecodeError",
    "HttpSlingError",
    "InvalidSchemeError",
    "QueryEncodeError",
    "SettingsError",
    "TlsCertificateError",
    "TlsError",
    "TooManyRedirectsError",
    "TransportError",
    "TransportTimeoutError",
    "UrlParseError",
]


class HttpSlingError(Exception):
    """Base exception for all request pipeline errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    cause : BaseException | None, optional
        Underlying exception. Defaults to None.

    Notes
    -----
    After initialization, this exception has instance attributes:
    - ``cause``: The underlying exception, if any
    - ``response``: The response envelope attached by the send path (None until attached)
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        """Initialize the exception. See class docstring for full details."""
        super().__init__(message)
        self.cause = cause
        self.response: Response | None = None

    def with_response(self, response: Response) -> HttpSlingError:
        """Attach a response envelope and return self for re-raising.

        Parameters
        ----------
        response : Response
            Envelope built from whatever the transport returned.

        Returns
        -------
        HttpSlingError
            This exception instance.
        """
        self.response = response
        return self


class UrlParseError(HttpSlingError):
    """Exception raised when the base URL or an appended path cannot be parsed."""


class QueryEncodeError(HttpSlingError):
    """Exception raised when a query structure cannot be encoded."""


class BodyEncodeError(HttpSlingError):
    """Exception raised when a body provider fails to marshal its payload."""


class DecodeError(HttpSlingError):
    """Exception raised when a response decoder rejects a success or failure body."""


class CancellationError(HttpSlingError):
    """Exception raised when the request deadline expired or was cancelled."""


class TransportError(HttpSlingError):
    """Exception raised for network level failures.

    Subclasses identify the failure kinds that retry policies classify.
    """


class TooManyRedirectsError(TransportError):
    """Exception raised when the redirect limit is exceeded."""


class InvalidSchemeError(TransportError):
    """Exception raised when the URL scheme is missing or unsupported."""


class TlsError(TransportError):
    """Exception raised when TLS/SSL error occurs."""


class TlsCertificateError(TlsError):
    """Exception raised when the server certificate fails validation."""


class TransportTimeoutError(TransportError):
    """Exception raised when request times out."""


class ConnectionFailedError(TransportError):
    """Exception raised when connection fails."""


class SettingsError(HttpSlingError):
    """Exception raised when runtime settings fail validation."""
