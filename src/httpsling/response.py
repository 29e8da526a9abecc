"""Response envelope and the default success classification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import requests
    from requests.structures import CaseInsensitiveDict

__all__ = ["Response", "decode_on_success"]


@dataclass(frozen=True)
class Response:
    """Transport metadata bundled with the fully buffered body.

    Built for every send, including failed ones, in which case ``raw`` may be
    None and ``content`` empty.

    Attributes
    ----------
    raw : requests.Response | None
        Response metadata from the transport. Its body stream is already closed;
        read the bytes from ``content``.
    content : bytes
        Body bytes drained from the transport.
    """

    raw: requests.Response | None
    content: bytes = b""

    @property
    def status_code(self) -> int | None:
        return None if self.raw is None else self.raw.status_code

    @property
    def headers(self) -> CaseInsensitiveDict[str] | dict[str, str]:
        return {} if self.raw is None else self.raw.headers

    @property
    def url(self) -> str | None:
        return None if self.raw is None else self.raw.url

    @property
    def content_length(self) -> int | None:
        """Declared ``Content-Length``, or None when absent or unparsable."""
        value = self.headers.get("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def text(self) -> str:
        encoding = (self.raw.encoding if self.raw is not None else None) or "utf-8"
        return self.content.decode(encoding, errors="replace")


def decode_on_success(response: Response) -> bool:
    """Return True for 2xx responses."""
    status = response.status_code
    return status is not None and 200 <= status <= 299
