"""Request body providers.

A body provider yields the bytes (or a readable stream) sent as the request
body together with the content type announced in the ``Content-Type`` header.
Encoding happens lazily when the request is materialized, so marshal failures
surface from ``Sling.request()`` rather than from the chained setter.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from typing import IO, Final
from urllib.parse import urlencode

from pydantic import BaseModel

from httpsling.errors import BodyEncodeError, QueryEncodeError
from httpsling.query import encode_query_struct

__all__ = [
    "FORM_CONTENT_TYPE",
    "JSON_CONTENT_TYPE",
    "FormBodyProvider",
    "JsonBodyProvider",
    "RawBodyProvider",
]

JSON_CONTENT_TYPE: Final = "application/json"
FORM_CONTENT_TYPE: Final = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class RawBodyProvider:
    """Provider sending caller-supplied bytes, text or a readable stream as-is.

    The content type is empty, so an existing ``Content-Type`` header is kept.
    Streams are drained once on construction, so every request built from the
    provider, and every retry of it, carries the same bytes.
    """

    data: bytes | str | IO[bytes]

    def __post_init__(self) -> None:
        if isinstance(self.data, (bytes, str)):
            return
        if isinstance(self.data, (bytearray, memoryview)):
            object.__setattr__(self, "data", bytes(self.data))
            return
        content = self.data.read()
        if isinstance(content, str):
            content = content.encode("utf-8")
        object.__setattr__(self, "data", bytes(content))

    @property
    def content_type(self) -> str:
        return ""

    def body(self) -> bytes:
        if isinstance(self.data, str):
            return self.data.encode("utf-8")
        return self.data  # type: ignore[return-value]


def _to_jsonable(payload: object) -> object:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        return dataclasses.asdict(payload)
    return payload


@dataclass(frozen=True)
class JsonBodyProvider:
    """Provider encoding its payload as compact JSON.

    Attributes
    ----------
    payload : object
        JSON-compatible value, pydantic model, or dataclass instance.
    """

    payload: object

    @property
    def content_type(self) -> str:
        return JSON_CONTENT_TYPE

    def body(self) -> bytes:
        """Encode the payload.

        Returns
        -------
        bytes
            UTF-8 JSON with no insignificant whitespace.

        Raises
        ------
        BodyEncodeError
            If the payload is not JSON serializable.
        """
        try:
            return json.dumps(_to_jsonable(self.payload), separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            msg = f"failed to encode JSON body: {exc}"
            raise BodyEncodeError(msg, cause=exc) from exc


@dataclass(frozen=True)
class FormBodyProvider:
    """Provider URL-encoding its payload with the query structure encoder."""

    payload: object

    @property
    def content_type(self) -> str:
        return FORM_CONTENT_TYPE

    def body(self) -> bytes:
        """Encode the payload as ``application/x-www-form-urlencoded``.

        Raises
        ------
        BodyEncodeError
            If the payload cannot be encoded.
        """
        try:
            pairs = encode_query_struct(self.payload)
        except QueryEncodeError as exc:
            msg = f"failed to encode form body: {exc}"
            raise BodyEncodeError(msg, cause=exc) from exc
        return urlencode(sorted(pairs, key=lambda pair: pair[0])).encode("ascii")
