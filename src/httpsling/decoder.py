"""Response decoders and success/failure decode dispatch.

Decode targets are a tagged variant resolved once at the call site:

- :class:`Discard` ignores the body.
- :class:`RawCapture` stores the body bytes verbatim.
- :class:`Typed` asks the configured :class:`~httpsling.types.ResponseDecoder`
  to decode the body into ``Typed.model`` and stores the result on ``Typed.value``.

Examples
--------
>>> from httpsling.decoder import JsonDecoder, Typed, dispatch, Discard
>>> target = Typed(dict[str, int])
>>> dispatch(True, b'{"x": 1}', target, Discard(), JsonDecoder())
>>> target.value
{'x': 1}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, TypeAlias

from google.protobuf import json_format
from google.protobuf.message import Message
from pydantic import TypeAdapter, ValidationError

from httpsling.errors import DecodeError
from httpsling.logging import get_logger

if TYPE_CHECKING:
    from httpsling.types import ResponseDecoder

__all__ = [
    "DISCARD",
    "Discard",
    "JsonDecoder",
    "ProtoJsonDecoder",
    "RawCapture",
    "Target",
    "Typed",
    "as_target",
    "dispatch",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class Discard:
    """Target that ignores the body."""


@dataclass
class RawCapture:
    """Target receiving the body bytes unmodified."""

    data: bytes = b""


@dataclass
class Typed:
    """Target decoded through the configured response decoder.

    Attributes
    ----------
    model : object | None
        Type (or, for protobuf, message instance) to decode into. None keeps
        whatever the decoder parses.
    value : object | None
        Decoded result, set by the decoder.
    """

    model: object | None = None
    value: object | None = field(default=None, init=False)


Target: TypeAlias = Discard | RawCapture | Typed

DISCARD: Final = Discard()


def as_target(value: Target | None) -> Target:
    """Resolve a caller-supplied target, mapping None to :data:`DISCARD`.

    Raises
    ------
    TypeError
        If ``value`` is not a target.
    """
    if value is None:
        return DISCARD
    if isinstance(value, (Discard, RawCapture, Typed)):
        return value
    msg = f"decode target must be Discard, RawCapture or Typed, not {type(value).__name__}"
    raise TypeError(msg)


class JsonDecoder:
    """Decoder parsing JSON and validating it into ``Typed.model`` with pydantic."""

    def decode(self, content: bytes, target: Typed) -> None:
        """Decode a JSON body into ``target``.

        Parameters
        ----------
        content : bytes
            Buffered response body.
        target : Typed
            Target whose ``model`` drives validation.

        Raises
        ------
        DecodeError
            If the body is not valid JSON or does not validate against the model.
        """
        try:
            data = json.loads(content)
        except ValueError as exc:
            msg = f"invalid JSON response body: {exc}"
            raise DecodeError(msg, cause=exc) from exc
        if target.model is None:
            target.value = data
            return
        try:
            target.value = _adapter_for(target.model).validate_python(data)
        except ValidationError as exc:
            msg = f"response body does not match {target.model!r}: {exc}"
            raise DecodeError(msg, cause=exc) from exc


def _adapter_for(model: object) -> TypeAdapter[object]:
    return TypeAdapter(model)  # type: ignore[arg-type]


class ProtoJsonDecoder:
    """Decoder for protocol buffer messages in their canonical JSON mapping.

    ``Typed.model`` must be a :class:`google.protobuf.message.Message` subclass
    or instance; anything else is a programming error and raises TypeError.
    """

    def __init__(self, *, ignore_unknown_fields: bool = False) -> None:
        self.ignore_unknown_fields = ignore_unknown_fields

    def decode(self, content: bytes, target: Typed) -> None:
        """Decode a protobuf JSON body into ``target``.

        Raises
        ------
        TypeError
            If ``target.model`` is not a protobuf message type or instance.
        DecodeError
            If the body cannot be parsed into the message.
        """
        model = target.model
        if isinstance(model, type) and issubclass(model, Message):
            message = model()
        elif isinstance(model, Message):
            message = model
        else:
            msg = f"ProtoJsonDecoder requires a protobuf Message target, got {model!r}"
            raise TypeError(msg)
        try:
            json_format.Parse(content, message, ignore_unknown_fields=self.ignore_unknown_fields)
        except json_format.ParseError as exc:
            msg = f"invalid protobuf JSON response body: {exc}"
            raise DecodeError(msg, cause=exc) from exc
        target.value = message


def _apply(target: Target, content: bytes, decoder: ResponseDecoder) -> None:
    if isinstance(target, Discard):
        return
    if isinstance(target, RawCapture):
        target.data = bytes(content)
        return
    decoder.decode(content, target)


def dispatch(
    is_success: bool,
    content: bytes,
    success: Target,
    failure: Target,
    decoder: ResponseDecoder,
) -> None:
    """Route ``content`` to the success or failure target.

    Parameters
    ----------
    is_success : bool
        Classification from the success decider.
    content : bytes
        Buffered response body.
    success : Target
        Target used when ``is_success`` is True.
    failure : Target
        Target used otherwise.
    decoder : ResponseDecoder
        Decoder for :class:`Typed` targets.

    Raises
    ------
    DecodeError
        Propagated from the decoder.
    """
    target = success if is_success else failure
    logger.debug(
        "Dispatching response body",
        extra={
            "operation": "http.decode",
            "outcome": "success" if is_success else "failure",
            "target": type(target).__name__,
            "size_bytes": len(content),
        },
    )
    _apply(target, content, decoder)
