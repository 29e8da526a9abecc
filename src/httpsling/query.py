"""Query structure encoding and deterministic query merging.

Query structures are encoded into ordered ``(key, value)`` pairs. Supported
inputs are mappings, pydantic models, dataclasses and any object exposing
``to_query()``. Dataclass fields may carry ``metadata={"query": "name,omitempty"}``
to rename a key or drop empty values, or ``metadata={"query": "-"}`` to skip
the field entirely.

Examples
--------
>>> from dataclasses import dataclass, field
>>> @dataclass
... class Params:
...     q: str
...     page: int | None = field(default=None, metadata={"query": "p,omitempty"})
>>> encode_query_struct(Params(q="shoes"))
[('q', 'shoes')]
"""

from __future__ import annotations

import dataclasses
import enum
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel

from httpsling.errors import QueryEncodeError

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["encode_query_struct", "merge_query"]


def _format_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return _format_scalar(value.value)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, (str, int, float)):
        return str(value)
    msg = f"unsupported query value type: {type(value).__name__}"
    raise QueryEncodeError(msg)


def _is_empty(value: object) -> bool:
    return value is None or value is False or value == 0 or (
        isinstance(value, (str, bytes, Sequence, Mapping)) and len(value) == 0
    )


def _expand(key: str, value: object) -> Iterable[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [(key, _format_scalar(item)) for item in value]
    return [(key, _format_scalar(value))]


def _dataclass_pairs(value: object) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for field in dataclasses.fields(value):  # type: ignore[arg-type]
        tag = str(field.metadata.get("query", ""))
        if tag == "-":
            continue
        name, _, options = tag.partition(",")
        item = getattr(value, field.name)
        if "omitempty" in options.split(",") and _is_empty(item):
            continue
        pairs.extend(_expand(name or field.name, item))
    return pairs


def encode_query_struct(value: object) -> list[tuple[str, str]]:
    """Encode a query structure into ordered key/value pairs.

    Parameters
    ----------
    value : object
        Mapping, pydantic model, dataclass instance, or object with ``to_query()``.

    Returns
    -------
    list[tuple[str, str]]
        Encoded pairs in field order; sequences expand to repeated keys.

    Raises
    ------
    QueryEncodeError
        If the structure or one of its values cannot be encoded.
    """
    try:
        if isinstance(value, BaseModel):
            items: Iterable[tuple[str, object]] = value.model_dump(
                mode="json", by_alias=True, exclude_none=True
            ).items()
        elif dataclasses.is_dataclass(value) and not isinstance(value, type):
            return _dataclass_pairs(value)
        elif isinstance(value, Mapping):
            items = value.items()
        elif callable(getattr(value, "to_query", None)):
            return [(str(k), _format_scalar(v)) for k, v in value.to_query()]  # type: ignore[attr-defined]
        else:
            msg = f"cannot encode {type(value).__name__} as a query structure"
            raise QueryEncodeError(msg)
        pairs: list[tuple[str, str]] = []
        for key, item in items:
            pairs.extend(_expand(str(key), item))
    except QueryEncodeError:
        raise
    except Exception as exc:
        msg = f"failed to encode query structure {type(value).__name__}: {exc}"
        raise QueryEncodeError(msg, cause=exc) from exc
    return pairs


def merge_query(
    raw_query: str,
    structs: Sequence[object],
    params: Mapping[str, str],
) -> str:
    """Merge every query source into one key-sorted query string.

    The existing ``raw_query`` is parsed first, then each structure in
    attachment order, then the flat ``params``. Values accumulate per key, so a
    later source never drops an earlier one.

    Parameters
    ----------
    raw_query : str
        Query already present on the URL.
    structs : Sequence[object]
        Query structures in attachment order.
    params : Mapping[str, str]
        Flat parameters applied last.

    Returns
    -------
    str
        URL-encoded query string sorted by key.

    Raises
    ------
    QueryEncodeError
        If a structure fails to encode.
    """
    values: dict[str, list[str]] = {}
    for key, value in parse_qsl(raw_query, keep_blank_values=True):
        values.setdefault(key, []).append(value)
    for struct in structs:
        for key, value in encode_query_struct(struct):
            values.setdefault(key, []).append(value)
    for key, value in params.items():
        values.setdefault(key, []).append(value)
    return urlencode(sorted(values.items()), doseq=True)
