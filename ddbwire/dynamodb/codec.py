"""Typed value codec.

Converts native Python values to DynamoDB AttributeValue shape
(`{"S": "..."}`, `{"N": "1"}`, ...) and back.

List classification is a single forward scan where the strongest kind seen
wins: a nested map or list makes the whole list `L`, otherwise any string
makes it `SS`, otherwise it is `NS`. Numbers inside an `SS` list are
stringified without changing the tag. Existing tables depend on this exact
output, so it must not be "fixed".
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from .errors import DdbDecodeError, DdbEncodeError

SCHEMA_TYPES: dict[str, str] = {
    "number": "N",
    "string": "S",
    "number_array": "NS",
    "string_array": "SS",
}

_NUMS = (int, float, Decimal)

# Ordered by precedence; a list is tagged with the highest rank it reaches.
_LIST_RANK = {"NS": 0, "SS": 1, "L": 2}


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMS) and not isinstance(value, bool)


def _number_to_str(value: int | float | Decimal) -> str:
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise DdbEncodeError(message=f"Non Compatible Field [non-finite number]: {value!r}", value=value)
        return str(value)
    if not math.isfinite(value):
        raise DdbEncodeError(message=f"Non Compatible Field [non-finite number]: {value!r}", value=value)
    # 1.0 -> "1" so that decoded numbers re-encode to the same string.
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _list_to_wire(values: list[Any] | tuple[Any, ...]) -> dict[str, Any]:
    tag = "NS"
    for v in values:
        if isinstance(v, (dict, list, tuple)):
            seen = "L"
        elif isinstance(v, str):
            seen = "SS"
        else:
            seen = "NS"
        if _LIST_RANK[seen] > _LIST_RANK[tag]:
            tag = seen

    if tag == "L":
        return {"L": [to_wire(v) for v in values]}

    out: list[str] = []
    for v in values:
        if isinstance(v, str):
            out.append(v)
        elif _is_number(v):
            out.append(_number_to_str(v))
        else:
            raise DdbEncodeError(
                message=f"Non Compatible Field [not string|number in {tag} list]: {v!r}",
                value=v,
            )
    return {tag: out}


def map_to_wire(obj: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in obj.items():
        if not isinstance(k, str):
            raise DdbEncodeError(message=f"Non Compatible Field [map key is not a string]: {k!r}", value=k)
        out[k] = to_wire(v)
    return out


def to_wire(value: Any) -> dict[str, Any]:
    """Encode one native value as a wire value.

    Raises DdbEncodeError on the first value that has no wire representation.
    """
    if isinstance(value, bool):
        return {"BOOL": value}
    if _is_number(value):
        return {"N": _number_to_str(value)}
    if isinstance(value, str):
        return {"S": value}
    if value is None:
        return {"NULL": True}
    if isinstance(value, dict):
        return {"M": map_to_wire(value)}
    if isinstance(value, (list, tuple)):
        return _list_to_wire(value)
    raise DdbEncodeError(
        message=f"Non Compatible Field [not string|number|bool|null|list|map]: {value!r}",
        value=value,
    )


def item_to_wire(item: Any) -> Any:
    """Encode a native document (dict) attribute by attribute.

    Non-dict input is returned as is.
    """
    if not isinstance(item, dict):
        return item
    return map_to_wire(item)


def _parse_number(raw: Any, attribute: str | None) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise DdbDecodeError(
            message=f"Non Compatible Field [malformed number {raw!r}]: {attribute}",
            attribute=attribute,
            cause=e,
        ) from e


def _payload(wire: dict[str, Any], tag: str, expected: type, attribute: str | None) -> Any:
    value = wire[tag]
    if not isinstance(value, expected):
        raise DdbDecodeError(
            message=f"Non Compatible Field [{tag} payload is not a {expected.__name__}]: {attribute}",
            attribute=attribute,
        )
    return value


def from_wire(wire: Any, *, attribute: str | None = None) -> Any:
    """Decode one wire value. Tags are tested by presence, not truthiness."""
    if isinstance(wire, dict):
        if "S" in wire:
            return wire["S"]
        if "SS" in wire:
            return list(_payload(wire, "SS", list, attribute))
        if "N" in wire:
            return _parse_number(wire["N"], attribute)
        if "NS" in wire:
            return [_parse_number(n, attribute) for n in _payload(wire, "NS", list, attribute)]
        if "BOOL" in wire:
            return wire["BOOL"]
        if "NULL" in wire:
            return None
        if "M" in wire:
            return item_from_wire(_payload(wire, "M", dict, attribute))
        if "L" in wire:
            return [from_wire(v, attribute=attribute) for v in _payload(wire, "L", list, attribute)]
    raise DdbDecodeError(
        message=f'Non Compatible Field [not "S"|"N"|"NS"|"SS"|"BOOL"|"NULL"|"M"|"L"]: {attribute}',
        attribute=attribute,
    )


def item_from_wire(doc: Any) -> Any:
    """Decode a wire document into a dict.

    None (e.g. GetItem on a missing key) and other non-dict input pass through.
    """
    if not isinstance(doc, dict):
        return doc
    return {k: from_wire(v, attribute=k) for k, v in doc.items()}


def items_from_wire(docs: list[Any]) -> list[Any]:
    # In place: callers hand over the list parsed from the response body.
    for i, doc in enumerate(docs):
        docs[i] = item_from_wire(doc)
    return docs
