from __future__ import annotations

import base64
import json
from typing import Any

from .errors import DdbValidation


_TOKEN_VERSION = 1


def encode_next_token(last_evaluated_key: dict[str, Any] | None) -> str | None:
    if not last_evaluated_key:
        return None

    payload = {"v": _TOKEN_VERSION, "lek": last_evaluated_key}
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_next_token(next_token: str | None) -> dict[str, Any] | None:
    if not next_token:
        return None

    padded = next_token + "=" * (-len(next_token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(raw)
    except ValueError as e:
        raise DdbValidation(message="Invalid nextToken", cause=e) from e

    if not isinstance(payload, dict):
        raise DdbValidation(message="Invalid nextToken")

    if payload.get("v") != _TOKEN_VERSION:
        raise DdbValidation(message="Invalid nextToken")

    lek = payload.get("lek")
    if lek is None:
        return None
    if not isinstance(lek, dict):
        raise DdbValidation(message="Invalid nextToken")

    return lek
