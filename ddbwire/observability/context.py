from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_operation: ContextVar[str | None] = ContextVar("ddb_operation", default=None)
_request_id: ContextVar[str | None] = ContextVar("ddb_request_id", default=None)


def get_operation() -> str | None:
    return _operation.get()


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


@contextmanager
def bind_operation(operation: str) -> Iterator[None]:
    """Tag every log line emitted during one logical call with its operation."""
    op_token = _operation.set(operation)
    rid_token = _request_id.set(None)
    try:
        yield
    finally:
        _request_id.reset(rid_token)
        _operation.reset(op_token)
