from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, ClassVar


@dataclass(slots=True)
class DdbError(Exception):
    """Base error for DynamoDB operations.

    Every failure surfaced by the codec, the engine or the operation builders is
    one of these, so callers can tell throttling from genuine faults and from
    client-side misuse by type or by `kind`.
    """

    kind: ClassVar[str] = "internal"

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class DdbEncodeError(DdbError):
    kind: ClassVar[str] = "encode"

    value: Any = None


@dataclass(slots=True)
class DdbDecodeError(DdbError):
    kind: ClassVar[str] = "decode"

    attribute: str | None = None


@dataclass(slots=True)
class DdbSigningError(DdbError):
    kind: ClassVar[str] = "signing"


@dataclass(slots=True)
class DdbTransportError(DdbError):
    kind: ClassVar[str] = "transport"


@dataclass(slots=True)
class DdbParseError(DdbError):
    kind: ClassVar[str] = "parse"

    status_code: int | None = None
    body: bytes | None = None


@dataclass(slots=True)
class DdbServiceError(DdbError):
    """A response with status >= 300, classified from its `__type`."""

    kind: ClassVar[str] = "service"

    status_code: int = 0
    code: str | None = None
    error_type: str | None = None
    data: dict[str, Any] | None = None


@dataclass(slots=True)
class DdbNotFound(DdbServiceError):
    pass


@dataclass(slots=True)
class DdbConflict(DdbServiceError):
    pass


@dataclass(slots=True)
class DdbValidation(DdbServiceError):
    pass


@dataclass(slots=True)
class DdbThrottled(DdbServiceError):
    pass


@dataclass(slots=True)
class DdbUnavailable(DdbServiceError):
    pass


THROTTLING_CODE = "ProvisionedThroughputExceededException"

_SERVER_FAULT_STATUSES = {500, 503}
_VALIDATION_CODES = {"ValidationException", "SerializationException"}


def error_code_from_type(error_type: str | None) -> str | None:
    # "com.amazonaws.dynamodb.v20120810#ResourceNotFoundException" -> "ResourceNotFoundException"
    if not error_type:
        return None
    return error_type[error_type.rfind("#") + 1 :]


def _status_text(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def classify_service_error(
    *,
    operation: str,
    status_code: int,
    data: dict[str, Any],
    aws_request_id: str | None = None,
) -> DdbServiceError:
    error_type = data.get("__type")
    code = error_code_from_type(error_type)
    detail = data.get("message") or data.get("Message") or error_type or _status_text(status_code)
    fields: dict[str, Any] = {
        "message": f"{operation} [{status_code}]: {detail}" if detail else f"{operation} [{status_code}]",
        "operation": operation,
        "aws_request_id": aws_request_id,
        "status_code": status_code,
        "code": code,
        "error_type": error_type,
        "data": data,
    }

    if status_code in _SERVER_FAULT_STATUSES:
        return DdbUnavailable(retryable=True, **fields)

    if status_code == 400 and code == THROTTLING_CODE:
        return DdbThrottled(retryable=True, **fields)

    if code == "ConditionalCheckFailedException":
        return DdbConflict(**fields)

    if code == "ResourceNotFoundException":
        return DdbNotFound(**fields)

    if code in _VALIDATION_CODES or status_code == 400:
        return DdbValidation(**fields)

    return DdbServiceError(**fields)
