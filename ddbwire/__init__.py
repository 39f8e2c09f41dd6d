"""Asyncio client for DynamoDB's JSON wire protocol."""

from __future__ import annotations

from .dynamodb.client import (
    AttributeUpdate,
    BatchGetResult,
    BatchWriteResult,
    DdbClient,
    Expected,
    ItemResult,
    QueryResult,
    TableKeys,
    get_client,
)
from .dynamodb.codec import SCHEMA_TYPES, from_wire, item_from_wire, item_to_wire, items_from_wire, to_wire
from .dynamodb.engine import Failure, Outcome, RequestEngine, Success
from .dynamodb.errors import (
    DdbConflict,
    DdbDecodeError,
    DdbEncodeError,
    DdbError,
    DdbNotFound,
    DdbParseError,
    DdbServiceError,
    DdbSigningError,
    DdbThrottled,
    DdbTransportError,
    DdbUnavailable,
    DdbValidation,
)
from .dynamodb.retry import RetryPolicy
from .dynamodb.table import DynamoTable, Page
from .settings import DdbSettings, get_settings

__all__ = [
    "AttributeUpdate",
    "BatchGetResult",
    "BatchWriteResult",
    "DdbClient",
    "DdbConflict",
    "DdbDecodeError",
    "DdbEncodeError",
    "DdbError",
    "DdbNotFound",
    "DdbParseError",
    "DdbServiceError",
    "DdbSettings",
    "DdbSigningError",
    "DdbThrottled",
    "DdbTransportError",
    "DdbUnavailable",
    "DdbValidation",
    "DynamoTable",
    "Expected",
    "Failure",
    "ItemResult",
    "Outcome",
    "Page",
    "QueryResult",
    "RequestEngine",
    "RetryPolicy",
    "SCHEMA_TYPES",
    "Success",
    "TableKeys",
    "from_wire",
    "get_client",
    "get_settings",
    "item_from_wire",
    "item_to_wire",
    "items_from_wire",
    "to_wire",
]
