from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping

import httpx

from ..observability.logging import configure_logging
from ..settings import DdbSettings, get_settings
from .codec import SCHEMA_TYPES, item_from_wire, item_to_wire, items_from_wire, to_wire
from .engine import Outcome, RequestEngine, consumed_capacity_units
from .retry import RetryPolicy
from .signer import SigV4Signer, Signer
from .transport import HttpxTransport, Transport


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(frozen=True, slots=True)
class Expected:
    """Conditional put/delete expectation for one attribute."""

    exists: bool | None = None
    value: Any = UNSET


@dataclass(frozen=True, slots=True)
class AttributeUpdate:
    action: str
    value: Any = UNSET


@dataclass(frozen=True, slots=True)
class TableKeys:
    """Keys to read from one table in a BatchGetItem."""

    keys: list[dict[str, Any]]
    attributes_to_get: list[str] | None = None
    consistent_read: bool = False


@dataclass(slots=True)
class ItemResult:
    item: dict[str, Any] | None
    consumed_capacity: float = 0.0


@dataclass(slots=True)
class QueryResult:
    count: int | None
    items: list[dict[str, Any]] = field(default_factory=list)
    last_evaluated_key: dict[str, Any] | None = None
    scanned_count: int | None = None
    consumed_capacity: float = 0.0


@dataclass(slots=True)
class BatchGetResult:
    responses: dict[str, list[dict[str, Any]]]
    unprocessed_keys: dict[str, Any] = field(default_factory=dict)
    consumed_capacity: float = 0.0


@dataclass(slots=True)
class BatchWriteResult:
    # Wire-shaped, ready to be re-submitted by the caller.
    unprocessed_items: dict[str, Any] = field(default_factory=dict)
    consumed_capacity: float = 0.0


_NO_VALUE_OPERATORS = {"NULL", "NOT_NULL"}
_MULTI_VALUE_OPERATORS = {"BETWEEN", "IN"}


def _condition(operator: str, value: Any) -> dict[str, Any]:
    op = str(operator).upper()
    out: dict[str, Any] = {"ComparisonOperator": op, "AttributeValueList": []}
    if op in _NO_VALUE_OPERATORS:
        return out
    if op in _MULTI_VALUE_OPERATORS and isinstance(value, (list, tuple)) and len(value) > 1:
        out["AttributeValueList"] = [to_wire(v) for v in value]
    else:
        out["AttributeValueList"] = [to_wire(value)]
    return out


def _conditions(conditions: Mapping[str, tuple[str, Any]]) -> dict[str, Any]:
    return {attr: _condition(op, value) for attr, (op, value) in conditions.items()}


def _expected(expected: Mapping[str, Expected]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for attr, exp in expected.items():
        entry: dict[str, Any] = {}
        if isinstance(exp.exists, bool):
            entry["Exists"] = exp.exists
        if exp.value is not UNSET:
            entry["Value"] = to_wire(exp.value)
        out[attr] = entry
    return out


def _throughput(provisioned_throughput: Mapping[str, int] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if provisioned_throughput:
        if provisioned_throughput.get("read"):
            out["ReadCapacityUnits"] = provisioned_throughput["read"]
        if provisioned_throughput.get("write"):
            out["WriteCapacityUnits"] = provisioned_throughput["write"]
    return out


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _apply_expressions(
    data: dict[str, Any],
    *,
    condition_expression: str | None = None,
    filter_expression: str | None = None,
    expression_attribute_names: dict[str, str] | None = None,
    expression_attribute_values: dict[str, Any] | None = None,
) -> None:
    if condition_expression:
        data["ConditionExpression"] = condition_expression
    if filter_expression:
        data["FilterExpression"] = filter_expression
    if expression_attribute_values:
        data["ExpressionAttributeValues"] = item_to_wire(expression_attribute_values)
    if expression_attribute_names:
        data["ExpressionAttributeNames"] = expression_attribute_names


def _query_result(res: dict[str, Any]) -> QueryResult:
    items = res.get("Items")
    lek = res.get("LastEvaluatedKey")
    return QueryResult(
        count=res.get("Count"),
        items=items_from_wire(items) if isinstance(items, list) else [],
        last_evaluated_key=item_from_wire(lek) if lek else None,
        scanned_count=res.get("ScannedCount"),
        consumed_capacity=consumed_capacity_units(res),
    )


class DdbClient:
    """Async DynamoDB client.

    Builds each operation's payload with the codec, runs it through the
    `RequestEngine` and decodes typed values in the response. Options left as
    None are omitted from the request.
    """

    def __init__(
        self,
        settings: DdbSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: Transport | None = None,
        signer: Signer | None = None,
        engine: RequestEngine | None = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings
        if engine is None:
            transport = transport or HttpxTransport(
                http_client,
                max_connections=s.max_http_sockets,
                timeout_s=s.http_timeout_s,
            )
            engine = RequestEngine(
                endpoint=s.endpoint,
                base_url=s.base_url(),
                region=s.region,
                credentials=s.credentials(),
                signer=signer or SigV4Signer(),
                transport=transport,
                policy=RetryPolicy(retries=s.retries),
            )
        self.engine = engine

    async def __aenter__(self) -> DdbClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.engine.transport.aclose()

    @property
    def consumed_capacity(self) -> float:
        return self.engine.consumed_capacity

    @property
    def schema_types(self) -> dict[str, str]:
        return dict(SCHEMA_TYPES)

    async def execute(self, operation: str, payload: dict[str, Any]) -> Outcome:
        return await self.engine.execute(operation, payload)

    # --- table administration ---

    async def create_table(
        self,
        table: str,
        *,
        key_schema: Mapping[str, tuple[str, str]],
        provisioned_throughput: Mapping[str, int] | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "TableName": table,
            "AttributeDefinitions": [],
            "KeySchema": [],
            "ProvisionedThroughput": _throughput(provisioned_throughput),
        }
        for role, key_type in (("hash", "HASH"), ("range", "RANGE")):
            spec = key_schema.get(role)
            if spec and len(spec) == 2:
                name, attr_type = spec
                data["AttributeDefinitions"].append({"AttributeName": name, "AttributeType": attr_type})
                data["KeySchema"].append({"AttributeName": name, "KeyType": key_type})
        res = await self.engine.call("CreateTable", data)
        return res.get("TableDescription") or {}

    async def update_table(self, table: str, *, provisioned_throughput: Mapping[str, int]) -> dict[str, Any]:
        data = {"TableName": table, "ProvisionedThroughput": _throughput(provisioned_throughput)}
        res = await self.engine.call("UpdateTable", data)
        return res.get("TableDescription") or {}

    async def delete_table(self, table: str) -> dict[str, Any]:
        res = await self.engine.call("DeleteTable", {"TableName": table})
        return res.get("TableDescription") or {}

    async def describe_table(self, table: str) -> dict[str, Any]:
        res = await self.engine.call("DescribeTable", {"TableName": table})
        return res.get("Table") or {}

    async def list_tables(
        self,
        *,
        limit: int | None = None,
        exclusive_start_table_name: str | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if limit:
            data["Limit"] = limit
        if exclusive_start_table_name:
            data["ExclusiveStartTableName"] = exclusive_start_table_name
        return await self.engine.call("ListTables", data)

    # --- single item operations ---

    async def get_item(
        self,
        table: str,
        key: dict[str, Any],
        *,
        attributes_to_get: list[str] | None = None,
        consistent_read: bool = False,
    ) -> ItemResult:
        data: dict[str, Any] = {"TableName": table, "Key": item_to_wire(key)}
        if attributes_to_get:
            data["AttributesToGet"] = attributes_to_get
        if consistent_read:
            data["ConsistentRead"] = True
        res = await self.engine.call("GetItem", data)
        return ItemResult(item=item_from_wire(res.get("Item")), consumed_capacity=consumed_capacity_units(res))

    async def put_item(
        self,
        table: str,
        item: dict[str, Any],
        *,
        expected: Mapping[str, Expected] | None = None,
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        return_values: str | None = None,
    ) -> ItemResult:
        data: dict[str, Any] = {"TableName": table, "Item": item_to_wire(item)}
        if expected:
            data["Expected"] = _expected(expected)
        _apply_expressions(
            data,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        if return_values:
            data["ReturnValues"] = return_values
        res = await self.engine.call("PutItem", data)
        return ItemResult(item=item_from_wire(res.get("Attributes")), consumed_capacity=consumed_capacity_units(res))

    async def delete_item(
        self,
        table: str,
        key: dict[str, Any],
        *,
        expected: Mapping[str, Expected] | None = None,
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        return_values: str | None = None,
    ) -> ItemResult:
        data: dict[str, Any] = {"TableName": table, "Key": item_to_wire(key)}
        if expected:
            data["Expected"] = _expected(expected)
        _apply_expressions(
            data,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        if return_values:
            data["ReturnValues"] = return_values
        res = await self.engine.call("DeleteItem", data)
        return ItemResult(item=item_from_wire(res.get("Attributes")), consumed_capacity=consumed_capacity_units(res))

    async def update_item(
        self,
        table: str,
        key: dict[str, Any],
        *,
        update_expression: str | None = None,
        condition_expression: str | None = None,
        attribute_updates: Mapping[str, AttributeUpdate] | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        attributes_to_get: list[str] | None = None,
        return_values: str | None = None,
    ) -> ItemResult:
        data: dict[str, Any] = {"TableName": table, "Key": item_to_wire(key)}
        if update_expression:
            data["UpdateExpression"] = update_expression
        if attribute_updates:
            updates: dict[str, Any] = {}
            for attr, upd in attribute_updates.items():
                entry: dict[str, Any] = {"Action": upd.action}
                if upd.value is not UNSET:
                    entry["Value"] = to_wire(upd.value)
                updates[attr] = entry
            data["AttributeUpdates"] = updates
        _apply_expressions(
            data,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        if attributes_to_get:
            data["AttributesToGet"] = attributes_to_get
        if return_values:
            data["ReturnValues"] = return_values
        res = await self.engine.call("UpdateItem", data)
        return ItemResult(item=item_from_wire(res.get("Attributes")), consumed_capacity=consumed_capacity_units(res))

    # --- query / scan ---

    async def query(
        self,
        table: str,
        key_conditions: Mapping[str, tuple[str, Any]],
        *,
        query_filter: Mapping[str, tuple[str, Any]] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        attributes_to_get: list[str] | None = None,
        limit: int | None = None,
        consistent_read: bool = False,
        count: bool = False,
        scan_index_forward: bool | None = None,
        exclusive_start_key: dict[str, Any] | None = None,
        index_name: str | None = None,
    ) -> QueryResult:
        data: dict[str, Any] = {"TableName": table, "KeyConditions": _conditions(key_conditions)}
        if query_filter:
            data["QueryFilter"] = _conditions(query_filter)
        _apply_expressions(
            data,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        if attributes_to_get:
            data["AttributesToGet"] = attributes_to_get
        if limit:
            data["Limit"] = limit
        if consistent_read:
            data["ConsistentRead"] = True
        # Select=COUNT and AttributesToGet are mutually exclusive.
        if count and not attributes_to_get:
            data["Select"] = "COUNT"
        if scan_index_forward is False:
            data["ScanIndexForward"] = False
        if exclusive_start_key:
            data["ExclusiveStartKey"] = item_to_wire(exclusive_start_key)
        if index_name:
            data["IndexName"] = index_name
        res = await self.engine.call("Query", data)
        return _query_result(res)

    async def scan(
        self,
        table: str,
        *,
        scan_filter: Mapping[str, tuple[str, Any]] | None = None,
        filter_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        attributes_to_get: list[str] | None = None,
        limit: int | None = None,
        count: bool = False,
        exclusive_start_key: dict[str, Any] | None = None,
    ) -> QueryResult:
        data: dict[str, Any] = {"TableName": table}
        if attributes_to_get:
            data["AttributesToGet"] = attributes_to_get
        _apply_expressions(
            data,
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )
        if limit:
            data["Limit"] = limit
        if count and not attributes_to_get:
            data["Select"] = "COUNT"
        if exclusive_start_key:
            data["ExclusiveStartKey"] = item_to_wire(exclusive_start_key)
        if scan_filter:
            data["ScanFilter"] = _conditions(scan_filter)
        res = await self.engine.call("Scan", data)
        return _query_result(res)

    # --- batch operations ---

    async def batch_get_item(self, requests: Mapping[str, TableKeys]) -> BatchGetResult:
        request_items: dict[str, Any] = {}
        for table, part in requests.items():
            table_data: dict[str, Any] = {"Keys": [item_to_wire(k) for k in part.keys]}
            if part.attributes_to_get:
                table_data["AttributesToGet"] = part.attributes_to_get
            if part.consistent_read:
                table_data["ConsistentRead"] = True
            request_items[table] = table_data

        res = await self.engine.call("BatchGetItem", {"RequestItems": request_items})
        responses = {
            table: items_from_wire(items if isinstance(items, list) else [])
            for table, items in (res.get("Responses") or {}).items()
        }
        return BatchGetResult(
            responses=responses,
            unprocessed_keys=res.get("UnprocessedKeys") or {},
            consumed_capacity=consumed_capacity_units(res),
        )

    async def batch_write_item(
        self,
        puts: Mapping[str, Any] | None = None,
        deletes: Mapping[str, Any] | None = None,
    ) -> BatchWriteResult:
        """Put and/or delete items across tables.

        `puts` maps a table to an item or a list of items, `deletes` maps a
        table to a key or a list of keys. Anything the service reports as
        unprocessed is returned, not retried.
        """
        request_items: dict[str, list[dict[str, Any]]] = {}
        for table, items in (puts or {}).items():
            for item in _as_list(items):
                request_items.setdefault(table, []).append({"PutRequest": {"Item": item_to_wire(item)}})
        for table, keys in (deletes or {}).items():
            for key in _as_list(keys):
                request_items.setdefault(table, []).append({"DeleteRequest": {"Key": item_to_wire(key)}})

        res = await self.engine.call("BatchWriteItem", {"RequestItems": request_items})
        return BatchWriteResult(
            unprocessed_items=res.get("UnprocessedItems") or {},
            consumed_capacity=consumed_capacity_units(res),
        )


@lru_cache(maxsize=1)
def get_client() -> DdbClient:
    s = get_settings()
    configure_logging(level=s.log_level)
    return DdbClient(s)
