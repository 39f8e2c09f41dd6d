from __future__ import annotations

import anyio
import pytest

from ddbwire.dynamodb.client import AttributeUpdate, Expected, TableKeys
from ddbwire.dynamodb.errors import DdbDecodeError, DdbEncodeError


def _run(coro_fn, *args, **kwargs):
    async def _inner():
        return await coro_fn(*args, **kwargs)

    return anyio.run(_inner)


def test_get_item_encodes_key_and_decodes_item(make_client):
    client, server = make_client(
        [
            (
                200,
                {
                    "Item": {"id": {"S": "u1"}, "age": {"N": "42"}, "tags": {"SS": ["a"]}},
                    "ConsumedCapacity": {"TableName": "users", "CapacityUnits": 0.5},
                },
            )
        ]
    )

    res = _run(client.get_item, "users", {"id": "u1"}, attributes_to_get=["id", "age", "tags"], consistent_read=True)

    assert res.item == {"id": "u1", "age": 42, "tags": ["a"]}
    assert res.consumed_capacity == 0.5
    assert client.consumed_capacity == 0.5
    assert server.targets() == ["DynamoDB_20120810.GetItem"]
    assert server.payloads()[0] == {
        "TableName": "users",
        "Key": {"id": {"S": "u1"}},
        "AttributesToGet": ["id", "age", "tags"],
        "ConsistentRead": True,
        "ReturnConsumedCapacity": "TOTAL",
    }


def test_get_item_missing_returns_none(make_client):
    client, _ = make_client([(200, {"ConsumedCapacity": {"CapacityUnits": 0.5}})])

    res = _run(client.get_item, "users", {"id": "nope"})

    assert res.item is None


def test_get_item_omits_unset_options(make_client):
    client, server = make_client([(200, {})])

    _run(client.get_item, "users", {"id": "u1"})

    assert server.payloads()[0] == {
        "TableName": "users",
        "Key": {"id": {"S": "u1"}},
        "ReturnConsumedCapacity": "TOTAL",
    }


def test_put_item_with_expected_and_return_values(make_client):
    client, server = make_client([(200, {"Attributes": {"id": {"S": "u1"}, "v": {"N": "1"}}})])

    res = _run(
        client.put_item,
        "users",
        {"id": "u1", "v": 2, "meta": {"src": "import"}},
        expected={"v": Expected(value=1), "gone": Expected(exists=False)},
        return_values="ALL_OLD",
    )

    assert res.item == {"id": "u1", "v": 1}
    assert server.payloads()[0] == {
        "TableName": "users",
        "Item": {"id": {"S": "u1"}, "v": {"N": "2"}, "meta": {"M": {"src": {"S": "import"}}}},
        "Expected": {"v": {"Value": {"N": "1"}}, "gone": {"Exists": False}},
        "ReturnValues": "ALL_OLD",
        "ReturnConsumedCapacity": "TOTAL",
    }


def test_put_item_encode_error_sends_nothing(make_client):
    client, server = make_client([(200, {})])

    with pytest.raises(DdbEncodeError):
        _run(client.put_item, "users", {"id": "u1", "bad": object()})
    assert server.requests == []


def test_decode_error_in_response_surfaces(make_client):
    client, _ = make_client([(200, {"Item": {"id": {"X": "?"}}})])

    with pytest.raises(DdbDecodeError) as ei:
        _run(client.get_item, "users", {"id": "u1"})
    assert ei.value.attribute == "id"


def test_delete_item_with_condition_expression(make_client):
    client, server = make_client([(200, {})])

    _run(
        client.delete_item,
        "users",
        {"id": "u1"},
        condition_expression="#s = :s",
        expression_attribute_names={"#s": "status"},
        expression_attribute_values={":s": "inactive"},
    )

    payload = server.payloads()[0]
    assert payload["ConditionExpression"] == "#s = :s"
    assert payload["ExpressionAttributeNames"] == {"#s": "status"}
    assert payload["ExpressionAttributeValues"] == {":s": {"S": "inactive"}}


def test_update_item_with_expression_and_attribute_updates(make_client):
    client, server = make_client([(200, {"Attributes": {"n": {"N": "5"}}})])

    res = _run(
        client.update_item,
        "counters",
        {"id": "c1"},
        update_expression="SET n = n + :one",
        expression_attribute_values={":one": 1},
        return_values="UPDATED_NEW",
    )
    assert res.item == {"n": 5}
    assert server.payloads()[0]["UpdateExpression"] == "SET n = n + :one"
    assert server.payloads()[0]["ExpressionAttributeValues"] == {":one": {"N": "1"}}

    client2, server2 = make_client([(200, {})])
    _run(
        client2.update_item,
        "counters",
        {"id": "c1"},
        attribute_updates={"n": AttributeUpdate("ADD", 2), "old": AttributeUpdate("DELETE")},
    )
    assert server2.payloads()[0]["AttributeUpdates"] == {
        "n": {"Action": "ADD", "Value": {"N": "2"}},
        "old": {"Action": "DELETE"},
    }


def test_query_builds_conditions_and_decodes_page(make_client):
    client, server = make_client(
        [
            (
                200,
                {
                    "Count": 1,
                    "ScannedCount": 3,
                    "Items": [{"id": {"S": "u1"}, "ts": {"N": "10"}}],
                    "LastEvaluatedKey": {"id": {"S": "u1"}, "ts": {"N": "10"}},
                    "ConsumedCapacity": {"CapacityUnits": 1},
                },
            )
        ]
    )

    res = _run(
        client.query,
        "events",
        {"id": ("eq", "u1"), "ts": ("between", [1, 20])},
        query_filter={"kind": ("in", ["a", "b"]), "err": ("null", None)},
        limit=10,
        scan_index_forward=False,
        index_name="by-ts",
        exclusive_start_key={"id": "u0", "ts": 1},
    )

    assert res.count == 1
    assert res.scanned_count == 3
    assert res.items == [{"id": "u1", "ts": 10}]
    assert res.last_evaluated_key == {"id": "u1", "ts": 10}
    assert res.consumed_capacity == 1

    payload = server.payloads()[0]
    assert payload["KeyConditions"] == {
        "id": {"ComparisonOperator": "EQ", "AttributeValueList": [{"S": "u1"}]},
        "ts": {"ComparisonOperator": "BETWEEN", "AttributeValueList": [{"N": "1"}, {"N": "20"}]},
    }
    assert payload["QueryFilter"] == {
        "kind": {"ComparisonOperator": "IN", "AttributeValueList": [{"S": "a"}, {"S": "b"}]},
        "err": {"ComparisonOperator": "NULL", "AttributeValueList": []},
    }
    assert payload["ScanIndexForward"] is False
    assert payload["Limit"] == 10
    assert payload["IndexName"] == "by-ts"
    assert payload["ExclusiveStartKey"] == {"id": {"S": "u0"}, "ts": {"N": "1"}}


def test_query_count_is_dropped_when_attributes_requested(make_client):
    client, server = make_client([(200, {"Count": 0})])

    _run(client.query, "events", {"id": ("EQ", "u1")}, count=True, attributes_to_get=["id"])

    payload = server.payloads()[0]
    assert "Select" not in payload
    assert "ScanIndexForward" not in payload


def test_scan_with_filter(make_client):
    client, server = make_client([(200, {"Count": 0, "ScannedCount": 0, "Items": []})])

    res = _run(client.scan, "users", scan_filter={"age": ("gt", 30), "nick": ("not_null", None)}, count=True)

    assert res.items == []
    assert res.last_evaluated_key is None
    payload = server.payloads()[0]
    assert payload["ScanFilter"] == {
        "age": {"ComparisonOperator": "GT", "AttributeValueList": [{"N": "30"}]},
        "nick": {"ComparisonOperator": "NOT_NULL", "AttributeValueList": []},
    }
    assert payload["Select"] == "COUNT"


def test_batch_get_item(make_client):
    client, server = make_client(
        [
            (
                200,
                {
                    "Responses": {"users": [{"id": {"S": "u1"}}], "orgs": [{"id": {"S": "o1"}, "n": {"N": "2"}}]},
                    "UnprocessedKeys": {"users": {"Keys": [{"id": {"S": "u2"}}]}},
                    "ConsumedCapacity": [
                        {"TableName": "users", "CapacityUnits": 1},
                        {"TableName": "orgs", "CapacityUnits": 0.5},
                    ],
                },
            )
        ]
    )

    res = _run(
        client.batch_get_item,
        {
            "users": TableKeys(keys=[{"id": "u1"}, {"id": "u2"}], consistent_read=True),
            "orgs": TableKeys(keys=[{"id": "o1"}], attributes_to_get=["id", "n"]),
        },
    )

    assert res.responses == {"users": [{"id": "u1"}], "orgs": [{"id": "o1", "n": 2}]}
    assert res.unprocessed_keys == {"users": {"Keys": [{"id": {"S": "u2"}}]}}
    assert res.consumed_capacity == 1.5
    assert client.consumed_capacity == 1.5
    assert server.payloads()[0]["RequestItems"] == {
        "users": {"Keys": [{"id": {"S": "u1"}}, {"id": {"S": "u2"}}], "ConsistentRead": True},
        "orgs": {"Keys": [{"id": {"S": "o1"}}], "AttributesToGet": ["id", "n"]},
    }


def test_batch_write_surfaces_unprocessed_items_unchanged(make_client):
    unprocessed = {"T": [{"PutRequest": {"Item": {"id": {"S": "b"}}}}]}
    client, server = make_client(
        [
            (
                200,
                {
                    "UnprocessedItems": unprocessed,
                    "ConsumedCapacity": [{"TableName": "T", "CapacityUnits": 2}],
                },
            )
        ]
    )

    res = _run(client.batch_write_item, puts={"T": [{"id": "a"}, {"id": "b"}]}, deletes={"T": {"id": "c"}})

    assert res.unprocessed_items == unprocessed
    assert res.consumed_capacity == 2
    # Unprocessed entries are handed back, never re-sent.
    assert len(server.requests) == 1
    assert server.payloads()[0]["RequestItems"] == {
        "T": [
            {"PutRequest": {"Item": {"id": {"S": "a"}}}},
            {"PutRequest": {"Item": {"id": {"S": "b"}}}},
            {"DeleteRequest": {"Key": {"id": {"S": "c"}}}},
        ]
    }


def test_create_table_builds_key_schema(make_client):
    client, server = make_client([(200, {"TableDescription": {"TableName": "T", "TableStatus": "CREATING"}})])

    desc = _run(
        client.create_table,
        "T",
        key_schema={"hash": ("id", client.schema_types["string"]), "range": ("ts", client.schema_types["number"])},
        provisioned_throughput={"read": 5, "write": 1},
    )

    assert desc["TableStatus"] == "CREATING"
    assert server.payloads()[0] == {
        "TableName": "T",
        "AttributeDefinitions": [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "ts", "AttributeType": "N"},
        ],
        "KeySchema": [
            {"AttributeName": "id", "KeyType": "HASH"},
            {"AttributeName": "ts", "KeyType": "RANGE"},
        ],
        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 1},
        "ReturnConsumedCapacity": "TOTAL",
    }


def test_table_admin_operations(make_client):
    client, server = make_client(
        [
            (200, {"TableNames": ["A", "B"], "LastEvaluatedTableName": "B"}),
            (200, {"Table": {"TableName": "A", "ItemCount": 3}}),
            (200, {"TableDescription": {"TableName": "A", "TableStatus": "UPDATING"}}),
            (200, {"TableDescription": {"TableName": "A", "TableStatus": "DELETING"}}),
        ]
    )

    async def _all():
        listed = await client.list_tables(limit=2, exclusive_start_table_name="0")
        described = await client.describe_table("A")
        updated = await client.update_table("A", provisioned_throughput={"read": 10})
        deleted = await client.delete_table("A")
        return listed, described, updated, deleted

    listed, described, updated, deleted = anyio.run(_all)

    assert listed["TableNames"] == ["A", "B"]
    assert described["ItemCount"] == 3
    assert updated["TableStatus"] == "UPDATING"
    assert deleted["TableStatus"] == "DELETING"
    assert server.targets() == [
        "DynamoDB_20120810.ListTables",
        "DynamoDB_20120810.DescribeTable",
        "DynamoDB_20120810.UpdateTable",
        "DynamoDB_20120810.DeleteTable",
    ]
    payloads = server.payloads()
    assert payloads[0]["Limit"] == 2
    assert payloads[0]["ExclusiveStartTableName"] == "0"
    assert payloads[2]["ProvisionedThroughput"] == {"ReadCapacityUnits": 10}
