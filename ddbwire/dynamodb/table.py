from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .client import AttributeUpdate, DdbClient, Expected, ItemResult
from .errors import DdbNotFound
from .pagination import decode_next_token, encode_next_token


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    next_token: str | None


class DynamoTable:
    def __init__(self, client: DdbClient, *, table_name: str):
        self.table_name = str(table_name)
        self._client = client

    # --- basic operations ---

    async def get_item(self, *, key: dict[str, Any], consistent_read: bool = False) -> dict[str, Any] | None:
        res = await self._client.get_item(self.table_name, key, consistent_read=consistent_read)
        return res.item

    async def get_required(self, *, key: dict[str, Any], message: str = "Item not found") -> dict[str, Any]:
        item = await self.get_item(key=key)
        if not item:
            raise DdbNotFound(message=message, operation="GetItem", table_name=self.table_name, key=key)
        return item

    async def put_item(
        self,
        *,
        item: dict[str, Any],
        expected: Mapping[str, Expected] | None = None,
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> ItemResult:
        return await self._client.put_item(
            self.table_name,
            item,
            expected=expected,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )

    async def delete_item(
        self,
        *,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> ItemResult:
        return await self._client.delete_item(
            self.table_name,
            key,
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
        )

    async def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str | None = None,
        attribute_updates: Mapping[str, AttributeUpdate] | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        res = await self._client.update_item(
            self.table_name,
            key,
            update_expression=update_expression,
            attribute_updates=attribute_updates,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            condition_expression=condition_expression,
            return_values=return_values,
        )
        return res.item

    # --- query/pagination ---

    async def query_page(
        self,
        *,
        key_conditions: Mapping[str, tuple[str, Any]],
        index_name: str | None = None,
        limit: int = 50,
        scan_index_forward: bool = False,
        filter_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
        next_token: str | None = None,
    ) -> Page:
        lim = max(1, min(500, int(limit or 50)))
        lek = decode_next_token(next_token) if next_token else None

        res = await self._client.query(
            self.table_name,
            key_conditions,
            index_name=index_name,
            limit=lim,
            scan_index_forward=bool(scan_index_forward),
            filter_expression=filter_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=expression_attribute_values,
            # Important: only pass ExclusiveStartKey when present.
            exclusive_start_key=lek or None,
        )
        return Page(items=res.items, next_token=encode_next_token(res.last_evaluated_key))

    async def scan_page(
        self,
        *,
        limit: int = 50,
        scan_filter: Mapping[str, tuple[str, Any]] | None = None,
        next_token: str | None = None,
    ) -> Page:
        lim = max(1, min(500, int(limit or 50)))
        lek = decode_next_token(next_token) if next_token else None
        res = await self._client.scan(
            self.table_name,
            scan_filter=scan_filter,
            limit=lim,
            exclusive_start_key=lek or None,
        )
        return Page(items=res.items, next_token=encode_next_token(res.last_evaluated_key))
