"""
Utility wrapper for storing user records in DynamoDB.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr

from app.core.config import AWSSettings


class DynamoDBClient:
    """Key-value operations mirroring :class:`SQLiteStore` on a DynamoDB table."""

    def __init__(self, settings: AWSSettings, *, table: Any | None = None) -> None:
        self._settings = settings
        if table is None:
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table."""
        self._table.put_item(Item=item)

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        """Retrieve an item using its key."""
        response = self._table.get_item(Key={"pk": partition_key, "sk": sort_key})
        return response.get("Item")

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})

    def list_partition_keys(self, *, sort_key: str) -> list[str]:
        """Scan the table for every partition key stored under ``sort_key``."""
        keys: list[str] = []
        scan_kwargs: Dict[str, Any] = {
            "FilterExpression": Attr("sk").eq(sort_key),
            "ProjectionExpression": "pk",
        }
        while True:
            response = self._table.scan(**scan_kwargs)
            keys.extend(item["pk"] for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            scan_kwargs["ExclusiveStartKey"] = last_key
        return keys


__all__ = ["DynamoDBClient"]
