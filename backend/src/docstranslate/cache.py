"""
Best-effort key/value cache backed by a DynamoDB table with a TTL attribute.

The cache never raises: an unconfigured or failing cache behaves as a miss,
and callers fall back to a direct read.
"""
import json
import time
from typing import Any, Callable, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .dynamo import dynamodb
from .logging import logger
from .utils import DecimalEncoder


class ListingCache:
    """Memoizes read-heavy listings; entries expire through `expiresAt`."""

    def __init__(self, table_name: Optional[str] = None, resource=None, clock: Callable[[], float] = time.time):
        self.table_name = config.CACHE_TABLE if table_name is None else table_name
        self.resource = resource or dynamodb
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return bool(self.table_name)

    def _table(self):
        return self.resource.Table(self.table_name)

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            item = self._table().get_item(Key={'cacheKey': key}).get('Item')
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Cache GET failed for {key}: {e}")
            return None

        # DynamoDB TTL deletion is lazy, so expired items can still be returned
        if not item or int(item.get('expiresAt', 0)) <= int(self.clock()):
            return None
        try:
            return json.loads(item['value'])
        except (KeyError, TypeError, ValueError):
            return None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        if not self.enabled:
            return False
        try:
            self._table().put_item(Item={
                'cacheKey': key,
                'value': json.dumps(value, cls=DecimalEncoder),
                'expiresAt': int(self.clock()) + ttl
            })
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Cache SET failed for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.enabled:
            return False
        try:
            self._table().delete_item(Key={'cacheKey': key})
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Cache DELETE failed for {key}: {e}")
            return False

    def delete_pattern(self, prefix: str) -> int:
        """Delete every entry whose key starts with `prefix`."""
        if not self.enabled:
            return 0
        deleted = 0
        try:
            table = self._table()
            scan_params = {
                'FilterExpression': Attr('cacheKey').begins_with(prefix),
                'ProjectionExpression': 'cacheKey'
            }
            while True:
                response = table.scan(**scan_params)
                with table.batch_writer() as batch:
                    for item in response.get('Items', []):
                        batch.delete_item(Key={'cacheKey': item['cacheKey']})
                        deleted += 1
                if 'LastEvaluatedKey' not in response:
                    break
                scan_params['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Cache DELETE PATTERN failed for {prefix}: {e}")
        return deleted

    def get_or_load(self, key: str, ttl: int, loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value, ttl)
        return value
