"""
DynamoDB persistence layer.

Writes are described as Put / Update operations and compiled into DynamoDB
expressions, so the same operation can run as a single conditional write or
as one leg of a TransactWriteItems call. Conditional failures surface as
ConditionFailed carrying the indexes of the operations whose condition did
not hold.
"""
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import boto3
from boto3.dynamodb.conditions import Key, Attr
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import config
from .logging import logger

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)

# DynamoDB limit on actions in one TransactWriteItems call
MAX_TRANSACTION_ITEMS = 100

_serializer = TypeSerializer()


@dataclass
class Condition:
    """Conjunction of guards evaluated against the stored item."""
    equals: Dict[str, Any] = field(default_factory=dict)
    exists: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    not_in_set: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Put:
    table: str
    item: Dict[str, Any]
    # Attribute that must not already exist, i.e. put-if-absent on the key
    unique_key: Optional[str] = None


@dataclass
class Update:
    table: str
    key: Dict[str, Any]
    set_fields: Dict[str, Any] = field(default_factory=dict)
    increments: Dict[str, int] = field(default_factory=dict)
    set_additions: Dict[str, str] = field(default_factory=dict)
    map_entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    map_removals: Dict[str, List[str]] = field(default_factory=dict)
    condition: Condition = field(default_factory=Condition)


Operation = Union[Put, Update]


class ConditionFailed(Exception):
    """One or more operations failed their condition; nothing was written."""

    def __init__(self, indexes: List[int]):
        self.indexes = list(indexes)
        super().__init__(f"Condition check failed for operation(s) {self.indexes}")

    def failed(self, index: int) -> bool:
        return index in self.indexes


class TransactionConflict(Exception):
    """Transaction cancelled for a reason other than a failed condition."""


def backoff_sleep(attempt: int, base_delay: Optional[float] = None, max_delay: Optional[float] = None) -> None:
    """Exponential backoff with jitter between transaction retries."""
    base_delay = config.TRANSACTION_RETRY_BASE_DELAY if base_delay is None else base_delay
    max_delay = config.TRANSACTION_RETRY_MAX_DELAY if max_delay is None else max_delay
    delay = min(base_delay * 2 ** (attempt - 1), max_delay)
    time.sleep(delay * random.uniform(0.5, 1.5))


class _Placeholders:
    """Collects expression attribute names and values for one request."""

    def __init__(self):
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    def name(self, attr: str) -> str:
        for placeholder, existing in self.names.items():
            if existing == attr:
                return placeholder
        placeholder = f'#n{len(self.names)}'
        self.names[placeholder] = attr
        return placeholder

    def value(self, value: Any) -> str:
        placeholder = f':v{len(self.values)}'
        self.values[placeholder] = value
        return placeholder


def build_condition(condition: Condition, ph: _Placeholders) -> Optional[str]:
    parts = []
    for attr, value in condition.equals.items():
        parts.append(f'{ph.name(attr)} = {ph.value(value)}')
    for attr in condition.exists:
        parts.append(f'attribute_exists({ph.name(attr)})')
    for attr in condition.missing:
        parts.append(f'attribute_not_exists({ph.name(attr)})')
    for attr, value in condition.not_in_set.items():
        parts.append(f'NOT contains({ph.name(attr)}, {ph.value(value)})')
    return ' AND '.join(parts) or None


def build_update_params(op: Update) -> Dict[str, Any]:
    """Compile an Update into UpdateItem keyword arguments."""
    ph = _Placeholders()

    set_parts = [f'{ph.name(attr)} = {ph.value(value)}' for attr, value in op.set_fields.items()]
    for attr, entries in op.map_entries.items():
        for key, value in entries.items():
            set_parts.append(f'{ph.name(attr)}.{ph.name(key)} = {ph.value(value)}')

    add_parts = [f'{ph.name(attr)} {ph.value(amount)}' for attr, amount in op.increments.items()]
    add_parts += [f'{ph.name(attr)} {ph.value({element})}' for attr, element in op.set_additions.items()]

    remove_parts = [
        f'{ph.name(attr)}.{ph.name(key)}'
        for attr, keys in op.map_removals.items()
        for key in keys
    ]

    clauses = []
    if set_parts:
        clauses.append('SET ' + ', '.join(set_parts))
    if add_parts:
        clauses.append('ADD ' + ', '.join(add_parts))
    if remove_parts:
        clauses.append('REMOVE ' + ', '.join(remove_parts))
    if not clauses:
        raise ValueError(f"Update on {op.table} {op.key} has nothing to write")

    params = {
        'Key': op.key,
        'UpdateExpression': ' '.join(clauses),
    }
    condition = build_condition(op.condition, ph)
    if condition:
        params['ConditionExpression'] = condition
    params['ExpressionAttributeNames'] = ph.names
    if ph.values:
        params['ExpressionAttributeValues'] = ph.values
    return params


def build_put_params(op: Put) -> Dict[str, Any]:
    params = {'Item': op.item}
    if op.unique_key:
        params['ConditionExpression'] = 'attribute_not_exists(#pk)'
        params['ExpressionAttributeNames'] = {'#pk': op.unique_key}
    return params


def _serialize(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in values.items()}


def build_transact_item(op: Operation) -> Dict[str, Any]:
    """Compile an operation into one low-level TransactItems entry."""
    if isinstance(op, Put):
        params = build_put_params(op)
        params['Item'] = _serialize(params['Item'])
        params['TableName'] = op.table
        return {'Put': params}

    params = build_update_params(op)
    params['Key'] = _serialize(params['Key'])
    if 'ExpressionAttributeValues' in params:
        params['ExpressionAttributeValues'] = _serialize(params['ExpressionAttributeValues'])
    params['TableName'] = op.table
    return {'Update': params}


def _translate_client_error(error: ClientError):
    code = error.response['Error']['Code']
    if code == 'ConditionalCheckFailedException':
        raise ConditionFailed([0]) from error
    if code == 'TransactionCanceledException':
        # Cancellation reasons correspond to the TransactItems list order
        reasons = error.response.get('CancellationReasons', [])
        failed = [i for i, reason in enumerate(reasons) if reason.get('Code') == 'ConditionalCheckFailed']
        if failed:
            raise ConditionFailed(failed) from error
        raise TransactionConflict(str(error)) from error
    raise error


class DynamoStore:
    """Document get/put/update, atomic transactions and GSI queries."""

    def __init__(self, resource=None):
        self.resource = resource or dynamodb

    def table(self, table_name: str):
        return self.resource.Table(table_name)

    def get(self, table_name: str, key: Dict[str, Any], consistent: bool = False) -> Optional[Dict[str, Any]]:
        """Get a single item, or None when it does not exist."""
        response = self.table(table_name).get_item(Key=key, ConsistentRead=consistent)
        return response.get('Item')

    def put(self, op: Put) -> None:
        try:
            self.table(op.table).put_item(**build_put_params(op))
        except ClientError as e:
            _translate_client_error(e)

    def update(self, op: Update) -> Dict[str, Any]:
        """Apply a single conditional update and return the item as written."""
        params = build_update_params(op)
        params['ReturnValues'] = 'ALL_NEW'
        try:
            response = self.table(op.table).update_item(**params)
        except ClientError as e:
            _translate_client_error(e)
        return response.get('Attributes', {})

    def transact(self, ops: List[Operation]) -> None:
        """Commit all operations or none of them."""
        if not ops:
            return
        if len(ops) > MAX_TRANSACTION_ITEMS:
            raise ValueError(f"Transaction of {len(ops)} items exceeds {MAX_TRANSACTION_ITEMS}")

        try:
            self.resource.meta.client.transact_write_items(
                TransactItems=[build_transact_item(op) for op in ops]
            )
        except ClientError as e:
            logger.warning(f"Transaction of {len(ops)} items cancelled: {e}")
            _translate_client_error(e)

    def query(
        self,
        table_name: str,
        index_name: str,
        key_name: str,
        key_value: Any,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        scan_forward: bool = True
    ) -> List[Dict[str, Any]]:
        """
        Query a GSI by its partition key.

        Args:
            table_name: Name of the DynamoDB table
            index_name: GSI name
            key_name: Partition key attribute of the index
            key_value: Partition key value
            filters: Optional attribute equality filters
            limit: Max items to return
            scan_forward: True for ascending, False for descending

        Returns:
            List of items matching the query
        """
        table = self.table(table_name)

        query_params = {
            'IndexName': index_name,
            'KeyConditionExpression': Key(key_name).eq(key_value),
            'ScanIndexForward': scan_forward
        }
        if filters:
            filter_expression = None
            for attr, value in filters.items():
                clause = Attr(attr).eq(value)
                filter_expression = clause if filter_expression is None else filter_expression & clause
            query_params['FilterExpression'] = filter_expression

        items: List[Dict[str, Any]] = []
        while True:
            response = table.query(**query_params)
            items.extend(response.get('Items', []))
            if limit and len(items) >= limit:
                return items[:limit]
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            query_params['ExclusiveStartKey'] = last_key
