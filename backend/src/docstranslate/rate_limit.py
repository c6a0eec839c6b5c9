"""
Fixed-window rate limiting backed by an atomic DynamoDB counter.

The limiter fails open: if the table is unconfigured or unreachable the
request is allowed, so an outage of the limiter never denies service.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .dynamo import dynamodb
from .errors import RateLimitedError
from .logging import logger


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch seconds at which the current window ends


class RateLimiter:

    def __init__(self, table_name: Optional[str] = None, resource=None, clock: Callable[[], float] = time.time):
        self.table_name = config.RATE_LIMIT_TABLE if table_name is None else table_name
        self.resource = resource or dynamodb
        self.clock = clock

    def check(self, identifier: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = int(self.clock())
        window = now // window_seconds
        reset_at = (window + 1) * window_seconds

        if not self.table_name:
            return RateLimitResult(allowed=True, remaining=limit, reset_at=reset_at)

        try:
            response = self.resource.Table(self.table_name).update_item(
                Key={'rateKey': f'{identifier}:{window}'},
                UpdateExpression='ADD hits :one SET expiresAt = if_not_exists(expiresAt, :exp)',
                ExpressionAttributeValues={':one': 1, ':exp': reset_at},
                ReturnValues='UPDATED_NEW'
            )
            current = int(response['Attributes']['hits'])
        except (ClientError, BotoCoreError, KeyError) as e:
            logger.warning(f"Rate limiter unavailable for {identifier}, allowing request: {e}")
            return RateLimitResult(allowed=True, remaining=limit, reset_at=reset_at)

        return RateLimitResult(
            allowed=current <= limit,
            remaining=max(0, limit - current),
            reset_at=reset_at
        )

    def enforce(self, identifier: str, limit: Optional[int] = None, window_seconds: Optional[int] = None) -> RateLimitResult:
        """Check the limit and raise RateLimitedError when the window is exhausted."""
        limit = limit or config.MUTATION_RATE_LIMIT
        window_seconds = window_seconds or config.MUTATION_RATE_WINDOW
        result = self.check(identifier, limit, window_seconds)
        if not result.allowed:
            raise RateLimitedError(f"Rate limit exceeded, retry after {result.reset_at}")
        return result


def check_rate_limit(identifier: str, limit: int, window_seconds: int) -> RateLimitResult:
    return RateLimiter().check(identifier, limit, window_seconds)
