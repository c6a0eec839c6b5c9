"""
Statistics ledger - the only writer of a translator's contribution counters.

Every mutation is a single conditional UpdateItem using ADD, so concurrent
acceptances for the same translator (different files, different reviewers)
all land without application-level locking. The same mutations are exposed
as operations so the file lifecycle can commit them inside its transition
transaction.
"""
from typing import Callable, Optional

from .config import config
from .dynamo import Condition, ConditionFailed, DynamoStore, Update
from .errors import NotFoundError, ValidationError
from .logging import logger
from .models import UserStatistics, utc_now


class StatisticsLedger:

    def __init__(self, store: Optional[DynamoStore] = None, table_name: Optional[str] = None,
                 clock: Callable = utc_now):
        self.store = store or DynamoStore()
        self.table_name = table_name or config.PROFILES_TABLE
        self.clock = clock

    def acceptance_update(self, user_id: str, file_id: str, word_count: int, file_label: str) -> Update:
        """
        Build the acceptance mutation: credit words, count the approval, and
        move the file from current to contributed files.
        """
        if not isinstance(word_count, int) or isinstance(word_count, bool) or word_count < 0:
            raise ValidationError(f"Word count must be a non-negative integer, got {word_count!r}")

        return Update(
            table=self.table_name,
            key={'userId': user_id},
            set_fields={'updatedAt': self.clock().isoformat()},
            increments={'totalWordsTranslated': word_count, 'approvedTranslations': 1},
            map_entries={'contributedFiles': {file_id: file_label or 'Unknown File'}},
            map_removals={'currentFiles': [file_id]},
            condition=Condition(exists=['userId'])
        )

    def rejection_update(self, user_id: str, file_id: Optional[str] = None) -> Update:
        return Update(
            table=self.table_name,
            key={'userId': user_id},
            set_fields={'updatedAt': self.clock().isoformat()},
            increments={'rejectedTranslations': 1},
            map_removals={'currentFiles': [file_id]} if file_id else {},
            condition=Condition(exists=['userId'])
        )

    def record_acceptance(self, user_id: str, file_id: str, word_count: int,
                          file_label: str = '') -> UserStatistics:
        """Atomically credit an accepted file; returns the post-update snapshot."""
        op = self.acceptance_update(user_id, file_id, word_count, file_label)
        attributes = self._apply(op, user_id)
        logger.info(f"Credited {word_count} words to {user_id} for file {file_id}, "
                    f"total={attributes.get('totalWordsTranslated')}")
        return UserStatistics.from_item(attributes)

    def record_rejection(self, user_id: str, file_id: Optional[str] = None) -> UserStatistics:
        """Atomically count a rejected translation; returns the post-update snapshot."""
        attributes = self._apply(self.rejection_update(user_id, file_id), user_id)
        logger.info(f"Recorded rejection for {user_id}, total={attributes.get('rejectedTranslations')}")
        return UserStatistics.from_item(attributes)

    def get_statistics(self, user_id: str) -> UserStatistics:
        item = self.store.get(self.table_name, {'userId': user_id}, consistent=True)
        if not item:
            raise NotFoundError(f"User profile {user_id} not found")
        return UserStatistics.from_item(item)

    def _apply(self, op: Update, user_id: str) -> dict:
        try:
            return self.store.update(op)
        except ConditionFailed:
            raise NotFoundError(f"User profile {user_id} not found")
