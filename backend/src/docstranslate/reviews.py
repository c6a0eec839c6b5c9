"""
Review task registry.

One review task is created per submit-for-review and resolved exactly once,
mirroring the file's terminal status. Creation and resolution are returned
as operations so they commit in the same transaction as the file transition.
"""
import uuid
from datetime import timedelta
from typing import Callable, List, Optional, Tuple

from .config import config
from .dynamo import Condition, DynamoStore, Put, Update
from .errors import ValidationError
from .models import Decision, ReviewPriority, ReviewStatus, ReviewTask, utc_now

DECISION_TO_REVIEW_STATUS = {
    Decision.ACCEPT: ReviewStatus.APPROVED,
    Decision.REJECT: ReviewStatus.REJECTED,
}


class ReviewTaskRegistry:

    def __init__(self, store: Optional[DynamoStore] = None, table_name: Optional[str] = None,
                 clock: Callable = utc_now):
        self.store = store or DynamoStore()
        self.table_name = table_name or config.REVIEWS_TABLE
        self.clock = clock

    def new_task(self, file_id: str, translator_id: str, category: str = 'general',
                 comments: str = '') -> Tuple[ReviewTask, Put]:
        now = self.clock()
        task = ReviewTask(
            review_id=f'review-{uuid.uuid4()}',
            file_id=file_id,
            translator_id=translator_id,
            status=ReviewStatus.PENDING,
            priority=ReviewPriority.MEDIUM,
            due_date=(now + timedelta(days=config.REVIEW_SLA_DAYS)).isoformat(),
            estimated_review_hours=config.REVIEW_ESTIMATED_HOURS,
            category=category or 'general',
            comments=comments or '',
            created_at=now.isoformat()
        )
        return task, Put(table=self.table_name, item=task.to_item(), unique_key='reviewId')

    def resolution_update(self, review_id: str, decision: str, reviewer_id: str,
                          comments: str = '') -> Update:
        if decision not in DECISION_TO_REVIEW_STATUS:
            raise ValidationError(f"Decision must be one of {', '.join(Decision.ALL)}")

        return Update(
            table=self.table_name,
            key={'reviewId': review_id},
            set_fields={
                'status': DECISION_TO_REVIEW_STATUS[decision],
                'reviewerId': reviewer_id,
                'comments': comments or '',
                'completedAt': self.clock().isoformat()
            },
            condition=Condition(equals={'status': ReviewStatus.PENDING})
        )

    def get(self, review_id: str) -> Optional[ReviewTask]:
        item = self.store.get(self.table_name, {'reviewId': review_id})
        return ReviewTask.from_item(item) if item else None

    def find_for_file(self, file_id: str, status: Optional[str] = None) -> Optional[ReviewTask]:
        filters = {'status': status} if status else None
        items = self.store.query(self.table_name, 'FileIndex', 'fileId', file_id, filters=filters)
        return ReviewTask.from_item(items[0]) if items else None

    def list_by_status(self, status: str = ReviewStatus.PENDING, limit: Optional[int] = None) -> List[ReviewTask]:
        if status not in ReviewStatus.ALL:
            raise ValidationError(f"Review status must be one of {', '.join(ReviewStatus.ALL)}")
        items = self.store.query(self.table_name, 'StatusIndex', 'status', status, limit=limit)
        return [ReviewTask.from_item(item) for item in items]
