"""
User profiles: creation on first authentication and role management.

Contribution counters are written only by the statistics ledger.
"""
from typing import Callable, Optional

from .config import config
from .dynamo import Condition, ConditionFailed, DynamoStore, Put, Update
from .errors import ForbiddenError, NotFoundError, ValidationError
from .logging import logger
from .models import Role, UserStatistics, utc_now


class ProfileService:

    def __init__(self, store: Optional[DynamoStore] = None, table_name: Optional[str] = None,
                 clock: Callable = utc_now):
        self.store = store or DynamoStore()
        self.table_name = table_name or config.PROFILES_TABLE
        self.clock = clock

    def get(self, user_id: str) -> Optional[UserStatistics]:
        item = self.store.get(self.table_name, {'userId': user_id})
        return UserStatistics.from_item(item) if item else None

    def require(self, user_id: str) -> UserStatistics:
        profile = self.get(user_id)
        if not profile:
            raise NotFoundError(f"User profile {user_id} not found")
        return profile

    def initialize_profile(self, user_id: str, name: str = '', email: str = '') -> UserStatistics:
        """
        Create a profile with zeroed counters. Only creates if not exists.

        Args:
            user_id: The authenticated user's ID
            name: Display name
            email: Contact email

        Returns:
            The new profile, or the existing one when it was already there
        """
        timestamp = self.clock().isoformat()
        item = {
            'userId': user_id,
            'name': name or '',
            'email': email or '',
            'role': Role.CONTRIBUTOR,
            'isModerator': False,
            'totalWordsTranslated': 0,
            'approvedTranslations': 0,
            'rejectedTranslations': 0,
            'certificatesEarned': 0,
            'contributedFiles': {},
            'currentFiles': {},
            'createdAt': timestamp,
            'updatedAt': timestamp
        }
        try:
            self.store.put(Put(table=self.table_name, item=item, unique_key='userId'))
            logger.info(f"Created new user profile for {user_id}")
            return UserStatistics.from_item(item)
        except ConditionFailed:
            logger.info(f"User profile already exists for {user_id}")
            return self.require(user_id)

    def current_file_update(self, user_id: str, file_id: str, file_label: str) -> Update:
        """Record a claimed file in the translator's current-files view."""
        return Update(
            table=self.table_name,
            key={'userId': user_id},
            set_fields={'updatedAt': self.clock().isoformat()},
            map_entries={'currentFiles': {file_id: file_label or 'Unknown File'}},
            condition=Condition(exists=['userId'])
        )

    def promote_user(self, admin_id: str, target_user_id: str, role: str) -> UserStatistics:
        """Change a user's role. Only administrators may do this."""
        if role not in Role.ALL:
            raise ValidationError(f"Role must be one of {', '.join(Role.ALL)}")

        admin = self.get(admin_id)
        if not admin or admin.role != Role.ADMINISTRATOR:
            raise ForbiddenError('Only administrators can change user roles')

        try:
            attributes = self.store.update(Update(
                table=self.table_name,
                key={'userId': target_user_id},
                set_fields={
                    'role': role,
                    'isModerator': role in Role.REVIEWERS,
                    'updatedAt': self.clock().isoformat()
                },
                condition=Condition(exists=['userId'])
            ))
        except ConditionFailed:
            raise NotFoundError(f"User profile {target_user_id} not found")

        logger.info(f"User {target_user_id} promoted to {role} by {admin_id}")
        return UserStatistics.from_item(attributes)
