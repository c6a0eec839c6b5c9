"""
Project authoring and the cached listing of files open for claiming.
"""
import uuid
from typing import Any, Callable, Dict, List, Optional

from .cache import ListingCache
from .config import config
from .dynamo import MAX_TRANSACTION_ITEMS, ConditionFailed, DynamoStore, Put, TransactionConflict
from .errors import ConflictError, ForbiddenError, ValidationError
from .logging import logger
from .models import FileStatus, Role, StorageType, TranslatableFile, UserStatistics, utc_now
from .utils import count_words

# One transaction holds the project item plus its files
MAX_FILES_PER_PROJECT = MAX_TRANSACTION_ITEMS - 1


def available_files_cache_key(project_id: str) -> str:
    return f'available-files:{project_id}'


def _file_summary(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'fileId': item['fileId'],
        'projectId': item.get('projectId'),
        'fileName': item.get('fileName', ''),
        'wordCount': item.get('wordCount', 0),
        'storageType': item.get('storageType', StorageType.INLINE),
        'createdAt': item.get('createdAt'),
    }


class ProjectService:

    def __init__(
        self,
        store: Optional[DynamoStore] = None,
        cache: Optional[ListingCache] = None,
        projects_table: Optional[str] = None,
        files_table: Optional[str] = None,
        profiles_table: Optional[str] = None,
        clock: Callable = utc_now
    ):
        self.store = store or DynamoStore()
        self.cache = cache
        self.projects_table = projects_table or config.PROJECTS_TABLE
        self.files_table = files_table or config.FILES_TABLE
        self.profiles_table = profiles_table or config.PROFILES_TABLE
        self.clock = clock

    def create_project(
        self,
        author_id: str,
        title: str,
        description: str = '',
        categories: Optional[List[str]] = None,
        files: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Create a project and all of its files in one atomic write.

        Each file entry needs a fileName and either originalText (kept inline)
        or contentUrl (external storage, counted on acceptance).
        """
        author = self.store.get(self.profiles_table, {'userId': author_id})
        if not author or UserStatistics.from_item(author).role not in Role.REVIEWERS:
            raise ForbiddenError('Only moderators can create projects')

        if not title or not str(title).strip():
            raise ValidationError('Project title is required')
        if not files:
            raise ValidationError('No files provided')
        if len(files) > MAX_FILES_PER_PROJECT:
            raise ValidationError(f'A project can hold at most {MAX_FILES_PER_PROJECT} files')
        if categories is not None and not isinstance(categories, list):
            raise ValidationError('categories must be a list')

        project_id = str(uuid.uuid4())
        timestamp = self.clock().isoformat()
        translatable = [self._build_file(project_id, entry, timestamp) for entry in files]

        project_item = {
            'projectId': project_id,
            'title': str(title).strip(),
            'description': description or '',
            'categories': categories or [],
            'files': [f.file_id for f in translatable],
            'createdBy': author_id,
            'createdAt': timestamp,
            'updatedAt': timestamp
        }

        ops = [Put(table=self.projects_table, item=project_item, unique_key='projectId')]
        ops += [Put(table=self.files_table, item=f.to_item(), unique_key='fileId') for f in translatable]

        try:
            self.store.transact(ops)
        except (ConditionFailed, TransactionConflict) as e:
            raise ConflictError(f"Could not create project {project_id}: {e}")

        if self.cache:
            self.cache.delete(available_files_cache_key(project_id))

        logger.info(f"Created project {project_id} with {len(translatable)} files")
        return {**project_item, 'fileItems': [_file_summary(f.to_item()) for f in translatable]}

    @staticmethod
    def _build_file(project_id: str, entry: Dict[str, Any], timestamp: str) -> TranslatableFile:
        if not isinstance(entry, dict) or not entry.get('fileName'):
            raise ValidationError('Every file needs a fileName')

        original_text = entry.get('originalText') or ''
        content_url = entry.get('contentUrl')
        if not original_text and not content_url:
            raise ValidationError(f"File {entry['fileName']} needs originalText or contentUrl")

        word_count = entry.get('wordCount')
        if word_count is None:
            word_count = count_words(original_text)
        elif isinstance(word_count, bool) or not isinstance(word_count, int) or word_count < 0:
            raise ValidationError(f"File {entry['fileName']} has an invalid wordCount")

        return TranslatableFile(
            file_id=str(uuid.uuid4()),
            project_id=project_id,
            file_name=entry['fileName'],
            status=FileStatus.NOT_STARTED,
            word_count=word_count,
            original_text=original_text,
            storage_type=StorageType.INLINE if original_text else StorageType.EXTERNAL,
            content_url=content_url,
            created_at=timestamp,
            updated_at=timestamp
        )

    def list_available_files(self, project_id: str) -> List[Dict[str, Any]]:
        """Files of a project still open for claiming, memoized in the listing cache."""
        if not project_id:
            raise ValidationError('Missing projectId')

        def load():
            items = self.store.query(
                self.files_table, 'ProjectIndex', 'projectId', project_id,
                filters={'status': FileStatus.NOT_STARTED}
            )
            return [_file_summary(item) for item in items]

        if not self.cache:
            return load()
        return self.cache.get_or_load(
            available_files_cache_key(project_id), config.AVAILABLE_FILES_CACHE_TTL, load
        )
