"""
Translatable file lifecycle.

    not-started → in-progress → pending-review → accepted | rejected

Each transition is a single TransactWriteItems call guarded on the file's
current status, so two requests racing on the same file cannot both succeed.
Acceptance credits the translator through the statistics ledger in the same
transaction, then checks for milestone certificates.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .cache import ListingCache
from .certification import CertificationEngine
from .config import config
from .content import ContentUnavailable, fetch_text
from .dynamo import Condition, ConditionFailed, DynamoStore, TransactionConflict, Update, backoff_sleep
from .errors import (
    ConflictError,
    DocsTranslateError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .ledger import StatisticsLedger
from .logging import logger
from .models import (
    Certificate,
    Decision,
    FileStatus,
    ReviewStatus,
    ReviewTask,
    StorageType,
    TranslatableFile,
    UserStatistics,
    utc_now,
)
from .profiles import ProfileService
from .projects import available_files_cache_key
from .reviews import ReviewTaskRegistry
from .utils import count_words

DECISION_TO_FILE_STATUS = {
    Decision.ACCEPT: FileStatus.ACCEPTED,
    Decision.REJECT: FileStatus.REJECTED,
}


@dataclass
class ResolutionResult:
    file: TranslatableFile
    decision: str
    statistics: UserStatistics
    review_task_id: Optional[str] = None
    certificates: List[Certificate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file': self.file.to_item(),
            'action': 'approved' if self.decision == Decision.ACCEPT else 'rejected',
            'reviewTaskId': self.review_task_id,
            'translatorStats': self.statistics.to_dict(),
            'certificatesAwarded': [certificate.to_item() for certificate in self.certificates],
        }


class FileLifecycle:

    def __init__(
        self,
        store: Optional[DynamoStore] = None,
        ledger: Optional[StatisticsLedger] = None,
        certification: Optional[CertificationEngine] = None,
        reviews: Optional[ReviewTaskRegistry] = None,
        profiles: Optional[ProfileService] = None,
        cache: Optional[ListingCache] = None,
        fetch_content: Callable[[str], str] = fetch_text,
        files_table: Optional[str] = None,
        projects_table: Optional[str] = None,
        clock: Callable = utc_now,
        max_attempts: Optional[int] = None,
        backoff: Callable[[int], None] = backoff_sleep
    ):
        self.store = store or DynamoStore()
        self.ledger = ledger or StatisticsLedger(self.store, clock=clock)
        self.certification = certification or CertificationEngine(self.store, clock=clock)
        self.reviews = reviews or ReviewTaskRegistry(self.store, clock=clock)
        self.profiles = profiles or ProfileService(self.store, clock=clock)
        self.cache = cache
        self.fetch_content = fetch_content
        self.files_table = files_table or config.FILES_TABLE
        self.projects_table = projects_table or config.PROJECTS_TABLE
        self.clock = clock
        self.max_attempts = max_attempts or config.TRANSACTION_MAX_ATTEMPTS
        self.backoff = backoff

    def get_file(self, file_id: str) -> TranslatableFile:
        item = self.store.get(self.files_table, {'fileId': file_id}, consistent=True)
        if not item:
            raise NotFoundError(f"File {file_id} not found")
        return TranslatableFile.from_item(item)

    def get_for_user(self, file_id: str, user_id: str) -> TranslatableFile:
        """
        Full file, including original and translated text, for a user with access.

        Access is granted to the assigned translator, the recorded reviewer,
        the author of the owning project, and moderators or administrators
        (who review files still pending).

        Raises:
            NotFoundError: no such file
            ForbiddenError: the user has no access to the file
        """
        file = self.get_file(file_id)
        if user_id in (file.assigned_translator_id, file.reviewer_id):
            return file

        profile = self.profiles.get(user_id)
        if profile and profile.is_reviewer:
            return file

        project = self.store.get(self.projects_table, {'projectId': file.project_id}) if file.project_id else None
        if project and project.get('createdBy') == user_id:
            return file

        raise ForbiddenError(f"You do not have access to file {file_id}")

    def list_assigned_files(self, user_id: str, statuses=(FileStatus.IN_PROGRESS, FileStatus.PENDING_REVIEW),
                            limit: Optional[int] = None) -> List[TranslatableFile]:
        """Files assigned to a translator, restricted to the given statuses."""
        items = self.store.query(self.files_table, 'AssigneeIndex', 'assignedTranslatorId', user_id)
        files = [TranslatableFile.from_item(item) for item in items]
        files = [f for f in files if f.status in statuses]
        return files[:limit] if limit else files

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    def claim(self, file_id: str, requester_id: str) -> TranslatableFile:
        """Reserve an unassigned file for the requester."""
        file = self.get_file(file_id)
        self._guard_claimable(file, requester_id)

        now = self.clock().isoformat()
        ops = [
            Update(
                table=self.files_table,
                key={'fileId': file_id},
                set_fields={
                    'status': FileStatus.IN_PROGRESS,
                    'assignedTranslatorId': requester_id,
                    'updatedAt': now
                },
                condition=Condition(
                    equals={'status': FileStatus.NOT_STARTED},
                    missing=['assignedTranslatorId']
                )
            ),
            self.profiles.current_file_update(requester_id, file_id, file.label),
        ]

        try:
            self._transact(ops, f"claim of file {file_id}")
        except ConditionFailed as e:
            if not e.failed(0):
                raise NotFoundError(f"User profile {requester_id} not found")
            # Lost the race; report against what the winner left behind
            self._guard_claimable(self.get_file(file_id), requester_id)
            raise ConflictError(f"File {file_id} was claimed concurrently")

        self._invalidate_listing(file.project_id)
        logger.info(f"File {file_id} claimed by {requester_id}")
        return replace(file, status=FileStatus.IN_PROGRESS, assigned_translator_id=requester_id, updated_at=now)

    @staticmethod
    def _guard_claimable(file: TranslatableFile, requester_id: str) -> None:
        if file.assigned_translator_id and file.assigned_translator_id != requester_id:
            raise ConflictError(f"File {file.file_id} is already claimed by another translator")
        if file.status != FileStatus.NOT_STARTED or file.assigned_translator_id:
            raise InvalidStateError(f"File {file.file_id} cannot be claimed. Current status: {file.status}")

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(self, file_id: str, requester_id: str, translated_text: str,
               translator_notes: str = '') -> Tuple[TranslatableFile, ReviewTask]:
        """Submit a finished translation and open its review task."""
        file = self.get_file(file_id)

        if file.status != FileStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"File cannot be submitted for review. Current status: {file.status}, "
                f"required: {FileStatus.IN_PROGRESS}"
            )
        if file.assigned_translator_id != requester_id:
            raise ForbiddenError('You can only submit your own translations')
        if not isinstance(translated_text, str) or not translated_text.strip():
            raise ValidationError('Translation text cannot be empty')

        text = translated_text.strip()
        category = self._project_category(file.project_id)
        task, task_put = self.reviews.new_task(file_id, requester_id, category, translator_notes)

        now = self.clock().isoformat()
        ops = [
            Update(
                table=self.files_table,
                key={'fileId': file_id},
                set_fields={
                    'status': FileStatus.PENDING_REVIEW,
                    'translatedText': text,
                    'reviewTaskId': task.review_id,
                    'submittedAt': now,
                    'updatedAt': now
                },
                condition=Condition(equals={
                    'status': FileStatus.IN_PROGRESS,
                    'assignedTranslatorId': requester_id
                })
            ),
            task_put,
        ]

        try:
            self._transact(ops, f"submission of file {file_id}")
        except ConditionFailed as e:
            if e.failed(0):
                raise InvalidStateError(f"File {file_id} changed while submitting; refresh and retry")
            raise ConflictError(f"Review task {task.review_id} already exists")

        logger.info(f"File {file_id} submitted for review by {requester_id} (review {task.review_id})")
        submitted = replace(
            file,
            status=FileStatus.PENDING_REVIEW,
            translated_text=text,
            review_task_id=task.review_id,
            submitted_at=now,
            updated_at=now
        )
        return submitted, task

    def _project_category(self, project_id: str) -> str:
        """First category of the owning project; lookup failures fall back to 'general'."""
        if not project_id:
            return 'general'
        try:
            project = self.store.get(self.projects_table, {'projectId': project_id})
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not fetch project {project_id} for category: {e}")
            return 'general'
        categories = (project or {}).get('categories') or []
        return categories[0] if categories else 'general'

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def resolve(self, file_id: str, reviewer_id: str, decision: str, comments: str = '') -> ResolutionResult:
        """Accept or reject a translation that is pending review."""
        if decision not in Decision.ALL:
            raise ValidationError(f"Decision must be one of {', '.join(Decision.ALL)}")

        reviewer = self.profiles.get(reviewer_id)
        if not reviewer or not reviewer.is_reviewer:
            raise ForbiddenError('Only moderators can approve translations')

        file = self.get_file(file_id)
        if file.status != FileStatus.PENDING_REVIEW:
            raise InvalidStateError(
                f"File cannot be reviewed. Current status: {file.status}, required: {FileStatus.PENDING_REVIEW}"
            )

        translator_id = file.assigned_translator_id
        if not translator_id:
            raise InvalidStateError(f"File {file_id} is pending review without an assigned translator")
        accepted = decision == Decision.ACCEPT
        now = self.clock().isoformat()

        file_fields = {
            'status': DECISION_TO_FILE_STATUS[decision],
            'reviewerId': reviewer_id,
            'reviewedAt': now,
            'updatedAt': now
        }
        word_count = file.word_count
        if accepted:
            word_count = self.resolve_word_count(file)
            file_fields['wordCount'] = word_count
            ledger_op = self.ledger.acceptance_update(translator_id, file_id, word_count, file.label)
        else:
            ledger_op = self.ledger.rejection_update(translator_id, file_id)

        ops = [
            Update(
                table=self.files_table,
                key={'fileId': file_id},
                set_fields=file_fields,
                condition=Condition(equals={'status': FileStatus.PENDING_REVIEW})
            ),
            ledger_op,
        ]

        review_id = file.review_task_id or self._lookup_review_id(file_id)
        if review_id:
            ops.append(self.reviews.resolution_update(review_id, decision, reviewer_id, comments))
        else:
            logger.error(f"No pending review task found for file {file_id}; resolving without one")

        if not self._commit_resolution(file_id, translator_id, ops):
            review_id = None

        statistics = self.ledger.get_statistics(translator_id)
        logger.info(f"File {file_id} {DECISION_TO_FILE_STATUS[decision]} by {reviewer_id}; "
                    f"translator {translator_id} now has {statistics.total_words_translated} words")

        certificates = self._award_milestones(translator_id) if accepted else []

        resolved = replace(
            file,
            status=DECISION_TO_FILE_STATUS[decision],
            reviewer_id=reviewer_id,
            word_count=word_count,
            reviewed_at=now,
            updated_at=now
        )
        return ResolutionResult(
            file=resolved,
            decision=decision,
            statistics=statistics,
            review_task_id=review_id,
            certificates=certificates
        )

    def _commit_resolution(self, file_id: str, translator_id: str, ops: List[Update]) -> bool:
        """
        Commit the terminal transition. Returns False when the review task
        mirror had to be dropped because it was no longer pending.
        """
        try:
            self._transact(ops, f"resolution of file {file_id}")
            return len(ops) > 2
        except ConditionFailed as e:
            if e.failed(0):
                raise InvalidStateError(f"File {file_id} was resolved concurrently; refresh and retry")
            if e.failed(1):
                raise NotFoundError(f"Translator profile {translator_id} not found")
            if len(ops) > 2:
                logger.error(f"Review task for file {file_id} is not pending; resolving without updating it")
                self._commit_resolution(file_id, translator_id, ops[:2])
                return False
            raise ConflictError(f"File {file_id} could not be resolved")

    def _transact(self, ops: List[Update], description: str) -> None:
        """
        Commit a transition, retrying transactions cancelled by a concurrent
        writer on one of the same items (e.g. two acceptances crediting the
        same translator). Every transition is guarded on the file's status,
        so a retry can never apply twice.

        Raises:
            ConditionFailed: a guard did not hold; never retried
            ConflictError: still conflicting after max_attempts
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.store.transact(ops)
                return
            except TransactionConflict:
                if attempt == self.max_attempts:
                    break
                logger.warning(f"Transaction conflict on {description}, attempt {attempt}/{self.max_attempts}")
                self.backoff(attempt)
        raise ConflictError(f"Gave up on {description} after {self.max_attempts} conflicting attempts")

    def _lookup_review_id(self, file_id: str) -> Optional[str]:
        try:
            task = self.reviews.find_for_file(file_id, status=ReviewStatus.PENDING)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error looking up review task for file {file_id}: {e}")
            return None
        return task.review_id if task else None

    def _award_milestones(self, translator_id: str) -> List[Certificate]:
        # The acceptance is already committed; certificates can still be claimed later
        try:
            return self.certification.check_milestones(translator_id)
        except (DocsTranslateError, ClientError, BotoCoreError) as e:
            logger.error(f"Error checking milestone certificates for {translator_id}: {e}")
            return []

    def resolve_word_count(self, file: TranslatableFile) -> int:
        """
        Authoritative word count for crediting an accepted file:
        the stored count, else the externally stored content, else originalText.
        """
        if file.word_count > 0:
            return file.word_count

        if file.storage_type == StorageType.EXTERNAL and file.content_url:
            try:
                content = self.fetch_content(file.content_url)
            except ContentUnavailable as e:
                logger.error(f"Falling back to originalText for file {file.file_id}: {e}")
            else:
                words = count_words(content)
                logger.info(f"Calculated word count from external content for {file.file_id}: {words}")
                if words > 0:
                    return words

        return count_words(file.original_text)

    def _invalidate_listing(self, project_id: str) -> None:
        if self.cache and project_id:
            self.cache.delete(available_files_cache_key(project_id))
