"""
Data models and status constants for the translation platform.
Based on the file lifecycle: not-started → in-progress → pending-review → accepted/rejected
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from .errors import ValidationError


class FileStatus:
    """Translatable file lifecycle statuses."""
    NOT_STARTED = 'not-started'
    IN_PROGRESS = 'in-progress'
    PENDING_REVIEW = 'pending-review'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    ALL = (NOT_STARTED, IN_PROGRESS, PENDING_REVIEW, ACCEPTED, REJECTED)
    TERMINAL = (ACCEPTED, REJECTED)


class ReviewStatus:
    """Review task statuses."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    ALL = (PENDING, APPROVED, REJECTED)


class ReviewPriority:
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class Role:
    """User roles."""
    CONTRIBUTOR = 'contributor'
    BOT = 'bot'
    MODERATOR = 'moderator'
    ADMINISTRATOR = 'administrator'

    ALL = (CONTRIBUTOR, BOT, MODERATOR, ADMINISTRATOR)
    REVIEWERS = (MODERATOR, ADMINISTRATOR)


class Decision:
    """Reviewer decisions on a submitted translation."""
    ACCEPT = 'accept'
    REJECT = 'reject'

    ALL = (ACCEPT, REJECT)


class StorageType:
    """Where a file's original text lives."""
    INLINE = 'inline'
    EXTERNAL = 'external'


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _int(value: Any) -> int:
    # DynamoDB hands numbers back as Decimal
    return int(value or 0)


@dataclass
class TranslatableFile:
    file_id: str
    project_id: str
    file_name: str = ''
    status: str = FileStatus.NOT_STARTED
    assigned_translator_id: Optional[str] = None
    reviewer_id: Optional[str] = None
    word_count: int = 0
    original_text: str = ''
    translated_text: str = ''
    storage_type: str = StorageType.INLINE
    content_url: Optional[str] = None
    review_task_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    submitted_at: Optional[str] = None
    reviewed_at: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'TranslatableFile':
        status = item.get('status', FileStatus.NOT_STARTED)
        if status not in FileStatus.ALL:
            raise ValidationError(f"Unknown file status '{status}' on file {item.get('fileId')}")
        return cls(
            file_id=item['fileId'],
            project_id=item.get('projectId', ''),
            file_name=item.get('fileName', ''),
            status=status,
            assigned_translator_id=item.get('assignedTranslatorId') or None,
            reviewer_id=item.get('reviewerId') or None,
            word_count=_int(item.get('wordCount')),
            original_text=item.get('originalText', ''),
            translated_text=item.get('translatedText', ''),
            storage_type=item.get('storageType', StorageType.INLINE),
            content_url=item.get('contentUrl') or None,
            review_task_id=item.get('reviewTaskId') or None,
            created_at=item.get('createdAt'),
            updated_at=item.get('updatedAt'),
            submitted_at=item.get('submittedAt'),
            reviewed_at=item.get('reviewedAt'),
        )

    def to_item(self) -> Dict[str, Any]:
        item = {
            'fileId': self.file_id,
            'projectId': self.project_id,
            'fileName': self.file_name,
            'status': self.status,
            'wordCount': self.word_count,
            'originalText': self.original_text,
            'translatedText': self.translated_text,
            'storageType': self.storage_type,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }
        optional = {
            'assignedTranslatorId': self.assigned_translator_id,
            'reviewerId': self.reviewer_id,
            'contentUrl': self.content_url,
            'reviewTaskId': self.review_task_id,
            'submittedAt': self.submitted_at,
            'reviewedAt': self.reviewed_at,
        }
        item.update({k: v for k, v in optional.items() if v is not None})
        return {k: v for k, v in item.items() if v is not None}

    @property
    def label(self) -> str:
        return self.file_name or 'Unknown File'


@dataclass
class UserStatistics:
    """A user's profile together with the counters the ledger owns."""
    user_id: str
    name: str = ''
    email: str = ''
    role: str = Role.CONTRIBUTOR
    total_words_translated: int = 0
    approved_translations: int = 0
    rejected_translations: int = 0
    contributed_files: Dict[str, str] = field(default_factory=dict)
    current_files: Dict[str, str] = field(default_factory=dict)
    certificates: Set[str] = field(default_factory=set)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'UserStatistics':
        role = item.get('role', Role.CONTRIBUTOR)
        if role not in Role.ALL:
            raise ValidationError(f"Unknown role '{role}' on profile {item.get('userId')}")
        return cls(
            user_id=item['userId'],
            name=item.get('name', ''),
            email=item.get('email', ''),
            role=role,
            total_words_translated=_int(item.get('totalWordsTranslated')),
            approved_translations=_int(item.get('approvedTranslations')),
            rejected_translations=_int(item.get('rejectedTranslations')),
            contributed_files=dict(item.get('contributedFiles') or {}),
            current_files=dict(item.get('currentFiles') or {}),
            certificates=set(item.get('certificates') or ()),
            created_at=item.get('createdAt'),
            updated_at=item.get('updatedAt'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'name': self.name,
            'role': self.role,
            'isModerator': self.is_reviewer,
            'totalWordsTranslated': self.total_words_translated,
            'approvedTranslations': self.approved_translations,
            'rejectedTranslations': self.rejected_translations,
            'contributedFiles': self.contributed_files,
            'currentFiles': self.current_files,
            'certificates': sorted(self.certificates),
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }

    @property
    def is_reviewer(self) -> bool:
        return self.role in Role.REVIEWERS


@dataclass
class ReviewTask:
    review_id: str
    file_id: str
    translator_id: str
    status: str = ReviewStatus.PENDING
    reviewer_id: str = ''
    priority: str = ReviewPriority.MEDIUM
    due_date: Optional[str] = None
    estimated_review_hours: int = 2
    category: str = 'general'
    comments: str = ''
    created_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'ReviewTask':
        status = item.get('status', ReviewStatus.PENDING)
        if status not in ReviewStatus.ALL:
            raise ValidationError(f"Unknown review status '{status}' on review {item.get('reviewId')}")
        return cls(
            review_id=item['reviewId'],
            file_id=item['fileId'],
            translator_id=item.get('translatorId', ''),
            status=status,
            reviewer_id=item.get('reviewerId', ''),
            priority=item.get('priority', ReviewPriority.MEDIUM),
            due_date=item.get('dueDate'),
            estimated_review_hours=_int(item.get('estimatedReviewHours')),
            category=item.get('category', 'general'),
            comments=item.get('comments', ''),
            created_at=item.get('createdAt'),
            completed_at=item.get('completedAt'),
        )

    def to_item(self) -> Dict[str, Any]:
        item = {
            'reviewId': self.review_id,
            'fileId': self.file_id,
            'translatorId': self.translator_id,
            'status': self.status,
            'reviewerId': self.reviewer_id,
            'priority': self.priority,
            'dueDate': self.due_date,
            'estimatedReviewHours': self.estimated_review_hours,
            'category': self.category,
            'comments': self.comments,
            'createdAt': self.created_at,
            'completedAt': self.completed_at,
        }
        return {k: v for k, v in item.items() if v is not None}


@dataclass(frozen=True)
class CertificateTier:
    """Static milestone configuration, never persisted per user."""
    tier_id: str
    name: str
    word_threshold: int
    category: str
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.tier_id,
            'name': self.name,
            'wordsRequired': self.word_threshold,
            'category': self.category,
            'description': self.description,
        }


@dataclass
class Certificate:
    certificate_id: str
    user_id: str
    tier_id: str
    verification_code: str
    project_name: str
    category: str
    certificate_type: str = 'translation'
    created_at: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Certificate':
        return cls(
            certificate_id=item['certificateId'],
            user_id=item['userId'],
            tier_id=item['tierId'],
            verification_code=item['verificationCode'],
            project_name=item.get('projectName', ''),
            category=item.get('category', ''),
            certificate_type=item.get('certificateType', 'translation'),
            created_at=item.get('createdAt'),
        )

    def to_item(self) -> Dict[str, Any]:
        return {
            'certificateId': self.certificate_id,
            'userId': self.user_id,
            'tierId': self.tier_id,
            'verificationCode': self.verification_code,
            'projectName': self.project_name,
            'category': self.category,
            'certificateType': self.certificate_type,
            'createdAt': self.created_at,
        }
