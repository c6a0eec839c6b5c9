"""
Certification module - milestone tiers, progress and certificate awards.

Awards are idempotent: the tier id is added to the profile's owned set under
a NOT contains() condition in the same transaction that writes the
certificate, so only the writer that wins that condition creates a record.
"""
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .dynamo import Condition, ConditionFailed, DynamoStore, Put, TransactionConflict, Update, backoff_sleep
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .logging import logger
from .models import Certificate, CertificateTier, UserStatistics, utc_now

MILESTONE_CATEGORY = 'Word Count Milestone'

# Tier thresholds configuration, strictly increasing
CERTIFICATE_TIERS = (
    CertificateTier('bronze', 'Bronze Translator', 500, MILESTONE_CATEGORY,
                    'First steps in technical documentation translation'),
    CertificateTier('silver', 'Silver Translator', 2500, MILESTONE_CATEGORY,
                    'Established contributor to translated documentation'),
    CertificateTier('gold', 'Gold Translator', 10000, MILESTONE_CATEGORY,
                    'Expert technical translator'),
    CertificateTier('platinum', 'Platinum Master', 25000, MILESTONE_CATEGORY,
                    'Elite translator with exceptional contributions'),
    CertificateTier('diamond', 'Diamond Expert', 50000, MILESTONE_CATEGORY,
                    'Master of technical documentation translation'),
    CertificateTier('sigma', 'Sigma Legend', 100000, MILESTONE_CATEGORY,
                    'Legendary contributor to translated documentation'),
    CertificateTier('alpha', 'Alpha Pioneer', 200000, MILESTONE_CATEGORY,
                    'Ultimate pioneer of translated technical education'),
)


@dataclass
class CertificationProgress:
    current_tier: Optional[CertificateTier]
    next_tier: Optional[CertificateTier]
    total_words: int
    words_to_next: int
    progress_percentage: float
    available_certificates: List[CertificateTier] = field(default_factory=list)
    earned_certificates: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currentTier': self.current_tier.to_dict() if self.current_tier else None,
            'nextTier': self.next_tier.to_dict() if self.next_tier else None,
            'totalWords': self.total_words,
            'wordsToNext': self.words_to_next,
            'progressPercentage': round(self.progress_percentage, 1),
            'availableCertificates': [tier.to_dict() for tier in self.available_certificates],
            'earnedCertificates': self.earned_certificates,
        }


def get_tier(tier_id: str, tiers: Sequence[CertificateTier] = CERTIFICATE_TIERS) -> Optional[CertificateTier]:
    return next((tier for tier in tiers if tier.tier_id == tier_id), None)


def get_next_milestone(total_words: int,
                       tiers: Sequence[CertificateTier] = CERTIFICATE_TIERS) -> Optional[CertificateTier]:
    return next((tier for tier in tiers if total_words < tier.word_threshold), None)


def calculate_progress(profile: UserStatistics,
                       tiers: Sequence[CertificateTier] = CERTIFICATE_TIERS) -> CertificationProgress:
    """
    Compute tier standing and progress toward the next milestone.

    A user whose total equals a threshold has reached that tier. Below the
    first tier, progress is measured from zero.

    Args:
        profile: The user's statistics
        tiers: Tier table ordered by increasing threshold

    Returns:
        CertificationProgress for the profile
    """
    total_words = profile.total_words_translated
    owned = profile.certificates

    reached = [tier for tier in tiers if tier.word_threshold <= total_words]
    current_tier = reached[-1] if reached else None
    next_tier = get_next_milestone(total_words, tiers)

    if next_tier:
        previous_threshold = current_tier.word_threshold if current_tier else 0
        span = next_tier.word_threshold - previous_threshold
        progress = (total_words - previous_threshold) / span * 100
        progress = max(0.0, min(100.0, progress))
        words_to_next = next_tier.word_threshold - total_words
    else:
        progress = 100.0
        words_to_next = 0

    return CertificationProgress(
        current_tier=current_tier,
        next_tier=next_tier,
        total_words=total_words,
        words_to_next=words_to_next,
        progress_percentage=progress,
        available_certificates=[tier for tier in reached if tier.tier_id not in owned],
        earned_certificates=sorted(owned),
    )


def generate_verification_code(tier: CertificateTier) -> str:
    """Opaque, unguessable code for public certificate verification."""
    return f"{config.CERTIFICATE_CODE_PREFIX}-{tier.tier_id.upper()}-{secrets.token_hex(12).upper()}"


class CertificationEngine:

    # Attempts before giving up on a verification-code collision or a
    # transaction conflict on the profile item
    MAX_AWARD_ATTEMPTS = 5

    def __init__(
        self,
        store: Optional[DynamoStore] = None,
        profiles_table: Optional[str] = None,
        certificates_table: Optional[str] = None,
        codes_table: Optional[str] = None,
        tiers: Sequence[CertificateTier] = CERTIFICATE_TIERS,
        clock: Callable = utc_now,
        code_factory: Callable[[CertificateTier], str] = generate_verification_code,
        backoff: Callable[[int], None] = backoff_sleep
    ):
        self.store = store or DynamoStore()
        self.profiles_table = profiles_table or config.PROFILES_TABLE
        self.certificates_table = certificates_table or config.CERTIFICATES_TABLE
        self.codes_table = codes_table or config.CERTIFICATE_CODES_TABLE
        self.tiers = tuple(tiers)
        self.clock = clock
        self.code_factory = code_factory
        self.backoff = backoff

    def _load_profile(self, user_id: str) -> UserStatistics:
        item = self.store.get(self.profiles_table, {'userId': user_id}, consistent=True)
        if not item:
            raise NotFoundError(f"User profile {user_id} not found")
        return UserStatistics.from_item(item)

    def get_progress(self, user_id: str) -> CertificationProgress:
        return calculate_progress(self._load_profile(user_id), self.tiers)

    def award_certificate(self, user_id: str, tier_id: str) -> Optional[Certificate]:
        """
        Award a milestone certificate if the user is eligible and does not own it.

        Returns:
            The new Certificate, or None when the tier is already owned
            (including when a concurrent award won the race)

        Raises:
            ValidationError: unknown tier
            ForbiddenError: not enough words for the tier
            NotFoundError: no profile for the user
            ConflictError: could not commit after repeated collisions
        """
        tier = get_tier(tier_id, self.tiers)
        if not tier:
            raise ValidationError(f"Certificate tier {tier_id} not found")

        profile = self._load_profile(user_id)
        if tier_id in profile.certificates:
            logger.info(f"User {user_id} already has {tier.name} certificate")
            return None

        progress = calculate_progress(profile, self.tiers)
        if tier not in progress.available_certificates:
            raise ForbiddenError(
                f"User does not qualify for {tier.name} "
                f"(needs {tier.word_threshold} words, has {profile.total_words_translated})"
            )

        for attempt in range(1, self.MAX_AWARD_ATTEMPTS + 1):
            certificate = Certificate(
                certificate_id=str(uuid.uuid4()),
                user_id=user_id,
                tier_id=tier.tier_id,
                verification_code=self.code_factory(tier),
                project_name=f'{tier.name} Milestone',
                category=tier.category,
                created_at=self.clock().isoformat()
            )
            try:
                self.store.transact(self._award_operations(certificate))
            except ConditionFailed as e:
                if e.failed(0):
                    logger.info(f"{tier.name} already awarded to {user_id} by a concurrent request")
                    return None
                if e.failed(2):
                    logger.warning(f"Verification code collision on attempt {attempt}, regenerating")
                    continue
                raise ConflictError(f"Certificate {certificate.certificate_id} already exists")
            except TransactionConflict:
                logger.warning(f"Transaction conflict awarding {tier.name} to {user_id} on attempt {attempt}")
                self.backoff(attempt)
                continue

            logger.info(f"Awarded {tier.name} certificate to user {user_id}")
            return certificate

        raise ConflictError(f"Could not award {tier.name} to {user_id} after {self.MAX_AWARD_ATTEMPTS} attempts")

    def _award_operations(self, certificate: Certificate) -> List:
        return [
            Update(
                table=self.profiles_table,
                key={'userId': certificate.user_id},
                set_fields={'updatedAt': certificate.created_at},
                increments={'certificatesEarned': 1},
                set_additions={'certificates': certificate.tier_id},
                condition=Condition(
                    exists=['userId'],
                    not_in_set={'certificates': certificate.tier_id}
                )
            ),
            Put(table=self.certificates_table, item=certificate.to_item(), unique_key='certificateId'),
            Put(
                table=self.codes_table,
                item={
                    'verificationCode': certificate.verification_code,
                    'certificateId': certificate.certificate_id,
                    'userId': certificate.user_id,
                    'createdAt': certificate.created_at
                },
                unique_key='verificationCode'
            ),
        ]

    def check_milestones(self, user_id: str) -> List[Certificate]:
        """Award every tier the user has reached but does not own yet."""
        progress = self.get_progress(user_id)
        awarded = []
        for tier in progress.available_certificates:
            certificate = self.award_certificate(user_id, tier.tier_id)
            if certificate:
                awarded.append(certificate)

        if awarded:
            logger.info(f"Awarded {len(awarded)} milestone certificates to {user_id}")
        return awarded

    def list_certificates(self, user_id: str) -> List[Certificate]:
        items = self.store.query(self.certificates_table, 'UserIndex', 'userId', user_id)
        return [Certificate.from_item(item) for item in items]

    def verify_certificate(self, verification_code: str) -> Dict[str, Any]:
        """
        Public verification by code. Returns only public certificate details,
        never contact data of the holder.
        """
        if not verification_code:
            raise ValidationError('Missing verification code')

        code_item = self.store.get(self.codes_table, {'verificationCode': verification_code})
        certificate_item = None
        if code_item:
            certificate_item = self.store.get(self.certificates_table,
                                              {'certificateId': code_item['certificateId']})
        if not certificate_item:
            raise NotFoundError('Certificate not found or invalid verification code')

        certificate = Certificate.from_item(certificate_item)

        holder_name = 'Certificate Holder'
        try:
            profile = self.store.get(self.profiles_table, {'userId': certificate.user_id})
            if profile and profile.get('name'):
                holder_name = profile['name']
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Could not fetch holder for certificate {certificate.certificate_id}: {e}")

        return {
            'projectName': certificate.project_name,
            'category': certificate.category,
            'certificateType': certificate.certificate_type,
            'verificationCode': certificate.verification_code,
            'issuedDate': certificate.created_at,
            'holderName': holder_name,
            'isValid': True,
            'verifiedAt': self.clock().isoformat()
        }
