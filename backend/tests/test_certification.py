"""
Tests for milestone tiers, progress and certificate awards.
"""
import re
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from docstranslate.certification import (
    CERTIFICATE_TIERS,
    CertificationEngine,
    calculate_progress,
    generate_verification_code,
    get_next_milestone,
    get_tier,
)
from docstranslate.dynamo import Put, TransactionConflict
from docstranslate.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docstranslate.models import UserStatistics


def profile_with(words, owned=()):
    return UserStatistics(user_id='u1', total_words_translated=words, certificates=set(owned))


class TestTierTable:
    """Tests for the milestone tier table."""

    def test_thresholds_strictly_increasing(self):
        """Tier thresholds are strictly increasing."""
        thresholds = [tier.word_threshold for tier in CERTIFICATE_TIERS]
        assert thresholds == sorted(set(thresholds))

    def test_lookup(self):
        """Tiers are found by id and by next threshold."""
        assert get_tier('gold').word_threshold == 10000
        assert get_tier('unknown') is None
        assert get_next_milestone(0).tier_id == 'bronze'
        assert get_next_milestone(500).tier_id == 'silver'
        assert get_next_milestone(200000) is None


class TestCalculateProgress:
    """Tests for progress toward the next tier."""

    def test_fresh_profile(self):
        """A new translator is heading for bronze."""
        progress = calculate_progress(profile_with(0))

        assert progress.current_tier is None
        assert progress.next_tier.tier_id == 'bronze'
        assert progress.progress_percentage == 0
        assert progress.words_to_next == 500
        assert progress.available_certificates == []

    def test_threshold_is_inclusive(self):
        """A total exactly at a threshold reaches that tier."""
        progress = calculate_progress(profile_with(500))

        assert progress.current_tier.tier_id == 'bronze'
        assert [t.tier_id for t in progress.available_certificates] == ['bronze']

    def test_just_below_threshold(self):
        """One word short of a tier has not reached it."""
        progress = calculate_progress(profile_with(499))

        assert progress.current_tier is None
        assert progress.available_certificates == []
        assert progress.progress_percentage == pytest.approx(99.8)

    def test_progress_between_tiers(self):
        """Progress is measured from the current tier."""
        # bronze 500 -> silver 2500, 1000 of 2000 words into the level
        progress = calculate_progress(profile_with(1500))

        assert progress.current_tier.tier_id == 'bronze'
        assert progress.next_tier.tier_id == 'silver'
        assert progress.progress_percentage == pytest.approx(50.0)
        assert progress.words_to_next == 1000

    def test_owned_tiers_not_available(self):
        """Owned tiers are not offered again."""
        progress = calculate_progress(profile_with(3000, owned=['bronze']))

        assert [t.tier_id for t in progress.available_certificates] == ['silver']
        assert progress.earned_certificates == ['bronze']

    def test_top_tier(self):
        """Past the last tier progress is complete."""
        progress = calculate_progress(profile_with(250000))

        assert progress.current_tier.tier_id == 'alpha'
        assert progress.next_tier is None
        assert progress.progress_percentage == 100
        assert progress.words_to_next == 0
        assert len(progress.available_certificates) == len(CERTIFICATE_TIERS)

    def test_to_dict(self):
        """Progress serializes with tier details."""
        data = calculate_progress(profile_with(1500)).to_dict()

        assert data['currentTier']['id'] == 'bronze'
        assert data['nextTier']['wordsRequired'] == 2500
        assert data['progressPercentage'] == 50.0


class TestVerificationCode:
    """Tests for verification code generation."""

    def test_format_and_uniqueness(self):
        """Codes carry the tier and are unique."""
        tier = get_tier('bronze')
        codes = {generate_verification_code(tier) for _ in range(200)}

        assert len(codes) == 200
        for code in codes:
            assert re.fullmatch(r'[A-Z]+-BRONZE-[0-9A-F]{24}', code)


class TestAwardCertificate:
    """Tests for awarding a single certificate."""

    def test_awards_reached_tier(self, certification, store, seed_profile):
        """A reached tier writes the certificate, code and owned set."""
        seed_profile('translator-1', words=600)

        certificate = certification.award_certificate('translator-1', 'bronze')

        assert certificate is not None
        assert certificate.tier_id == 'bronze'
        assert certificate.project_name == 'Bronze Translator Milestone'
        assert certificate.category == 'Word Count Milestone'

        profile = store.item('profiles', userId='translator-1')
        assert profile['certificates'] == {'bronze'}
        assert profile['certificatesEarned'] == 1
        assert store.item('certificates', certificateId=certificate.certificate_id)['userId'] == 'translator-1'
        code = store.item('codes', verificationCode=certificate.verification_code)
        assert code['certificateId'] == certificate.certificate_id

    def test_second_award_is_a_no_op(self, certification, store, seed_profile):
        """Awarding an owned tier creates nothing."""
        seed_profile('translator-1', words=600)

        first = certification.award_certificate('translator-1', 'bronze')
        second = certification.award_certificate('translator-1', 'bronze')

        assert first is not None
        assert second is None
        assert len(store.items('certificates')) == 1

    def test_concurrent_awards_create_exactly_one(self, certification, store, seed_profile):
        """Racing awards of one tier create one certificate."""
        seed_profile('translator-1', words=600)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(
                lambda _: certification.award_certificate('translator-1', 'bronze'), range(8)
            ))

        assert len([r for r in results if r is not None]) == 1
        assert len(store.items('certificates')) == 1
        assert store.item('profiles', userId='translator-1')['certificatesEarned'] == 1

    def test_not_enough_words(self, certification, store, seed_profile):
        """Unreached tiers are forbidden."""
        seed_profile('translator-1', words=499)

        with pytest.raises(ForbiddenError):
            certification.award_certificate('translator-1', 'bronze')

        assert store.items('certificates') == []

    def test_unknown_tier(self, certification, seed_profile):
        """Unknown tier ids are invalid."""
        seed_profile('translator-1', words=600)

        with pytest.raises(ValidationError):
            certification.award_certificate('translator-1', 'mythril')

    def test_missing_profile(self, certification):
        """Awards need an existing profile."""
        with pytest.raises(NotFoundError):
            certification.award_certificate('ghost', 'bronze')

    def test_code_collision_regenerates(self, store, clock, seed_profile):
        """A taken verification code is replaced."""
        seed_profile('translator-1', words=600)
        store.put(Put(table='codes', item={'verificationCode': 'TAKEN', 'certificateId': 'other'}))
        codes = iter(['TAKEN', 'TAKEN', 'FRESH'])
        engine = CertificationEngine(
            store, profiles_table='profiles', certificates_table='certificates', codes_table='codes',
            clock=clock, code_factory=lambda tier: next(codes)
        )

        certificate = engine.award_certificate('translator-1', 'bronze')

        assert certificate.verification_code == 'FRESH'
        assert len(store.items('certificates')) == 1
        assert store.item('codes', verificationCode='TAKEN')['certificateId'] == 'other'

    def test_gives_up_after_repeated_collisions(self, store, clock, seed_profile):
        """Endless code collisions end in a conflict."""
        seed_profile('translator-1', words=600)
        store.put(Put(table='codes', item={'verificationCode': 'TAKEN', 'certificateId': 'other'}))
        engine = CertificationEngine(
            store, profiles_table='profiles', certificates_table='certificates', codes_table='codes',
            clock=clock, code_factory=lambda tier: 'TAKEN'
        )

        with pytest.raises(ConflictError):
            engine.award_certificate('translator-1', 'bronze')

        assert store.items('certificates') == []
        assert 'certificates' not in store.item('profiles', userId='translator-1')

    def test_backs_off_on_transaction_conflict(self, certification, store, seed_profile):
        """An award cancelled by a concurrent writer backs off and retries."""
        seed_profile('translator-1', words=600)
        certification.backoff = MagicMock()
        real_transact = store.transact
        outcomes = iter([TransactionConflict('TransactionConflict'), None])

        def transact(ops):
            error = next(outcomes)
            if error:
                raise error
            return real_transact(ops)

        with patch.object(store, 'transact', side_effect=transact):
            certificate = certification.award_certificate('translator-1', 'bronze')

        assert certificate.tier_id == 'bronze'
        certification.backoff.assert_called_once_with(1)
        assert len(store.items('certificates')) == 1


class TestCheckMilestones:
    """Tests for automatic milestone awards."""

    def test_awards_every_reached_tier_once(self, certification, store, seed_profile):
        """Every reached tier is awarded exactly once."""
        seed_profile('translator-1', words=2600)

        awarded = certification.check_milestones('translator-1')
        again = certification.check_milestones('translator-1')

        assert sorted(c.tier_id for c in awarded) == ['bronze', 'silver']
        assert again == []
        assert len(store.items('certificates')) == 2

    def test_skips_owned_tiers(self, certification, seed_profile):
        """Owned tiers are skipped."""
        seed_profile('translator-1', words=2600, certificates=['bronze'])

        awarded = certification.check_milestones('translator-1')

        assert [c.tier_id for c in awarded] == ['silver']

    def test_nothing_reached(self, certification, seed_profile):
        """No tier reached means no awards."""
        seed_profile('translator-1', words=10)

        assert certification.check_milestones('translator-1') == []

    def test_races_with_direct_claim(self, certification, store, seed_profile):
        """A milestone check racing a claim creates one certificate."""
        seed_profile('translator-1', words=600)

        with ThreadPoolExecutor(max_workers=2) as pool:
            milestone = pool.submit(certification.check_milestones, 'translator-1')
            direct = pool.submit(certification.award_certificate, 'translator-1', 'bronze')
            created = len(milestone.result()) + (1 if direct.result() else 0)

        assert created == 1
        assert len(store.items('certificates')) == 1


class TestVerifyAndList:
    """Tests for public verification and listing."""

    def test_verify_returns_public_fields(self, certification, seed_profile):
        """Verification exposes no contact data."""
        seed_profile('translator-1', words=600, name='Ani Petrosyan')
        certificate = certification.award_certificate('translator-1', 'bronze')

        result = certification.verify_certificate(certificate.verification_code)

        assert result['isValid'] is True
        assert result['holderName'] == 'Ani Petrosyan'
        assert result['projectName'] == 'Bronze Translator Milestone'
        assert 'email' not in result
        assert 'userId' not in result

    def test_verify_unknown_code(self, certification):
        """Unknown codes are not found."""
        with pytest.raises(NotFoundError):
            certification.verify_certificate('NOPE')

    def test_verify_requires_code(self, certification):
        """An empty code is invalid."""
        with pytest.raises(ValidationError):
            certification.verify_certificate('')

    def test_list_certificates(self, certification, seed_profile):
        """A user's certificates are listed."""
        seed_profile('translator-1', words=2600)
        certification.check_milestones('translator-1')

        listed = certification.list_certificates('translator-1')

        assert sorted(c.tier_id for c in listed) == ['bronze', 'silver']
