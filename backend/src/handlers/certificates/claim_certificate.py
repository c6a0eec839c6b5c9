"""
Claim Certificate Handler.
POST /certificates/claim
Body: { "tierId": "bronze" }

Direct claim of a reached milestone. Safe to retry: a tier that is already
owned answers 409 without creating a second certificate.
"""
from docstranslate.auth import require_user
from docstranslate.certification import CertificationEngine, get_tier
from docstranslate.errors import ConflictError, DocsTranslateError, ValidationError
from docstranslate.logging import logger, log_event
from docstranslate.rate_limit import RateLimiter
from docstranslate.utils import error_response, internal_error_response, parse_body, success_response

certification = CertificationEngine()
rate_limiter = RateLimiter()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)
        tier_id = parse_body(event).get('tierId')
        if not tier_id:
            raise ValidationError('Missing tier ID')

        rate_limiter.enforce(f'certificate:{user_id}')

        certificate = certification.award_certificate(user_id, tier_id)
        if not certificate:
            raise ConflictError('Certificate already awarded for this tier')

        tier = get_tier(tier_id)
        return success_response({
            'certificate': certificate.to_item(),
            'tier': tier.to_dict(),
            'message': f"Congratulations! You've earned the {tier.name} certificate!"
        }, f'{tier.name} certificate awarded successfully!')

    except DocsTranslateError as e:
        logger.warning(f"Certificate claim rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error claiming certificate: {e}")
        return internal_error_response()
