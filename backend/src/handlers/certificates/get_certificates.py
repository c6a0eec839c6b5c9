"""
Get Certificates Handler.
GET /certificates

Returns the caller's certificates together with tier progress.
"""
from docstranslate.auth import require_user
from docstranslate.certification import CERTIFICATE_TIERS, CertificationEngine
from docstranslate.errors import DocsTranslateError
from docstranslate.logging import logger, log_event
from docstranslate.utils import error_response, internal_error_response, success_response

certification = CertificationEngine()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)

        progress = certification.get_progress(user_id)
        certificates = certification.list_certificates(user_id)

        return success_response({
            'certificates': [c.to_item() for c in certificates],
            'progress': progress.to_dict(),
            'tiers': [tier.to_dict() for tier in CERTIFICATE_TIERS]
        })

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error fetching certificates: {e}")
        return internal_error_response()
