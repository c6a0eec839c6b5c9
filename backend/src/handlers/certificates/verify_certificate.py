"""
Verify Certificate Handler.
GET /certificates/verify/{code}

Public, unauthenticated. Returns only public certificate information.
Rate limited per source IP, since there is no caller identity.
"""
from docstranslate.certification import CertificationEngine
from docstranslate.config import config
from docstranslate.errors import DocsTranslateError, RateLimitedError
from docstranslate.logging import logger, log_event
from docstranslate.rate_limit import check_rate_limit
from docstranslate.utils import (
    error_response,
    get_path_param,
    get_source_ip,
    internal_error_response,
    success_response,
)

certification = CertificationEngine()


def handler(event, context):
    log_event(event)

    try:
        limit = check_rate_limit(f'verify:{get_source_ip(event)}', config.VERIFY_RATE_LIMIT, config.VERIFY_RATE_WINDOW)
        if not limit.allowed:
            raise RateLimitedError(f"Too many verification requests, retry after {limit.reset_at}")

        result = certification.verify_certificate(get_path_param(event, 'code'))
        return success_response(result)

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Certificate verification error: {e}")
        return internal_error_response()
