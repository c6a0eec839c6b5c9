"""
Claim File Handler.
POST /files/{fileId}/claim

Reserves an unassigned file for the calling translator. Two translators
racing for the same file get one success and one 409.
"""
from docstranslate.auth import require_user
from docstranslate.cache import ListingCache
from docstranslate.errors import DocsTranslateError, ValidationError
from docstranslate.lifecycle import FileLifecycle
from docstranslate.logging import logger, log_event
from docstranslate.rate_limit import RateLimiter
from docstranslate.utils import error_response, get_path_param, internal_error_response, success_response

lifecycle = FileLifecycle(cache=ListingCache())
rate_limiter = RateLimiter()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)
        file_id = get_path_param(event, 'fileId')
        if not file_id:
            raise ValidationError('Missing fileId')

        rate_limiter.enforce(f'claim:{user_id}')

        file = lifecycle.claim(file_id, user_id)
        return success_response(file.to_item(), 'File claimed successfully')

    except DocsTranslateError as e:
        logger.warning(f"Claim rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error claiming file: {e}")
        return internal_error_response()
