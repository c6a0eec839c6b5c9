"""
Submit Translation Handler.
POST /files/{fileId}/submit-review
Body: { "translatedText": "...", "translatorNotes": "..." }
"""
from docstranslate.auth import require_user
from docstranslate.errors import DocsTranslateError, ValidationError
from docstranslate.lifecycle import FileLifecycle
from docstranslate.logging import logger, log_event
from docstranslate.rate_limit import RateLimiter
from docstranslate.utils import (
    error_response,
    get_path_param,
    internal_error_response,
    parse_body,
    success_response,
)

lifecycle = FileLifecycle()
rate_limiter = RateLimiter()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)
        file_id = get_path_param(event, 'fileId')
        if not file_id:
            raise ValidationError('Missing fileId')

        rate_limiter.enforce(f'submit:{user_id}')

        body = parse_body(event)
        file, review = lifecycle.submit(
            file_id,
            user_id,
            body.get('translatedText'),
            translator_notes=body.get('translatorNotes') or ''
        )

        return success_response({
            'reviewId': review.review_id,
            'fileId': file.file_id,
            'status': file.status,
            'submittedAt': file.submitted_at,
            'dueDate': review.due_date,
            'category': review.category
        }, 'Translation submitted for review successfully')

    except DocsTranslateError as e:
        logger.warning(f"Submission rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error submitting translation for review: {e}")
        return internal_error_response()
