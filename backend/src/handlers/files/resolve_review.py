"""
Resolve Review Handler.
POST /files/{fileId}/approve
Body: { "approved": true | false, "comments": "..." }

Moderators accept or reject a pending translation. Acceptance credits the
translator's word count and may award milestone certificates.
"""
from docstranslate.auth import require_user
from docstranslate.errors import DocsTranslateError, ValidationError
from docstranslate.lifecycle import FileLifecycle
from docstranslate.logging import logger, log_event
from docstranslate.models import Decision
from docstranslate.utils import (
    error_response,
    get_path_param,
    internal_error_response,
    parse_body,
    success_response,
)

lifecycle = FileLifecycle()


def handler(event, context):
    log_event(event)

    try:
        reviewer_id = require_user(event)
        file_id = get_path_param(event, 'fileId')
        if not file_id:
            raise ValidationError('Missing fileId')

        body = parse_body(event)
        approved = body.get('approved')
        if not isinstance(approved, bool):
            raise ValidationError('approved must be true or false')

        decision = Decision.ACCEPT if approved else Decision.REJECT
        result = lifecycle.resolve(file_id, reviewer_id, decision, body.get('comments') or '')

        message = 'Translation approved successfully' if approved else 'Translation rejected'
        return success_response(result.to_dict(), message)

    except DocsTranslateError as e:
        logger.warning(f"Review resolution rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error approving/rejecting translation: {e}")
        return internal_error_response()
