"""
Get File Handler.
GET /files/{fileId}

Returns the full file, original and translated text included, to its
translator, its reviewer, the project author or a moderator.
"""
from docstranslate.auth import require_user
from docstranslate.errors import DocsTranslateError, ValidationError
from docstranslate.lifecycle import FileLifecycle
from docstranslate.logging import logger, log_event
from docstranslate.utils import error_response, get_path_param, internal_error_response, success_response

lifecycle = FileLifecycle()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)
        file_id = get_path_param(event, 'fileId')
        if not file_id:
            raise ValidationError('Missing fileId')

        file = lifecycle.get_for_user(file_id, user_id)
        return success_response(file.to_item())

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error fetching file: {e}")
        return internal_error_response()
