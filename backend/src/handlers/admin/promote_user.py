"""
Promote User Handler.
POST /admin/promote-user
Body: { "userId": "...", "role": "moderator" }
"""
from docstranslate.auth import require_user
from docstranslate.errors import DocsTranslateError, ValidationError
from docstranslate.logging import logger, log_event
from docstranslate.models import Role
from docstranslate.profiles import ProfileService
from docstranslate.utils import error_response, internal_error_response, parse_body, success_response

profiles = ProfileService()


def handler(event, context):
    log_event(event)

    try:
        admin_id = require_user(event)
        body = parse_body(event)
        target_user_id = body.get('userId')
        if not target_user_id:
            raise ValidationError('Missing userId')

        role = body.get('role', Role.MODERATOR)
        profile = profiles.promote_user(admin_id, target_user_id, role)
        return success_response(profile.to_dict(), f'User promoted to {role} successfully')

    except DocsTranslateError as e:
        logger.warning(f"Promotion rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error promoting user: {e}")
        return internal_error_response()
