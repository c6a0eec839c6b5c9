"""
Get Profile Handler.
GET /user

Creates the caller's profile on first authentication, then returns it with
certification progress and the dashboard summary (current files, recent
certificates and counters).
"""
from docstranslate.auth import get_user_email, get_user_name, require_user
from docstranslate.certification import calculate_progress
from docstranslate.dashboard import DashboardService
from docstranslate.errors import DocsTranslateError
from docstranslate.logging import logger, log_event
from docstranslate.profiles import ProfileService
from docstranslate.utils import error_response, internal_error_response, success_response

profiles = ProfileService()
dashboard = DashboardService()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)

        profile = profiles.get(user_id)
        if not profile:
            profile = profiles.initialize_profile(user_id, get_user_name(event), get_user_email(event))

        return success_response({
            'user': profile.to_dict(),
            'progress': calculate_progress(profile).to_dict(),
            'dashboard': dashboard.summary(profile)
        })

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error fetching profile: {e}")
        return internal_error_response()
