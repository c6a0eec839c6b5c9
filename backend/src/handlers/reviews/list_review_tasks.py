"""
List Review Tasks Handler.
GET /reviews?status=pending&limit=50

Review queue for moderators.
"""
from docstranslate.auth import require_user
from docstranslate.errors import DocsTranslateError, ForbiddenError, ValidationError
from docstranslate.logging import logger, log_event
from docstranslate.models import ReviewStatus
from docstranslate.profiles import ProfileService
from docstranslate.reviews import ReviewTaskRegistry
from docstranslate.utils import error_response, get_query_param, internal_error_response, success_response

profiles = ProfileService()
reviews = ReviewTaskRegistry()


def handler(event, context):
    log_event(event)

    try:
        user_id = require_user(event)
        profile = profiles.get(user_id)
        if not profile or not profile.is_reviewer:
            raise ForbiddenError('Only moderators can view the review queue')

        status = get_query_param(event, 'status', ReviewStatus.PENDING)
        limit = get_query_param(event, 'limit')
        try:
            limit = int(limit) if limit else None
        except ValueError:
            raise ValidationError('limit must be an integer')

        tasks = [task.to_item() for task in reviews.list_by_status(status, limit=limit)]
        tasks.sort(key=lambda t: t.get('dueDate', ''))

        return success_response({'reviews': tasks, 'total': len(tasks)})

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error listing review tasks: {e}")
        return internal_error_response()
