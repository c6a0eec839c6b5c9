"""
List Available Files Handler.
GET /projects/{projectId}/files/available

Returns the project's files that are still open for claiming. The listing
is cached and invalidated whenever a file of the project is claimed.
"""
from docstranslate.auth import require_user
from docstranslate.cache import ListingCache
from docstranslate.errors import DocsTranslateError
from docstranslate.logging import logger, log_event
from docstranslate.projects import ProjectService
from docstranslate.utils import error_response, get_path_param, internal_error_response, success_response

projects = ProjectService(cache=ListingCache())


def handler(event, context):
    log_event(event)

    try:
        require_user(event)
        project_id = get_path_param(event, 'projectId')

        files = projects.list_available_files(project_id)
        return success_response({
            'projectId': project_id,
            'files': files,
            'totalFiles': len(files)
        })

    except DocsTranslateError as e:
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error listing available files: {e}")
        return internal_error_response()
