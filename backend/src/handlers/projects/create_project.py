"""
Create Project Handler.
POST /projects
Body: { "title": "...", "description": "...", "categories": [...],
        "files": [{ "fileName": "...", "originalText": "..." | "contentUrl": "..." }] }
"""
from docstranslate.auth import require_user
from docstranslate.cache import ListingCache
from docstranslate.errors import DocsTranslateError
from docstranslate.logging import logger, log_event
from docstranslate.projects import ProjectService
from docstranslate.utils import error_response, internal_error_response, parse_body, success_response

projects = ProjectService(cache=ListingCache())


def handler(event, context):
    log_event(event)

    try:
        author_id = require_user(event)
        body = parse_body(event)

        project = projects.create_project(
            author_id,
            title=body.get('title'),
            description=body.get('description') or '',
            categories=body.get('categories'),
            files=body.get('files')
        )
        return success_response(project, f"Created project with {len(project['files'])} files", status_code=201)

    except DocsTranslateError as e:
        logger.warning(f"Project creation rejected: {e.kind}: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception(f"Error creating project: {e}")
        return internal_error_response()
