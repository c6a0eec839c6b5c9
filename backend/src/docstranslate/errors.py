"""
Error taxonomy for the translation lifecycle.

Every error carries the HTTP status code the handlers respond with and a
short machine-readable kind. Conflict and invalid-state errors are
retryable after the client refreshes its view of the entity.
"""


class DocsTranslateError(Exception):
    """Base class for all domain errors."""
    status_code = 500
    kind = 'InternalError'
    retryable = False

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        body = {
            'success': False,
            'error': self.kind,
            'message': self.message
        }
        if self.retryable:
            body['retryable'] = True
        return body


class ValidationError(DocsTranslateError):
    """Malformed or missing input."""
    status_code = 400
    kind = 'ValidationError'


class UnauthorizedError(DocsTranslateError):
    """No credential or an invalid one."""
    status_code = 401
    kind = 'UnauthorizedError'


class ForbiddenError(DocsTranslateError):
    """Authenticated but not allowed to perform this action."""
    status_code = 403
    kind = 'ForbiddenError'


class NotFoundError(DocsTranslateError):
    """Referenced entity does not exist."""
    status_code = 404
    kind = 'NotFoundError'


class ConflictError(DocsTranslateError):
    """Lost a race against a concurrent writer."""
    status_code = 409
    kind = 'ConflictError'
    retryable = True


class InvalidStateError(DocsTranslateError):
    """Operation is not legal in the entity's current status."""
    status_code = 409
    kind = 'InvalidStateError'
    retryable = True


class RateLimitedError(DocsTranslateError):
    """Too many requests in the current window."""
    status_code = 429
    kind = 'RateLimitedError'
    retryable = True
