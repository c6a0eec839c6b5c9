"""
Authentication utilities for extracting user info from Cognito tokens.

Bearer tokens are verified by the API Gateway Cognito authorizer; by the time
a handler runs, the verified claims are on the request context.
"""
from typing import Optional

from .errors import UnauthorizedError


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_email(event: dict) -> Optional[str]:
    """Extract user email from Cognito claims."""
    try:
        return event['requestContext']['authorizer']['claims']['email']
    except (KeyError, TypeError):
        return None


def get_user_name(event: dict) -> Optional[str]:
    """Extract display name from Cognito claims, falling back to the username."""
    try:
        claims = event['requestContext']['authorizer']['claims']
    except (KeyError, TypeError):
        return None
    return claims.get('name') or claims.get('cognito:username')


def require_user(event: dict) -> str:
    """Return the caller's user id or raise UnauthorizedError."""
    user_id = get_user_sub(event)
    if not user_id:
        raise UnauthorizedError('Missing or invalid credentials')
    return user_id
