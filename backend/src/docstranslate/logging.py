"""
Logging utilities for Lambda handlers.
"""
import logging
import json

# Configure logger
logger = logging.getLogger('docstranslate')
logger.setLevel(logging.INFO)

# Add handler if not already configured
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(request_id)s - %(message)s',
        defaults={'request_id': '-'}
    ))
    logger.addHandler(handler)


def request_summary(event: dict) -> dict:
    """
    Reduce an API Gateway event to what identifies the request: route,
    path and query parameters, and the caller. Bodies and headers can carry
    translated text and tokens and are never included.
    """
    context = event.get('requestContext') or {}
    claims = (context.get('authorizer') or {}).get('claims') or {}
    return {
        'requestId': context.get('requestId'),
        'method': event.get('httpMethod'),
        'resource': event.get('resource') or event.get('path'),
        'pathParameters': event.get('pathParameters'),
        'queryStringParameters': event.get('queryStringParameters'),
        'caller': claims.get('sub'),
        'sourceIp': (context.get('identity') or {}).get('sourceIp'),
    }


def log_event(event: dict) -> None:
    """Log the incoming request, tagged with its API Gateway request id."""
    try:
        summary = request_summary(event)
        logger.info(
            f"Request: {json.dumps(summary, default=str)}",
            extra={'request_id': summary['requestId'] or '-'}
        )
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
