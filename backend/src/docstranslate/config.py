"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the translation platform.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    FILES_TABLE = os.environ.get('FILES_TABLE', '')
    PROFILES_TABLE = os.environ.get('PROFILES_TABLE', '')
    REVIEWS_TABLE = os.environ.get('REVIEWS_TABLE', '')
    PROJECTS_TABLE = os.environ.get('PROJECTS_TABLE', '')
    CERTIFICATES_TABLE = os.environ.get('CERTIFICATES_TABLE', '')
    CERTIFICATE_CODES_TABLE = os.environ.get('CERTIFICATE_CODES_TABLE', '')

    # Optional best-effort tables (empty disables the feature)
    CACHE_TABLE = os.environ.get('CACHE_TABLE', '')
    RATE_LIMIT_TABLE = os.environ.get('RATE_LIMIT_TABLE', '')

    # Content store for oversized original text
    CONTENT_BUCKET = os.environ.get('CONTENT_BUCKET', '')
    CONTENT_FETCH_TIMEOUT = float(os.environ.get('CONTENT_FETCH_TIMEOUT', '10'))

    # Review workflow
    REVIEW_SLA_DAYS = int(os.environ.get('REVIEW_SLA_DAYS', '3'))
    REVIEW_ESTIMATED_HOURS = int(os.environ.get('REVIEW_ESTIMATED_HOURS', '2'))

    # Listing cache and rate limiting
    AVAILABLE_FILES_CACHE_TTL = int(os.environ.get('AVAILABLE_FILES_CACHE_TTL', '300'))
    MUTATION_RATE_LIMIT = int(os.environ.get('MUTATION_RATE_LIMIT', '30'))
    MUTATION_RATE_WINDOW = int(os.environ.get('MUTATION_RATE_WINDOW', '60'))
    VERIFY_RATE_LIMIT = int(os.environ.get('VERIFY_RATE_LIMIT', '60'))
    VERIFY_RATE_WINDOW = int(os.environ.get('VERIFY_RATE_WINDOW', '60'))

    # Retries of TransactWriteItems cancelled by a concurrent transaction
    TRANSACTION_MAX_ATTEMPTS = int(os.environ.get('TRANSACTION_MAX_ATTEMPTS', '8'))
    TRANSACTION_RETRY_BASE_DELAY = float(os.environ.get('TRANSACTION_RETRY_BASE_DELAY', '0.05'))
    TRANSACTION_RETRY_MAX_DELAY = float(os.environ.get('TRANSACTION_RETRY_MAX_DELAY', '1.0'))

    # Dashboard
    DASHBOARD_FILES_LIMIT = int(os.environ.get('DASHBOARD_FILES_LIMIT', '10'))
    DASHBOARD_CERTIFICATES_LIMIT = int(os.environ.get('DASHBOARD_CERTIFICATES_LIMIT', '5'))

    # Certificates
    CERTIFICATE_CODE_PREFIX = os.environ.get('CERTIFICATE_CODE_PREFIX', 'DOCS')


config = Config()
