"""
Content store access for oversized original text.

Documents too large to keep inline on the file item live either in the
content bucket (``s3://bucket/key``, a bucket URL, or a bare ``content/`` key)
or at an external raw URL. Only the word-count fallback reads them.
"""
from typing import Optional, Tuple

import boto3
import requests
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .logging import logger

s3_client = boto3.client(
    's3',
    region_name=config.AWS_REGION,
    config=BotoConfig(signature_version='s3v4')
)


class ContentUnavailable(Exception):
    """The referenced content could not be fetched."""


def parse_s3_location(url_or_key: str, bucket_name: Optional[str] = None) -> Optional[Tuple[str, str]]:
    """
    Resolve a URL or key to a (bucket, key) pair in S3.

    Args:
        url_or_key: ``s3://`` URL, bucket HTTPS URL or ``content/`` key
        bucket_name: Optional bucket name, defaults to config.CONTENT_BUCKET

    Returns:
        (bucket, key) or None if the location is not in S3
    """
    if not url_or_key:
        return None

    if url_or_key.startswith('s3://'):
        bucket, _, key = url_or_key[len('s3://'):].partition('/')
        return (bucket, key) if bucket and key else None

    bucket = bucket_name or config.CONTENT_BUCKET
    if not bucket:
        return None

    bucket_url = f"https://{bucket}.s3.amazonaws.com/"
    if url_or_key.startswith(bucket_url):
        return bucket, url_or_key[len(bucket_url):]

    if url_or_key.startswith('content/'):
        return bucket, url_or_key

    return None


def fetch_text(url_or_key: str, timeout: Optional[float] = None) -> str:
    """
    Fetch the text stored at a content location.

    Raises:
        ContentUnavailable: if the object or URL cannot be read
    """
    location = parse_s3_location(url_or_key)
    if location:
        bucket, key = location
        try:
            response = s3_client.get_object(Bucket=bucket, Key=key)
            return response['Body'].read().decode('utf-8')
        except (ClientError, BotoCoreError, UnicodeDecodeError) as e:
            logger.error(f"Error reading s3://{bucket}/{key}: {e}")
            raise ContentUnavailable(f"Could not read s3://{bucket}/{key}") from e

    if url_or_key.startswith('http://') or url_or_key.startswith('https://'):
        try:
            resp = requests.get(url_or_key, timeout=timeout or config.CONTENT_FETCH_TIMEOUT)
            resp.raise_for_status()
            return resp.text
        except requests.RequestException as e:
            logger.error(f"Error fetching {url_or_key}: {e}")
            raise ContentUnavailable(f"Could not fetch {url_or_key}") from e

    raise ContentUnavailable(f"Unsupported content location: {url_or_key}")
