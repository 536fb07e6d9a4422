"""
AWS Utilities: Client Init • Presigned URLs • Object Put/Delete • Prefix Cleanup
=================================================================================

Purpose
-------
Small helper module for interacting with AWS:
- Initialize any boto3 client (S3 with Signature V4)
- Generate presigned PUT (upload) and GET (download) URLs
- Upload a validated file body with an explicit content type
- Delete one object, or everything under a user prefix

Configuration (from `varating.database.config.config.settings`)
-----------------------------------------------------------------
- AWS_ACCESS_KEY / AWS_SECRET_KEY : optional static credentials; when absent the
  execution role (Lambda) or default chain is used
- REGION                          : AWS region (e.g., "us-east-2")
- BUCKET_NAME                     : bucket holding user documents
- PRESIGNED_URL_EXPIRES           : presigned URL lifetime, seconds

Security Notes
--------------
- Credentials are never logged.
- Presigned URLs grant temporary access; keys are always scoped to
  ``<userId>/...`` by the callers.
"""

import logging
from typing import Optional

import boto3
import botocore.config

from varating.database.config.config import settings

logger = logging.getLogger("uvicorn")


def get_client(service: str = "s3", region: Optional[str] = None):
    """
    Initialize and return a low-level boto3 client.

    Parameters
    ----------
    service : str
        Service name (``"s3"``, ``"textract"``, ``"sqs"``,
        ``"bedrock-agent-runtime"``, ``"bedrock-runtime"``).
    region : str, optional
        Region override (Bedrock lives in ``BEDROCK_REGION``).

    Returns
    -------
    botocore.client.BaseClient

    Raises
    ------
    botocore.exceptions.NoCredentialsError
    botocore.exceptions.PartialCredentialsError
    """
    options = {"region_name": region or settings.REGION}
    if settings.AWS_ACCESS_KEY and settings.AWS_SECRET_KEY:
        options["aws_access_key_id"] = settings.AWS_ACCESS_KEY
        options["aws_secret_access_key"] = settings.AWS_SECRET_KEY
    if service == "s3":
        options["config"] = botocore.config.Config(signature_version="s3v4")
    return boto3.client(service, **options)


def object_url(key: str) -> str:
    """Public-style HTTPS URL of an object, as stored in ``documents.file_url``."""
    return f"https://{settings.BUCKET_NAME}.s3.{settings.REGION}.amazonaws.com/{key}"


def upload_url(key: str, content_type: str, s3_client=None, expires: Optional[int] = None) -> str:
    """
    Generate a presigned URL for uploading an object with PUT.

    Parameters
    ----------
    key : str
        Object key (``<userId>/<fileName>``).
    content_type : str
        Content type the client must send.
    s3_client : botocore.client.S3, optional
        Client returned by `get_client()`.
    expires : int, optional
        Lifetime in seconds (default ``PRESIGNED_URL_EXPIRES``).

    Returns
    -------
    str
    """
    s3_client = s3_client or get_client("s3")
    return s3_client.generate_presigned_url(
        "put_object",
        Params={"Bucket": settings.BUCKET_NAME, "Key": key, "ContentType": content_type},
        ExpiresIn=expires or settings.PRESIGNED_URL_EXPIRES,
    )


def download(key: str, s3_client=None, expires: Optional[int] = None) -> str:
    """
    Generate a presigned URL for downloading an object.

    Returns
    -------
    str
        A presigned URL that allows temporary GET access.
    """
    s3_client = s3_client or get_client("s3")
    return s3_client.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.BUCKET_NAME, "Key": key},
        ExpiresIn=expires or settings.PRESIGNED_URL_EXPIRES,
    )


def upload(body: bytes, key: str, content_type: str, s3_client=None) -> None:
    """
    Store a file body under ``key`` with an explicit content type.

    Raises
    ------
    botocore.exceptions.ClientError
    """
    s3_client = s3_client or get_client("s3")
    s3_client.put_object(Bucket=settings.BUCKET_NAME, Key=key, Body=body, ContentType=content_type)


def delete_object(key: str, s3_client=None) -> None:
    s3_client = s3_client or get_client("s3")
    s3_client.delete_object(Bucket=settings.BUCKET_NAME, Key=key)


def delete_prefix(prefix: str, s3_client=None) -> int:
    """
    Delete every object under ``prefix``.

    Returns
    -------
    int
        Number of deleted objects.
    """
    s3_client = s3_client or get_client("s3")
    paginator = s3_client.get_paginator("list_objects_v2")
    deleted = 0
    for page in paginator.paginate(Bucket=settings.BUCKET_NAME, Prefix=prefix):
        keys = [{"Key": item["Key"]} for item in page.get("Contents", [])]
        if not keys:
            continue
        s3_client.delete_objects(Bucket=settings.BUCKET_NAME, Delete={"Objects": keys, "Quiet": True})
        deleted += len(keys)
    logger.info(f"Deleted {deleted} objects under {prefix}")
    return deleted
