"""Avatar storage on S3."""
from __future__ import annotations

import os
import uuid
from typing import Tuple

import boto3
from flask import current_app

IMAGE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def aws_ready() -> Tuple[bool, str]:
    bucket = (current_app.config.get("AWS_S3_BUCKET") or "").strip()
    region = (current_app.config.get("AWS_REGION") or "").strip()
    if not bucket:
        return False, "AWS_S3_BUCKET not set"
    if not region:
        return False, "AWS_REGION not set"
    return True, ""


def s3_client():
    region = (current_app.config.get("AWS_REGION") or "").strip() or None
    return boto3.client("s3", region_name=region)


def avatar_key(user_id: str, filename: str, content_type: str) -> str:
    ext = IMAGE_EXTENSIONS.get(content_type) or os.path.splitext(filename or "")[1].lower() or ".bin"
    return f"avatars/{user_id}/{uuid.uuid4().hex}{ext}"


def public_url(bucket: str, region: str, key: str) -> str:
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def upload_avatar(user_id: str, data: bytes, filename: str, content_type: str) -> str:
    """Store the image and return its public URL. Raises botocore errors on failure."""
    bucket = current_app.config["AWS_S3_BUCKET"].strip()
    region = current_app.config["AWS_REGION"].strip()
    key = avatar_key(user_id, filename, content_type)
    s3_client().put_object(
        Bucket=bucket,
        Key=key,
        Body=data,
        ContentType=content_type,
        CacheControl="max-age=3600",
    )
    return public_url(bucket, region, key)
