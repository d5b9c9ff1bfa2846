import logging
import os
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")  # local | s3
STORAGE_ROOT = os.environ.get("WARDROBE_STORAGE", "storage")
RESULTS_DIR = os.path.join(STORAGE_ROOT, "results")

S3_BUCKET = os.environ.get("S3_BUCKET")
S3_REGION = os.environ.get("S3_REGION")
S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL")
S3_ACCESS_KEY_ID = os.environ.get("S3_ACCESS_KEY_ID")
S3_SECRET_ACCESS_KEY = os.environ.get("S3_SECRET_ACCESS_KEY")
S3_PREFIX = os.environ.get("S3_PREFIX", "wardrobe/")
CDN_BASE_URL = os.environ.get("CDN_BASE_URL")


class StorageError(Exception):
    pass


class Storage:
    @staticmethod
    def ensure_dirs() -> None:
        os.makedirs(RESULTS_DIR, exist_ok=True)

    @staticmethod
    def save_result_bytes(data: bytes, filename: str) -> str:
        Storage.ensure_dirs()
        path = os.path.join(RESULTS_DIR, os.path.basename(filename))
        with open(path, "wb") as f:
            f.write(data)
        return path

    @staticmethod
    def result_path(filename: str) -> Optional[str]:
        """Local path of a stored result, or None for unknown or unsafe names."""
        name = os.path.basename(filename)
        if not name or name != filename:
            return None
        path = os.path.join(RESULTS_DIR, name)
        return path if os.path.isfile(path) else None

    @staticmethod
    def is_configured() -> bool:
        return STORAGE_BACKEND == "s3" and bool(S3_BUCKET)

    @staticmethod
    def _s3_client():
        if not Storage.is_configured():
            return None
        session = boto3.session.Session()
        return session.client(
            "s3",
            region_name=S3_REGION,
            endpoint_url=S3_ENDPOINT_URL,
            aws_access_key_id=S3_ACCESS_KEY_ID,
            aws_secret_access_key=S3_SECRET_ACCESS_KEY,
            config=BotoConfig(signature_version="s3v4"),
        )

    @staticmethod
    def public_url(key: str) -> str:
        if CDN_BASE_URL:
            return f"{CDN_BASE_URL.rstrip('/')}/{key}"
        if S3_ENDPOINT_URL:
            return f"{S3_ENDPOINT_URL.rstrip('/')}/{S3_BUCKET}/{key}"
        return f"https://{S3_BUCKET}.s3.{S3_REGION or 'us-east-1'}.amazonaws.com/{key}"

    @staticmethod
    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type((BotoCoreError, ClientError)),
    )
    def _put(client, key: str, data: bytes, content_type: str) -> None:
        client.put_object(Bucket=S3_BUCKET, Key=key, Body=data, ACL="public-read", ContentType=content_type)

    @staticmethod
    def upload(data: bytes, key: str, content_type: str = "image/jpeg") -> str:
        """
        Upload bytes as a publicly readable object and return its URL.
        The external try-on API fetches inputs by URL, so objects are public-read.
        """
        client = Storage._s3_client()
        if client is None:
            raise StorageError("Object storage not configured (set STORAGE_BACKEND=s3 and S3_BUCKET)")
        full_key = S3_PREFIX.rstrip("/") + "/" + key.lstrip("/")
        try:
            Storage._put(client, full_key, data, content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload failed for {full_key}: {e}") from e
        logger.info("uploaded %s (%d bytes)", full_key, len(data))
        return Storage.public_url(full_key)
