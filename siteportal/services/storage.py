"""S3-compatible object storage for site document files.

Files never pass through the API: callers get presigned PUT/GET URLs and
talk to the bucket directly. ``SiteDocument.file_url`` stores the object key.
"""
import logging
import re
import uuid

import boto3
from botocore.config import Config

from siteportal.config import settings

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StorageNotConfigured(RuntimeError):
    pass


class DocumentStorage:
    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _client():
        if not DocumentStorage.is_configured():
            raise StorageNotConfigured(
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY and S3_SECRET_KEY"
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def safe_file_name(file_name: str) -> str:
        # Keep only the last path segment
        base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
        cleaned = _UNSAFE_KEY_CHARS.sub("_", base).strip("._")
        return cleaned or "document"

    @staticmethod
    def document_key(project_id: str | uuid.UUID, document_id: str | uuid.UUID, file_name: str) -> str:
        """``projects/<project>/documents/<document>/<nonce>-<file>``"""
        nonce = uuid.uuid4().hex[:8]
        return (
            f"projects/{project_id}/documents/{document_id}/"
            f"{nonce}-{DocumentStorage.safe_file_name(file_name)}"
        )

    @staticmethod
    def _presign(operation: str, params: dict) -> str:
        client = DocumentStorage._client()
        params = {"Bucket": settings.s3_bucket_name, **params}
        url: str = client.generate_presigned_url(
            operation, Params=params, ExpiresIn=settings.s3_presigned_url_expiry
        )
        logger.debug("Presigned %s for %s", operation, params["Key"])
        return url

    @staticmethod
    def upload_url(storage_key: str, mime_type: str) -> str:
        return DocumentStorage._presign(
            "put_object", {"Key": storage_key, "ContentType": mime_type}
        )

    @staticmethod
    def download_url(storage_key: str, download_name: str | None = None) -> str:
        params = {"Key": storage_key}
        if download_name:
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{DocumentStorage.safe_file_name(download_name)}"'
            )
        return DocumentStorage._presign("get_object", params)


storage = DocumentStorage()
