"""S3-compatible object storage backend."""

import hashlib
from datetime import datetime

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from kpi_spine.storage.base import FileInfo, Storage

logger = structlog.get_logger()

_MISSING_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _MISSING_CODES


def _build_client(
    endpoint_url: str | None,
    region: str,
    access_key: str | None,
    secret_key: str | None,
):
    options = {"region_name": region, "config": Config(signature_version="s3v4")}
    if endpoint_url:
        options["endpoint_url"] = endpoint_url
    if access_key and secret_key:
        options.update(aws_access_key_id=access_key, aws_secret_access_key=secret_key)
    return boto3.client("s3", **options)


class S3Storage(Storage):
    """
    KPI documents kept in an S3 bucket (AWS, MinIO, LocalStack).

    ``prefix`` scopes every key, so one bucket can hold several document
    sets (e.g. ``prod/metrics.json`` and ``staging/metrics.json``).
    Pass ``client`` to reuse an existing boto3 client.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = client or _build_client(endpoint_url, region, access_key, secret_key)

        logger.debug("s3_storage_initialized", bucket=bucket, prefix=self.prefix, endpoint=endpoint_url)

    def _key(self, path: str) -> str:
        key = path.lstrip("/")
        return f"{self.prefix}/{key}" if self.prefix else key

    def write(self, path: str, content: bytes | str, content_type: str | None = None) -> FileInfo:
        """Replace the object in one PUT; S3 never exposes a half-written object."""
        body = content.encode("utf-8") if isinstance(content, str) else content
        key = self._key(path)

        request = {"Bucket": self.bucket, "Key": key, "Body": body}
        if content_type:
            request["ContentType"] = content_type
        self.client.put_object(**request)

        logger.info("s3_object_written", bucket=self.bucket, key=key, size=len(body))
        return FileInfo(
            path=path,
            size_bytes=len(body),
            content_type=content_type,
            last_modified=datetime.now(),
            checksum=hashlib.sha256(body).hexdigest(),
        )

    def read(self, path: str) -> bytes:
        """Read an object. Any S3 failure other than a missing key surfaces as OSError."""
        key = self._key(path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if _is_missing(e):
                raise FileNotFoundError(f"Object not found: s3://{self.bucket}/{key}") from e
            raise OSError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise OSError(f"Failed to read s3://{self.bucket}/{key}: {e}") from e

    def exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            if _is_missing(e):
                return False
            raise
        return True
