"""S3-compatible object storage client for document content.

MinIO (or any S3 API) holds the document bytes; the database only keeps the
object key and checksum. 주요 기능:
- 업로드/다운로드/삭제
- Presigned 다운로드 URL
- 버킷 생성
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from typing import BinaryIO, Optional

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

__all__ = ["ObjectStorageConfig", "ObjectStorageClient", "StoredObject"]

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ObjectStorageConfig:
    """Object storage 설정."""

    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region_name: str = "us-east-1"
    # 업로드 파일 최대 크기 (bytes, 기본 100MB)
    max_file_size: int = 100 * 1024 * 1024
    # Presigned URL 유효 시간 (초)
    presigned_url_expiry: int = 3600

    @classmethod
    def from_env(cls) -> ObjectStorageConfig:
        """환경변수에서 설정 로드 (기본값은 로컬 MinIO)."""
        return cls(
            endpoint_url=os.getenv("DMS_STORAGE_ENDPOINT", "http://localhost:9000"),
            access_key_id=os.getenv("DMS_STORAGE_ACCESS_KEY", "minioadmin"),
            secret_access_key=os.getenv("DMS_STORAGE_SECRET_KEY", "minioadmin"),
            bucket_name=os.getenv("DMS_STORAGE_BUCKET", "documents"),
            region_name=os.getenv("DMS_STORAGE_REGION", "us-east-1"),
            max_file_size=int(os.getenv("DMS_MAX_UPLOAD_BYTES", "104857600")),
            presigned_url_expiry=int(os.getenv("DMS_PRESIGNED_URL_EXPIRY", "3600")),
        )


@dataclass(frozen=True, slots=True)
class StoredObject:
    key: str
    bucket: str
    etag: str
    size: int
    checksum: str


class ObjectStorageClient:
    """boto3 S3 API 클라이언트."""

    def __init__(self, config: ObjectStorageConfig):
        self.config = config
        self._client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
            region_name=config.region_name,
        )

    def ensure_bucket(self) -> bool:
        """Create the configured bucket when missing. Returns ``True`` if created."""

        try:
            self._client.head_bucket(Bucket=self.config.bucket_name)
            return False
        except ClientError as e:
            if e.response["Error"]["Code"] not in {"404", "NoSuchBucket"}:
                raise
        self._client.create_bucket(Bucket=self.config.bucket_name)
        logger.info("bucket_created", bucket=self.config.bucket_name)
        return True

    def upload_file(
        self,
        file_content: BinaryIO | bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> StoredObject:
        """Upload *file_content* under *key*.

        Raises:
            ValueError: 파일 크기 초과
            ClientError: 업로드 오류
        """
        data = file_content if isinstance(file_content, bytes) else file_content.read()

        size = len(data)
        if size > self.config.max_file_size:
            raise ValueError(
                f"File size {size} exceeds maximum {self.config.max_file_size}"
            )

        checksum = hashlib.sha256(data).hexdigest()

        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type
        if metadata:
            extra_args["Metadata"] = metadata

        try:
            response = self._client.put_object(
                Bucket=self.config.bucket_name,
                Key=key,
                Body=data,
                **extra_args,
            )
        except ClientError as e:
            logger.error("object_upload_failed", key=key, error=str(e))
            raise

        logger.info(
            "object_uploaded",
            key=key,
            bucket=self.config.bucket_name,
            size=size,
            checksum=checksum,
        )
        return StoredObject(
            key=key,
            bucket=self.config.bucket_name,
            etag=response["ETag"].strip('"'),
            size=size,
            checksum=checksum,
        )

    def download_file(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.config.bucket_name, Key=key)
            data = response["Body"].read()
        except ClientError as e:
            logger.error("object_download_failed", key=key, error=str(e))
            raise
        logger.info("object_downloaded", key=key, size=len(data))
        return data

    def delete_file(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.config.bucket_name, Key=key)
        except ClientError as e:
            logger.error("object_delete_failed", key=key, error=str(e))
            raise
        logger.info("object_deleted", key=key)

    def generate_presigned_download_url(
        self,
        key: str,
        expiry: Optional[int] = None,
        filename: Optional[str] = None,
    ) -> str:
        """파일 다운로드용 Presigned URL 생성."""
        expiry = expiry or self.config.presigned_url_expiry
        params = {"Bucket": self.config.bucket_name, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'

        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expiry,
            )
        except ClientError as e:
            logger.error("presigned_url_failed", key=key, error=str(e))
            raise

    def file_exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.config.bucket_name, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise

    def health_check(self) -> bool:
        try:
            self._client.head_bucket(Bucket=self.config.bucket_name)
            return True
        except (ClientError, BotoCoreError):
            logger.warning("storage_unhealthy", bucket=self.config.bucket_name)
            return False
