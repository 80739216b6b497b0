"""
Storage Service

Stores uploaded CV files under a generated unique key and returns a
publicly resolvable URL. Supabase Storage is the default backend; S3 is
used when the Textract extractor needs the object in a bucket it can read.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import boto3
from supabase import Client, create_client

from cv_intake.config import Config
from cv_intake.utils.exceptions import StorageError, ValidationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoredFile:
    key: str
    public_url: str


def generate_key(filename: str, prefix: str = "") -> str:
    """
    Build a new object key: random hex id plus the original extension.

    Only the lower-cased extension comes from the client filename.
    """
    ext = Path(filename or "").suffix.lower()
    if ext and not ext[1:].isalnum():
        ext = ""
    key = f"{uuid.uuid4().hex}{ext}"
    return f"{prefix.strip('/')}/{key}" if prefix else key


class StorageService(ABC):
    """Object storage for uploaded files"""

    def __init__(self, config: Config):
        self.config = config

    async def store(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> StoredFile:
        """
        Upload ``content`` under a fresh key.

        Returns:
            StoredFile with the key and its public URL

        Raises:
            ValidationError: If content is empty
            StorageError: If configuration is missing or the write fails
        """
        if not content:
            raise ValidationError("Cannot store an empty file", "StorageService")

        key = generate_key(filename, self.config.storage.key_prefix)
        try:
            public_url = await asyncio.to_thread(
                self._put, key, content, content_type or DEFAULT_CONTENT_TYPE
            )
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[StorageService] Upload of {key} failed: {e}", exc_info=True)
            raise StorageError(f"Failed to upload file: {str(e)}", "StorageService") from e

        logger.info(f"[StorageService] ✅ Stored {filename} as {key} ({len(content)} bytes)")
        return StoredFile(key=key, public_url=public_url)

    async def delete(self, key: str) -> None:
        """Remove a stored object. Not used by the submission pipeline."""
        try:
            await asyncio.to_thread(self._remove, key)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"[StorageService] Delete of {key} failed: {e}", exc_info=True)
            raise StorageError(f"Failed to delete file: {str(e)}", "StorageService") from e
        logger.info(f"[StorageService] Deleted {key}")

    @abstractmethod
    def _put(self, key: str, content: bytes, content_type: str) -> str:
        """Blocking write; returns the public URL."""

    @abstractmethod
    def _remove(self, key: str) -> None:
        """Blocking delete."""


class SupabaseStorageService(StorageService):
    """Supabase Storage bucket with public URLs"""

    def __init__(self, config: Config, client: Optional[Client] = None):
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            storage = self.config.storage
            if not storage.supabase_url or not storage.supabase_key:
                raise StorageError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set", "StorageService"
                )
            self._client = create_client(storage.supabase_url, storage.supabase_key)
        return self._client

    def _put(self, key: str, content: bytes, content_type: str) -> str:
        bucket = self.client.storage.from_(self.config.storage.bucket)
        bucket.upload(
            path=key,
            file=content,
            file_options={"content-type": content_type},
        )
        return bucket.get_public_url(key)

    def _remove(self, key: str) -> None:
        self.client.storage.from_(self.config.storage.bucket).remove([key])


class S3StorageService(StorageService):
    """AWS S3 bucket, objects written public-read"""

    def __init__(self, config: Config, client: Optional[Any] = None):
        super().__init__(config)
        self._client = client

    @property
    def bucket(self) -> str:
        if not self.config.s3.bucket:
            raise StorageError("S3_BUCKET_NAME must be set", "StorageService")
        return self.config.s3.bucket

    @property
    def client(self) -> Any:
        if self._client is None:
            s3 = self.config.s3
            self._client = boto3.client(
                "s3",
                region_name=s3.region,
                aws_access_key_id=s3.access_key_id,
                aws_secret_access_key=s3.secret_access_key,
            )
        return self._client

    def public_url(self, key: str) -> str:
        region = self.config.s3.region
        if region == "us-east-1":
            return f"https://{self.bucket}.s3.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    def _put(self, key: str, content: bytes, content_type: str) -> str:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
            ACL="public-read",
        )
        return self.public_url(key)

    def _remove(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)


def create_storage_service(config: Config) -> StorageService:
    backend = config.storage.backend
    if backend == "s3":
        return S3StorageService(config)
    if backend == "supabase":
        return SupabaseStorageService(config)
    raise StorageError(f"Unknown STORAGE_BACKEND '{backend}'", "StorageService")
