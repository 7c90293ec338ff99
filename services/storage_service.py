"""
Two-tier image storage.

Every upload is written to S3 first. If that fails for any reason
(missing credentials, access denied, no such bucket, timeout, ...) the
bytes go to the local uploads directory instead, under a fresh key, and
the result reports the fallback backend. Only a failure of both tiers is
an error.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from models.pipeline import StorageBackend, StorageResult
from utils.config import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_SECRET_ACCESS_KEY,
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    LOCAL_STORAGE_BASE_URL,
    S3_BUCKET_NAME,
    S3_PUBLIC_READ,
    STORAGE_TIMEOUT_SECONDS,
    UPLOADS_DIR,
)
from utils.exceptions import StorageError, StorageUnavailableError
from utils.image_manager import file_extension

logger = logging.getLogger(__name__)


def generate_storage_key(filename: str) -> str:
    """Random UUID plus the original (lower-cased) extension."""
    return f"{uuid.uuid4()}{file_extension(filename)}"


def get_content_type(filename: str) -> str:
    return CONTENT_TYPES.get(file_extension(filename).lstrip("."), DEFAULT_CONTENT_TYPE)


class ObjectStore(ABC):
    """One storage tier."""

    name: str = "store"

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Write an object and return its location URI."""
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError


class S3ObjectStore(ObjectStore):
    """Primary tier: an S3 bucket."""

    name = "s3"

    def __init__(
        self,
        bucket: str = S3_BUCKET_NAME,
        client=None,
        public_read: bool = S3_PUBLIC_READ,
        timeout: float = STORAGE_TIMEOUT_SECONDS,
    ):
        self.bucket = bucket
        self.public_read = public_read
        self._client = client
        self._timeout = timeout

    @property
    def client(self):
        if self._client is None:
            self._client = create_s3_client(self._timeout)
        return self._client

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def put(self, key: str, data: bytes, content_type: str) -> str:
        if not self.bucket:
            raise StorageError(self.name, "No bucket configured")

        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if self.public_read:
            params["ACL"] = "public-read"

        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(self.name, f"Upload of {key} failed: {e}") from e

        logger.info(f"[S3] Uploaded: s3://{self.bucket}/{key}", extra={"storage_key": key})
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise StorageError(self.name, f"Retrieval of {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(self.name, f"Deletion of {key} failed: {e}") from e


class LocalObjectStore(ObjectStore):
    """Fallback tier: files under the uploads directory, served at /uploads."""

    name = "local"

    def __init__(self, root: Path = UPLOADS_DIR, base_url: str = LOCAL_STORAGE_BASE_URL):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path.parent != self.root.resolve():
            raise StorageError(self.name, f"Invalid storage key: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        # Write to a temp name first so a failed write never leaves a partial object
        tmp_path = path.with_name(f".{path.name}.part")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(self.name, f"Write of {key} failed: {e}") from e

        logger.info(f"[Local] Stored: {path}", extra={"storage_key": key})
        return f"{self.base_url}/{key}"

    def get(self, key: str) -> bytes:
        try:
            return self._path(key).read_bytes()
        except OSError as e:
            raise StorageError(self.name, f"Retrieval of {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(self.name, f"Deletion of {key} failed: {e}") from e


class StorageWriter:
    """Stores upload bytes on the primary tier, falling back to the local tier."""

    def __init__(self, primary: ObjectStore, fallback: ObjectStore):
        self.primary = primary
        self.fallback = fallback

    @property
    def stores(self) -> Dict[StorageBackend, ObjectStore]:
        return {StorageBackend.PRIMARY: self.primary, StorageBackend.FALLBACK: self.fallback}

    def store(self, data: bytes, filename: str) -> StorageResult:
        """
        Persist ``data`` under a new unique key.

        Args:
            data: Bytes to store
            filename: Logical filename; supplies the extension and content type

        Returns:
            StorageResult naming the backend that holds the bytes

        Raises:
            StorageUnavailableError: If both tiers fail
        """
        content_type = get_content_type(filename)

        key = generate_storage_key(filename)
        try:
            uri = self.primary.put(key, data, content_type)
            return StorageResult(storage_key=key, location_uri=uri, backend=StorageBackend.PRIMARY)
        except Exception as e:
            primary_error = e
            logger.warning(
                f"Primary storage unavailable, falling back to local storage: {e}",
                extra={"storage_key": key, "backend": StorageBackend.PRIMARY.value}
            )

        key = generate_storage_key(filename)
        try:
            uri = self.fallback.put(key, data, content_type)
        except Exception as e:
            logger.error(
                f"Fallback storage failed after primary failure: {e}",
                extra={"storage_key": key, "backend": StorageBackend.FALLBACK.value}
            )
            raise StorageUnavailableError(primary_error, e) from e

        return StorageResult(storage_key=key, location_uri=uri, backend=StorageBackend.FALLBACK)

    def read(self, key: str, backend: StorageBackend) -> bytes:
        return self.stores[StorageBackend(backend)].get(key)

    def delete(self, key: str, backend: StorageBackend) -> None:
        """Remove stored bytes from whichever tier holds them."""
        self.stores[StorageBackend(backend)].delete(key)
        logger.info(f"Deleted stored object {key}", extra={"storage_key": key, "backend": StorageBackend(backend).value})


def create_s3_client(timeout: float = STORAGE_TIMEOUT_SECONDS):
    """S3 client with explicit credentials if configured, else the default chain."""
    config = Config(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": 2},
    )
    kwargs = {"region_name": AWS_REGION, "config": config}
    if AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = AWS_SECRET_ACCESS_KEY
    return boto3.client("s3", **kwargs)


_writer: Optional[StorageWriter] = None


def get_storage_writer() -> StorageWriter:
    """Get the process-wide storage writer."""
    global _writer
    if _writer is None:
        _writer = StorageWriter(primary=S3ObjectStore(), fallback=LocalObjectStore())
    return _writer
