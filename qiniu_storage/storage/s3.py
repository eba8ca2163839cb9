"""S3-compatible storage backend."""

import io
from typing import Any, BinaryIO, List, Optional
from urllib.parse import urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from qiniu_storage.core.errors import (
    ErrorCode,
    InvalidEndpointError,
    ObjectNotFoundError,
    StorageError,
)
from qiniu_storage.core.logging_config import get_logger
from qiniu_storage.storage.protocol import ByteSource, ObjectInfo


logger = get_logger(__name__)


def byte_range(off: int, limit: int) -> Optional[str]:
    """HTTP Range header value for ``off``/``limit``, or None for the whole object.

    ``limit <= 0`` means "to the end".
    """
    if off > 0 or limit > 0:
        if limit > 0:
            return f"bytes={off}-{off + limit - 1}"
        return f"bytes={off}-"
    return None


def read_source(source: ByteSource) -> bytes:
    """Materialize ``source`` so its exact length is known up front.

    Streams are read from their current position; bytes already consumed
    by the caller are not uploaded.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if hasattr(source, 'seekable') and source.seekable():
        start = source.tell()
        end = source.seek(0, io.SEEK_END)
        source.seek(start)
        return source.read(end - start)
    return source.read()


class S3ObjectStorage:
    """Generic S3-compatible backend bound to one bucket.

    Used on its own for plain S3 services, and as the baseline read path of
    providers that speak S3 for most operations.
    """

    def __init__(
        self,
        bucket: str,
        client: Any,
        *,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """Initialize S3 storage backend.

        Args:
            bucket: Bucket name
            client: boto3 S3 client
            region: Region name, for logs only
            endpoint_url: Endpoint, for logs only
        """
        self.bucket = bucket
        self.client = client
        self.region = region
        self.endpoint_url = endpoint_url

        logger.debug(
            "s3_storage_backend_initialized",
            bucket=self.bucket,
            region=self.region,
            endpoint_url=self.endpoint_url,
        )

    @classmethod
    def connect(
        cls,
        bucket: str,
        access_key: str,
        secret_key: str,
        *,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        path_style: bool = True,
        timeout: Optional[float] = None,
    ) -> "S3ObjectStorage":
        """Build a boto3 client and wrap it.

        Args:
            bucket: Bucket name
            access_key: Access key id
            secret_key: Secret access key
            region: Region name (e.g. "cn-east-1")
            endpoint_url: S3-compatible endpoint (e.g. "https://s3.example.com")
            path_style: Address buckets in the path instead of the host
            timeout: Connect/read timeout in seconds
        """
        config = Config(
            s3={"addressing_style": "path" if path_style else "auto"},
            connect_timeout=timeout or 60,
            read_timeout=timeout or 60,
        )
        client = boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            use_ssl=True,
            config=config,
        )
        return cls(bucket, client, region=region, endpoint_url=endpoint_url)

    @classmethod
    def from_endpoint(
        cls,
        endpoint: str,
        access_key: str,
        secret_key: str,
        *,
        region: Optional[str] = None,
        timeout: Optional[float] = None,
        **_options: Any,
    ) -> "S3ObjectStorage":
        """Build from ``https://<bucket>.<s3-host>``.

        Raises:
            InvalidEndpointError: Malformed endpoint
        """
        parts = urlsplit(endpoint)
        bucket, sep, host = (parts.netloc or "").partition(".")
        if not parts.scheme or not sep or not bucket or not host:
            raise InvalidEndpointError(endpoint, "expected https://<bucket>.<s3-host>")

        return cls.connect(
            bucket,
            access_key,
            secret_key,
            region=region,
            endpoint_url=f"{parts.scheme}://{host}",
            timeout=timeout,
        )

    def __str__(self) -> str:
        return f"s3://{self.bucket}"

    def close(self) -> None:
        """Release the client's connection pool."""
        self.client.close()

    def __enter__(self) -> "S3ObjectStorage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _handle_s3_error(self, exc: Exception, operation: str, key: str) -> Exception:
        """Standardize S3 error handling with detailed context.

        Args:
            exc: Original exception
            operation: Operation being performed (e.g. 'get', 'put')
            key: Object key

        Returns:
            Exception: StorageError carrying the S3 error context
        """
        error_context = {
            "operation": operation,
            "bucket": self.bucket,
            "key": key,
        }
        code = {
            "put": ErrorCode.STORAGE_WRITE_FAILED,
            "copy": ErrorCode.STORAGE_WRITE_FAILED,
            "delete": ErrorCode.STORAGE_DELETE_FAILED,
        }.get(operation, ErrorCode.STORAGE_READ_FAILED)

        if isinstance(exc, ClientError):
            error_code = exc.response.get('Error', {}).get('Code', 'Unknown')
            error_message = exc.response.get('Error', {}).get('Message', str(exc))
            http_status = exc.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
            error_context.update({
                "error_code": error_code,
                "error_message": error_message,
                "http_status": http_status,
            })

            if error_code in ('NoSuchKey', 'NotFound', '404'):
                return ObjectNotFoundError(
                    http_status or 404,
                    f"Object not found: {self}/{key}",
                    details=error_context,
                )
            if error_code == 'NoSuchBucket':
                return StorageError(
                    code,
                    f"Bucket '{self.bucket}' does not exist",
                    error_context,
                )

        elif isinstance(exc, BotoCoreError):
            error_context["botocore_error"] = type(exc).__name__

        return StorageError(code, f"{operation.capitalize()} failed: {exc}", error_context)

    def get(self, key: str, off: int = 0, limit: int = -1) -> BinaryIO:
        """Open ``key`` for reading, optionally a byte range of it.

        Returns:
            BinaryIO: botocore StreamingBody; the caller closes it
        """
        params = {"Bucket": self.bucket, "Key": key}
        range_header = byte_range(off, limit)
        if range_header:
            params["Range"] = range_header

        try:
            response = self.client.get_object(**params)
        except (ClientError, BotoCoreError) as exc:
            logger.error(
                "s3_storage_get_failed",
                bucket=self.bucket,
                key=key,
                range=range_header,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise self._handle_s3_error(exc, "get", key) from exc

        logger.debug("s3_storage_get_opened", bucket=self.bucket, key=key, range=range_header)
        return response['Body']

    def put(self, key: str, source: ByteSource) -> None:
        """Upload ``source`` with a single PutObject."""
        data = read_source(source)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=io.BytesIO(data), ContentLength=len(data))
        except (ClientError, BotoCoreError) as exc:
            logger.error(
                "s3_storage_put_failed",
                bucket=self.bucket,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise self._handle_s3_error(exc, "put", key) from exc

        logger.info("s3_storage_put_success", bucket=self.bucket, key=key, bytes_written=len(data))

    def copy(self, dst: str, src: str) -> None:
        try:
            self.client.copy_object(
                Bucket=self.bucket,
                Key=dst,
                CopySource={"Bucket": self.bucket, "Key": src},
            )
        except (ClientError, BotoCoreError) as exc:
            raise self._handle_s3_error(exc, "copy", src) from exc

        logger.info("s3_storage_copy_success", bucket=self.bucket, src=src, dst=dst)

    def head(self, key: str) -> ObjectInfo:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise self._handle_s3_error(exc, "head", key) from exc

        mtime = int(response['LastModified'].timestamp()) if response.get('LastModified') else 0
        return ObjectInfo(
            key=key,
            size=int(response.get('ContentLength') or 0),
            mtime=mtime,
            ctime=mtime,
        )

    def exists(self, key: str) -> None:
        self.head(key)

    def delete(self, key: str) -> None:
        """Delete ``key``.

        Note:
            S3 delete is idempotent: deleting a missing key succeeds.
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise self._handle_s3_error(exc, "delete", key) from exc

        logger.info("s3_storage_delete_success", bucket=self.bucket, key=key)

    def list(self, prefix: str, marker: str, limit: int) -> List[ObjectInfo]:
        """One ListObjects page, starting after ``marker``."""
        params = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": limit}
        if marker:
            params["Marker"] = marker

        try:
            response = self.client.list_objects(**params)
        except (ClientError, BotoCoreError) as exc:
            raise self._handle_s3_error(exc, "list", prefix) from exc

        objects = []
        for entry in response.get('Contents', []):
            mtime = int(entry['LastModified'].timestamp()) if entry.get('LastModified') else 0
            objects.append(ObjectInfo(
                key=entry['Key'],
                size=int(entry.get('Size') or 0),
                mtime=mtime,
                ctime=mtime,
            ))
        return objects

    def create_multipart_upload(self, key: str) -> str:
        try:
            response = self.client.create_multipart_upload(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise self._handle_s3_error(exc, "create_multipart_upload", key) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError(
                ErrorCode.STORAGE_WRITE_FAILED,
                "S3 response missing UploadId",
                {"bucket": self.bucket, "key": key},
            )
        return upload_id
