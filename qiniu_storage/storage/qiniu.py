"""Qiniu Kodo storage backend.

Kodo speaks two protocols. Reads go through its S3-compatible API, except
for keys starting with "/", which that API cannot address; those are
fetched through a signed download URL instead. Writes, copies, deletes,
metadata probes and listings use the proprietary Kodo API.
"""

from typing import Any, BinaryIO, List, Optional

import httpx
from qiniu import Auth, BucketManager, Region, put_data

from qiniu_storage.core.errors import (
    InvalidEndpointError,
    NotSupportedError,
    ObjectNotFoundError,
    ProviderError,
)
from qiniu_storage.core.logging_config import get_logger, operation_context
from qiniu_storage.storage.download import SignedUrlDownloader
from qiniu_storage.storage.endpoint import EndpointDescriptor, resolve_endpoint
from qiniu_storage.storage.pagination import ListCursor
from qiniu_storage.storage.protocol import ByteSource, ObjectInfo
from qiniu_storage.storage.s3 import S3ObjectStorage, read_source


logger = get_logger(__name__)

# Kodo status for "no such file or directory"
STATUS_NOT_FOUND = 612

# putTime is reported in units of 100ns
PUT_TIME_PER_SECOND = 10_000_000

MAX_LIST_LIMIT = 1000


def kodo_region(region_id: str) -> Region:
    """Host set of the proprietary API for one Kodo region id (z0, z1, ...)."""
    return Region(
        up_host=f"upload-{region_id}.qiniup.com",
        up_host_backup=f"up-{region_id}.qiniup.com",
        io_host=f"iovip-{region_id}.qiniuio.com",
        rs_host=f"rs-{region_id}.qiniuapi.com",
        rsf_host=f"rsf-{region_id}.qiniuapi.com",
        api_host=f"api-{region_id}.qiniuapi.com",
        scheme="https",
    )


def provider_error(info: Any, **details) -> ProviderError:
    """Wrap a failed ``qiniu.http.ResponseInfo`` without altering it."""
    status_code = getattr(info, "status_code", None)
    error_cls = ObjectNotFoundError if status_code == STATUS_NOT_FOUND else ProviderError
    return error_cls(
        status_code,
        getattr(info, "error", None),
        req_id=getattr(info, "req_id", None),
        details=details,
    )


def entry_to_object(entry: dict) -> ObjectInfo:
    # Kodo keeps one timestamp; it stands in for both mtime and ctime
    mtime = int(entry.get("putTime", 0)) // PUT_TIME_PER_SECOND
    return ObjectInfo(
        key=entry["key"],
        size=int(entry.get("fsize", 0)),
        mtime=mtime,
        ctime=mtime,
    )


class QiniuObjectStorage:
    """Kodo bucket behind the common object storage contract.

    ``list(prefix, marker, limit)`` keeps its traversal state on the
    instance and must not be called concurrently on one instance. Use
    ``open_listing``/``list_page`` for independent traversals.
    """

    def __init__(
        self,
        bucket: str,
        baseline: S3ObjectStorage,
        bucket_manager: BucketManager,
        auth: Auth,
        downloader: SignedUrlDownloader,
    ):
        self._bucket = bucket
        self.baseline = baseline
        self.bucket_manager = bucket_manager
        self.auth = auth
        self.downloader = downloader
        self._cursor = ListCursor()

    @classmethod
    def from_endpoint(
        cls,
        endpoint: str,
        access_key: str,
        secret_key: str,
        *,
        domain: Optional[str] = None,
        download_expires: int = 3600,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> "QiniuObjectStorage":
        """Build the adapter from ``https://<bucket>.<region>-<domain>``.

        Args:
            endpoint: Bucket endpoint URL
            access_key: Kodo access key
            secret_key: Kodo secret key
            domain: Download domain for keys starting with "/"
            download_expires: Signed URL lifetime in seconds
            timeout: HTTP timeout in seconds
            http_client: httpx client for signed downloads

        Raises:
            InvalidEndpointError: Malformed endpoint. This is fatal: the
                process cannot serve requests with this configuration.
        """
        try:
            descriptor = resolve_endpoint(endpoint)
        except InvalidEndpointError as exc:
            logger.critical("qiniu_invalid_endpoint", endpoint=endpoint, reason=exc.reason)
            raise

        return cls.from_descriptor(
            descriptor,
            access_key,
            secret_key,
            domain=domain,
            download_expires=download_expires,
            timeout=timeout,
            http_client=http_client,
        )

    @classmethod
    def from_descriptor(
        cls,
        descriptor: EndpointDescriptor,
        access_key: str,
        secret_key: str,
        *,
        domain: Optional[str] = None,
        download_expires: int = 3600,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ) -> "QiniuObjectStorage":
        baseline = S3ObjectStorage.connect(
            descriptor.bucket,
            access_key,
            secret_key,
            region=descriptor.region,
            endpoint_url=descriptor.s3_endpoint_url,
            path_style=True,
            timeout=timeout,
        )
        auth = Auth(access_key, secret_key)
        bucket_manager = BucketManager(auth, zone=kodo_region(descriptor.region_id))
        downloader = SignedUrlDownloader(
            auth,
            domain,
            http_client=http_client,
            expires=download_expires,
            timeout=timeout,
        )

        logger.info(
            "qiniu_storage_backend_initialized",
            bucket=descriptor.bucket,
            region=descriptor.region,
            zone=descriptor.zone,
            s3_endpoint=descriptor.s3_endpoint_url,
            download_domain=domain,
        )
        return cls(descriptor.bucket, baseline, bucket_manager, auth, downloader)

    @property
    def bucket(self) -> str:
        return self._bucket

    def __str__(self) -> str:
        return f"qiniu://{self._bucket}"

    def close(self) -> None:
        """Release the signed-download and S3-compatible connection pools."""
        self.downloader.close()
        self.baseline.close()

    def __enter__(self) -> "QiniuObjectStorage":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get(self, key: str, off: int = 0, limit: int = -1) -> BinaryIO:
        with operation_context("get", bucket=self._bucket, key=key):
            # The S3-compatible API cannot address keys starting with "/"
            if key.startswith("/"):
                return self.downloader.download(key, off, limit)
            return self.baseline.get(key, off, limit)

    def put(self, key: str, source: ByteSource) -> None:
        """Upload ``source`` in one request.

        The upload declares its length up front, so ``source`` is read
        to its end before anything is sent.
        """
        with operation_context("put", bucket=self._bucket, key=key):
            data = read_source(source)
            token = self.auth.upload_token(self._bucket, key)
            ret, info = put_data(token, key, data)
            if ret is None:
                logger.error("qiniu_put_failed", status_code=getattr(info, "status_code", None))
                raise provider_error(info, operation="put", bucket=self._bucket, key=key)

            logger.info("qiniu_put_success", bytes_written=len(data))

    def create_multipart_upload(self, key: str) -> str:
        raise NotSupportedError("multipart upload", str(self))

    def copy(self, dst: str, src: str) -> None:
        with operation_context("copy", bucket=self._bucket, src=src, dst=dst):
            ret, info = self.bucket_manager.copy(self._bucket, src, self._bucket, dst, force="true")
            if ret is None:
                raise provider_error(info, operation="copy", bucket=self._bucket, src=src, dst=dst)

            logger.info("qiniu_copy_success")

    def _stat(self, key: str) -> dict:
        with operation_context("stat", bucket=self._bucket, key=key):
            ret, info = self.bucket_manager.stat(self._bucket, key)
            if ret is None:
                logger.debug("qiniu_stat_failed", status_code=getattr(info, "status_code", None))
                raise provider_error(info, operation="stat", bucket=self._bucket, key=key)
            return ret

    def exists(self, key: str) -> None:
        self._stat(key)

    def head(self, key: str) -> ObjectInfo:
        return entry_to_object({"key": key, **self._stat(key)})

    def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing key raises the stat error."""
        with operation_context("delete", bucket=self._bucket, key=key):
            self.exists(key)

            ret, info = self.bucket_manager.delete(self._bucket, key)
            if ret is None:
                raise provider_error(info, operation="delete", bucket=self._bucket, key=key)

            logger.info("qiniu_delete_success")

    def open_listing(self, prefix: str = "", limit: int = MAX_LIST_LIMIT) -> ListCursor:
        """Start a traversal owned by the caller."""
        return ListCursor(prefix=prefix, limit=limit)

    def list_page(self, cursor: ListCursor) -> List[ObjectInfo]:
        """Fetch the next page of ``cursor`` and advance it.

        An exhausted cursor yields ``[]`` without contacting the provider.
        A response without a body raises ``ProviderError``.
        """
        if cursor.exhausted:
            return []

        limit = cursor.limit if 0 < cursor.limit <= MAX_LIST_LIMIT else MAX_LIST_LIMIT
        with operation_context("list", bucket=self._bucket, prefix=cursor.prefix):
            ret, eof, info = self.bucket_manager.list(
                self._bucket,
                prefix=cursor.prefix or None,
                marker=cursor.token or None,
                limit=limit,
            )

            if ret is None:
                raise provider_error(info, operation="list", bucket=self._bucket, prefix=cursor.prefix)

            entries = ret.get("items") or []
            cursor.advance("" if eof else ret.get("marker", ""))

            if eof and entries:
                # TODO: confirm with Kodo whether end-of-stream can come with a non-final page
                logger.debug("qiniu_list_eof_with_entries", entries=len(entries))

            logger.debug("qiniu_list_page_fetched", entries=len(entries), state=cursor.state.value)
            return [entry_to_object(entry) for entry in entries]

    def list(self, prefix: str, marker: str, limit: int) -> List[ObjectInfo]:
        """Marker-driven listing on the instance cursor.

        An empty ``marker`` restarts the traversal. A non-empty ``marker``
        continues it; once the provider reported the last page, further
        calls return ``[]`` without a round trip.
        """
        if marker == "":
            self._cursor.reset()
        elif not self._cursor.token:
            return []

        self._cursor.prefix = prefix
        self._cursor.limit = limit
        return self.list_page(self._cursor)
