"""Signed-URL downloads for keys the S3-compatible API cannot address."""

import io
from email.utils import formatdate
from typing import Iterator, Optional
from urllib.parse import quote

import httpx

from qiniu_storage.core.errors import ConfigurationError, DownloadError
from qiniu_storage.core.logging_config import get_logger
from qiniu_storage.storage.s3 import byte_range


logger = get_logger(__name__)

DOMAIN_SETTING = "QINIU_DOMAIN"


class ResponseStream(io.RawIOBase):
    """Readable binary stream over a streaming httpx response.

    Closing the stream closes the response and returns the connection.
    """

    def __init__(self, response: httpx.Response):
        super().__init__()
        self.response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        if not self.closed:
            self.response.close()
        super().close()


class SignedUrlDownloader:
    """Private, time-scoped downloads through the bucket's download domain.

    Args:
        auth: ``qiniu.Auth`` holding the access/secret key pair
        domain: Download domain bound to the bucket ("cdn.example.com" or
            "https://cdn.example.com"); None disables this path
        http_client: httpx client to send requests with
        expires: Lifetime of each signed URL in seconds
    """

    def __init__(
        self,
        auth,
        domain: Optional[str],
        *,
        http_client: Optional[httpx.Client] = None,
        expires: int = 3600,
        timeout: float = 30.0,
    ):
        self.auth = auth
        self.domain = domain
        self.expires = expires
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def base_url(self, key: str) -> str:
        domain = self.domain if "://" in self.domain else f"http://{self.domain}"
        return f"{domain}/{quote(key, safe='/')}"

    def signed_url(self, key: str) -> str:
        if not self.domain:
            raise ConfigurationError(
                f"Please set {DOMAIN_SETTING} to download keys with prefix '/'",
                {"setting": DOMAIN_SETTING, "key": key},
            )
        return self.auth.private_download_url(self.base_url(key), expires=self.expires)

    def download(self, key: str, off: int = 0, limit: int = -1) -> ResponseStream:
        """GET ``key`` through a signed URL.

        Args:
            key: Object key
            off: First byte to read
            limit: Number of bytes; ``<= 0`` reads to the end

        Returns:
            ResponseStream: Body of a 200/206 response; the caller closes it

        Raises:
            ConfigurationError: No download domain configured (no request sent)
            DownloadError: The server answered with another status
        """
        url = self.signed_url(key)

        headers = {"Date": formatdate(usegmt=True)}
        range_header = byte_range(off, limit)
        if range_header:
            headers["Range"] = range_header

        logger.debug("qiniu_signed_download_started", key=key, range=range_header)

        request = self.http_client.build_request("GET", url, headers=headers)
        response = self.http_client.send(request, stream=True)

        if response.status_code not in (200, 206):
            response.close()
            logger.error(
                "qiniu_signed_download_failed",
                key=key,
                range=range_header,
                status_code=response.status_code,
            )
            raise DownloadError(response.status_code, {"key": key})

        logger.debug(
            "qiniu_signed_download_opened",
            key=key,
            status_code=response.status_code,
        )
        return ResponseStream(response)

    def close(self) -> None:
        self.http_client.close()
