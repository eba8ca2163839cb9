"""Signed-URL downloader tests."""

from email.utils import parsedate_to_datetime
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from qiniu_storage.core.errors import ConfigurationError, DownloadError, ErrorCode
from qiniu_storage.storage.download import SignedUrlDownloader


def recording_client(status_code=200, content=b"hello"):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, content=content)

    return httpx.Client(transport=httpx.MockTransport(handler)), requests


@pytest.mark.unit
def test_signed_url_is_private_and_time_scoped(auth):
    downloader = SignedUrlDownloader(auth, "cdn.example.com", expires=600)

    url = downloader.signed_url("/legacy/a b.bin")

    parts = urlsplit(url)
    query = parse_qs(parts.query)
    assert parts.scheme == "http"
    assert parts.netloc == "cdn.example.com"
    assert parts.path == "//legacy/a%20b.bin"
    assert "e" in query
    assert query["token"][0].startswith("test-access-key:")


@pytest.mark.unit
def test_domain_with_scheme_is_kept(auth):
    downloader = SignedUrlDownloader(auth, "https://cdn.example.com")

    assert downloader.base_url("/x") == "https://cdn.example.com//x"


@pytest.mark.unit
def test_missing_domain_is_configuration_error(auth):
    client, requests = recording_client()
    downloader = SignedUrlDownloader(auth, None, http_client=client)

    with pytest.raises(ConfigurationError) as exc_info:
        downloader.download("/x")

    assert exc_info.value.code == ErrorCode.CONFIG_MISSING_VALUE
    assert exc_info.value.details["setting"] == "QINIU_DOMAIN"
    assert not exc_info.value.fatal
    assert requests == []


@pytest.mark.unit
def test_date_header_is_current_utc(auth):
    client, requests = recording_client()
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    downloader.download("/x").close()

    date = parsedate_to_datetime(requests[0].headers["Date"])
    assert requests[0].headers["Date"].endswith("GMT")
    assert date.utcoffset().total_seconds() == 0


@pytest.mark.unit
@pytest.mark.parametrize(
    "off,limit,expected",
    [
        (0, -1, None),
        (0, 0, None),
        (0, 10, "bytes=0-9"),
        (5, 10, "bytes=5-14"),
        (5, 0, "bytes=5-"),
        (5, -1, "bytes=5-"),
    ],
)
def test_range_header(auth, off, limit, expected):
    client, requests = recording_client(status_code=206 if expected else 200)
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    downloader.download("/x", off, limit).close()

    assert requests[0].headers.get("Range") == expected


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [200, 206])
def test_success_statuses_return_stream(auth, status_code):
    client, _ = recording_client(status_code=status_code, content=b"payload")
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    stream = downloader.download("/x")
    try:
        assert stream.status_code == status_code
        assert stream.read() == b"payload"
    finally:
        stream.close()

    assert stream.closed


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [204, 301, 403, 404, 416, 500])
def test_other_statuses_raise_with_code(auth, status_code):
    client, _ = recording_client(status_code=status_code)
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    with pytest.raises(DownloadError) as exc_info:
        downloader.download("/x")

    assert exc_info.value.status_code == status_code
    assert str(exc_info.value) == f"Status code: {status_code}"


@pytest.mark.unit
def test_transport_errors_propagate(auth):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    with pytest.raises(httpx.ConnectError):
        downloader.download("/x")


@pytest.mark.unit
def test_stream_reads_in_small_chunks(auth):
    client, _ = recording_client(content=b"0123456789")
    downloader = SignedUrlDownloader(auth, "cdn.example.com", http_client=client)

    stream = downloader.download("/x")
    try:
        assert stream.read(4) == b"0123"
        assert stream.read(4) == b"4567"
        assert stream.read() == b"89"
        assert stream.read(1) == b""
    finally:
        stream.close()
