"""
Pytest configuration and shared fixtures for qiniu-storage tests.

This module provides:
- An in-memory Kodo bucket (see mock_qiniu.py)
- A fully wired QiniuObjectStorage on top of it
- Sample payloads
"""

import logging

import httpx
import pytest
import structlog
from qiniu import Auth

from qiniu_storage.storage.download import SignedUrlDownloader
from qiniu_storage.storage.qiniu import QiniuObjectStorage
from qiniu_storage.storage.s3 import S3ObjectStorage
from tests.mock_qiniu import FakeKodo


DOWNLOAD_DOMAIN = "cdn.example.com"


# ============================================================================
# Provider fixtures
# ============================================================================

@pytest.fixture
def kodo() -> FakeKodo:
    """Empty in-memory bucket named "media"."""
    return FakeKodo(bucket="media")


@pytest.fixture
def auth() -> Auth:
    """Real signer with throwaway keys; signing needs no network."""
    return Auth("test-access-key", "test-secret-key")


@pytest.fixture
def http_client(kodo: FakeKodo):
    """httpx client answering from the fake bucket."""
    client = httpx.Client(transport=kodo.transport())
    yield client
    client.close()


def build_storage(kodo: FakeKodo, auth: Auth, http_client: httpx.Client, domain=DOWNLOAD_DOMAIN) -> QiniuObjectStorage:
    return QiniuObjectStorage(
        bucket=kodo.bucket,
        baseline=S3ObjectStorage(kodo.bucket, kodo.s3_client()),
        bucket_manager=kodo,
        auth=auth,
        downloader=SignedUrlDownloader(auth, domain, http_client=http_client),
    )


@pytest.fixture
def storage(kodo: FakeKodo, auth: Auth, http_client: httpx.Client, monkeypatch) -> QiniuObjectStorage:
    """Adapter wired to the fake bucket on every protocol."""
    monkeypatch.setattr("qiniu_storage.storage.qiniu.put_data", kodo.put_data)
    return build_storage(kodo, auth, http_client)


@pytest.fixture
def storage_without_domain(kodo: FakeKodo, auth: Auth, http_client: httpx.Client, monkeypatch) -> QiniuObjectStorage:
    """Adapter with no download domain configured."""
    monkeypatch.setattr("qiniu_storage.storage.qiniu.put_data", kodo.put_data)
    return build_storage(kodo, auth, http_client, domain=None)


@pytest.fixture
def storage_factory(kodo: FakeKodo, auth: Auth, monkeypatch):
    """Build fresh adapters over one fake bucket, each with its own HTTP client."""
    monkeypatch.setattr("qiniu_storage.storage.qiniu.put_data", kodo.put_data)

    def factory(domain=DOWNLOAD_DOMAIN) -> QiniuObjectStorage:
        return build_storage(kodo, auth, httpx.Client(transport=kodo.transport()), domain=domain)

    return factory


# ============================================================================
# Test data fixtures
# ============================================================================

@pytest.fixture
def payload() -> bytes:
    """Deterministic 4 KiB payload with no repeating 256-byte blocks."""
    return bytes((i * 7 + i // 256) % 256 for i in range(4096))


# ============================================================================
# Logging fixtures
# ============================================================================

@pytest.fixture
def restore_logging():
    """Undo ``setup_logging`` so later tests keep pytest's own handlers."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
