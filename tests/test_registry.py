"""Backend registry and settings-driven factory tests."""

from unittest.mock import MagicMock

import pytest

from qiniu_storage.core.config import Settings
from qiniu_storage.core.errors import ConfigurationError, ErrorCode, InvalidEndpointError
from qiniu_storage.storage import BackendRegistry, create_storage, default_registry
from qiniu_storage.storage.qiniu import QiniuObjectStorage
from qiniu_storage.storage.s3 import S3ObjectStorage


@pytest.mark.unit
def test_default_registry_schemes():
    assert default_registry().schemes() == ["qiniu", "s3"]


@pytest.mark.unit
def test_registries_are_independent():
    one = BackendRegistry()
    one.register("mem", MagicMock())

    assert "mem" in one
    assert "mem" not in BackendRegistry()
    assert "mem" not in default_registry()


@pytest.mark.unit
def test_duplicate_registration_rejected():
    registry = BackendRegistry()
    registry.register("qiniu", MagicMock())

    with pytest.raises(ValueError, match="already registered"):
        registry.register("QINIU", MagicMock())


@pytest.mark.unit
def test_create_passes_arguments_through():
    factory = MagicMock()
    registry = BackendRegistry()
    registry.register("mem", factory)

    result = registry.create("MEM", "https://b.host", "ak", "sk", domain="d")

    factory.assert_called_once_with("https://b.host", "ak", "sk", domain="d")
    assert result is factory.return_value


@pytest.mark.unit
def test_unknown_scheme():
    with pytest.raises(ConfigurationError) as exc_info:
        default_registry().create("gcs", "https://b.host", "ak", "sk")

    assert exc_info.value.code == ErrorCode.CONFIG_UNKNOWN_SCHEME
    assert not exc_info.value.fatal


@pytest.mark.unit
def test_create_storage_from_settings():
    config = Settings(
        QINIU_ENDPOINT="https://media.cn-east-1-s3.qiniucs.com",
        QINIU_ACCESS_KEY="ak",
        QINIU_SECRET_KEY="sk",
        QINIU_DOMAIN="cdn.example.com/",
        QINIU_DOWNLOAD_EXPIRES=60,
    )

    storage = create_storage(config)

    assert isinstance(storage, QiniuObjectStorage)
    assert str(storage) == "qiniu://media"
    assert storage.downloader.domain == "cdn.example.com"
    assert storage.downloader.expires == 60


@pytest.mark.unit
def test_create_storage_s3_scheme():
    config = Settings(
        STORAGE_SCHEME="s3",
        QINIU_ENDPOINT="https://media.s3.example.com",
        QINIU_ACCESS_KEY="ak",
        QINIU_SECRET_KEY="sk",
    )

    assert isinstance(create_storage(config), S3ObjectStorage)


@pytest.mark.unit
def test_create_storage_malformed_endpoint_is_fatal():
    config = Settings(QINIU_ENDPOINT="media", QINIU_ACCESS_KEY="ak", QINIU_SECRET_KEY="sk")

    with pytest.raises(InvalidEndpointError) as exc_info:
        create_storage(config)

    assert exc_info.value.fatal


@pytest.mark.unit
def test_get_storage_is_cached(monkeypatch):
    import qiniu_storage.storage as storage_module

    config = Settings(
        QINIU_ENDPOINT="https://media.cn-east-1-s3.qiniucs.com",
        QINIU_ACCESS_KEY="ak",
        QINIU_SECRET_KEY="sk",
    )
    monkeypatch.setattr(storage_module, "settings", config)
    storage_module.get_storage.cache_clear()
    try:
        first = storage_module.get_storage()

        assert first is storage_module.get_storage()
        assert str(first) == "qiniu://media"
    finally:
        storage_module.get_storage.cache_clear()
