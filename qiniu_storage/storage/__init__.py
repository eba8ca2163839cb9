"""Object storage backends behind one contract."""

from functools import lru_cache
from typing import Optional
from qiniu_storage.core.config import Settings, settings
from .protocol import ObjectInfo, ObjectStorage
from .pagination import CursorState, ListCursor
from .registry import BackendRegistry, default_registry


def create_storage(config: Settings, registry: Optional[BackendRegistry] = None) -> ObjectStorage:
    """Build the backend selected by ``config.STORAGE_SCHEME``.

    Raises:
        ConfigurationError: Unknown scheme
        InvalidEndpointError: Malformed QINIU_ENDPOINT (fatal)
    """
    registry = registry or default_registry()
    return registry.create(
        config.STORAGE_SCHEME,
        config.QINIU_ENDPOINT,
        config.QINIU_ACCESS_KEY,
        config.QINIU_SECRET_KEY,
        domain=config.QINIU_DOMAIN,
        download_expires=config.QINIU_DOWNLOAD_EXPIRES,
        timeout=config.HTTP_TIMEOUT,
    )


@lru_cache()
def get_storage() -> ObjectStorage:
    """Process-wide backend built from the global settings."""
    return create_storage(settings)


__all__ = [
    "BackendRegistry",
    "CursorState",
    "ListCursor",
    "ObjectInfo",
    "ObjectStorage",
    "create_storage",
    "default_registry",
    "get_storage",
]
