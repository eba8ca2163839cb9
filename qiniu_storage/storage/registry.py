"""Scheme → backend constructor table."""

from typing import Any, Callable, Dict, List

from qiniu_storage.core.errors import ConfigurationError, ErrorCode
from qiniu_storage.storage.protocol import ObjectStorage

BackendFactory = Callable[..., ObjectStorage]


class BackendRegistry:
    """Maps URI schemes ("qiniu", "s3") to backend constructors.

    Populated explicitly at startup; nothing registers itself on import.
    Factories are called as ``factory(endpoint, access_key, secret_key, **options)``.
    """

    def __init__(self) -> None:
        self._factories: Dict[str, BackendFactory] = {}

    def register(self, scheme: str, factory: BackendFactory) -> None:
        scheme = scheme.lower()
        if scheme in self._factories:
            raise ValueError(f"Storage scheme '{scheme}' is already registered")
        self._factories[scheme] = factory

    def schemes(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, scheme: str) -> bool:
        return scheme.lower() in self._factories

    def create(
        self,
        scheme: str,
        endpoint: str,
        access_key: str,
        secret_key: str,
        **options: Any,
    ) -> ObjectStorage:
        """Construct the backend registered for ``scheme``.

        Raises:
            ConfigurationError: No backend registered for ``scheme``
            InvalidEndpointError: Raised by the backend for a malformed endpoint
        """
        factory = self._factories.get(scheme.lower())
        if factory is None:
            raise ConfigurationError(
                f"Unknown storage scheme: {scheme} (known: {', '.join(self.schemes())})",
                {"scheme": scheme},
                code=ErrorCode.CONFIG_UNKNOWN_SCHEME,
            )
        return factory(endpoint, access_key, secret_key, **options)


def default_registry() -> BackendRegistry:
    """Registry with every backend shipped in this package."""
    from qiniu_storage.storage.qiniu import QiniuObjectStorage
    from qiniu_storage.storage.s3 import S3ObjectStorage

    registry = BackendRegistry()
    registry.register("qiniu", QiniuObjectStorage.from_endpoint)
    registry.register("s3", S3ObjectStorage.from_endpoint)
    return registry
