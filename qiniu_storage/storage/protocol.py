"""Storage backend protocol definition."""

from dataclasses import dataclass
from typing import BinaryIO, List, Protocol, Union

ByteSource = Union[bytes, bytearray, BinaryIO]


@dataclass(frozen=True)
class ObjectInfo:
    """One object as seen by a listing or metadata probe.

    ``mtime`` and ``ctime`` are Unix seconds. Backends that only track a
    single timestamp report it in both fields.
    """

    key: str
    size: int
    mtime: int
    ctime: int
    is_dir: bool = False


class ObjectStorage(Protocol):
    """Protocol defining the interface for object storage backends.

    Every call is one blocking round trip on the caller's thread. Failures
    are raised as ``StorageError`` subclasses.
    """

    def __str__(self) -> str:
        """Human-readable identifier, e.g. ``qiniu://<bucket>``."""
        ...

    def get(self, key: str, off: int = 0, limit: int = -1) -> BinaryIO:
        """Open an object for reading.

        Args:
            key: Object key
            off: First byte to read
            limit: Number of bytes to read; ``<= 0`` reads to the end

        Returns:
            BinaryIO: Readable stream owned by the caller, who must close it
        """
        ...

    def put(self, key: str, source: ByteSource) -> None:
        """Store ``source`` under ``key``."""
        ...

    def copy(self, dst: str, src: str) -> None:
        """Server-side copy from ``src`` to ``dst``."""
        ...

    def exists(self, key: str) -> None:
        """Return normally if ``key`` exists, raise otherwise."""
        ...

    def head(self, key: str) -> ObjectInfo:
        """Metadata for one object."""
        ...

    def delete(self, key: str) -> None:
        """Delete ``key``."""
        ...

    def list(self, prefix: str, marker: str, limit: int) -> List[ObjectInfo]:
        """List at most ``limit`` objects under ``prefix`` after ``marker``.

        Results are ordered by key, ascending.
        """
        ...

    def create_multipart_upload(self, key: str) -> str:
        """Start a multipart upload and return its upload id."""
        ...

    def close(self) -> None:
        """Release connection pools; the backend is unusable afterwards."""
        ...

    def __enter__(self) -> "ObjectStorage":
        ...

    def __exit__(self, *exc_info) -> None:
        ...
