"""Endpoint resolution for Qiniu Kodo buckets.

A Kodo endpoint packs three things into one URL::

    https://<bucket>.<region>-<provider-domain>
    https://media.cn-east-1-s3.qiniucs.com  ->  bucket="media",
                                                region="cn-east-1",
                                                zone=0

The region identifier addresses the S3-compatible API; the integer zone
code addresses the proprietary Kodo hosts.
"""

from dataclasses import dataclass
from typing import Dict
from urllib.parse import urlsplit

from qiniu_storage.core.errors import InvalidEndpointError


DEFAULT_ZONE = 0

REGION_ZONES: Dict[str, int] = {
    "cn-east-1": 0,
    "cn-north-1": 1,
    "cn-south-1": 2,
    "us-west-1": 3,
}

# Zone code -> Kodo region id used in host names
ZONE_REGION_IDS: Dict[int, str] = {
    0: "z0",
    1: "z1",
    2: "z2",
    3: "na0",
}


@dataclass(frozen=True)
class EndpointDescriptor:
    """Bucket identity derived from an endpoint URL."""

    bucket: str
    region: str
    zone: int
    host: str
    scheme: str = "https"

    @property
    def s3_endpoint_url(self) -> str:
        """TLS endpoint of the S3-compatible API (path-style addressing)."""
        return f"https://{self.host}"

    @property
    def region_id(self) -> str:
        return ZONE_REGION_IDS.get(self.zone, ZONE_REGION_IDS[DEFAULT_ZONE])


def zone_for_region(region: str) -> int:
    """Look up the zone code; unknown regions get ``DEFAULT_ZONE``."""
    return REGION_ZONES.get(region, DEFAULT_ZONE)


def resolve_endpoint(endpoint: str) -> EndpointDescriptor:
    """Split an endpoint URL into bucket, region and zone.

    Raises:
        InvalidEndpointError: The URL is not absolute, has no bucket label,
            or the region cannot be derived from the host.
    """
    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as exc:
        raise InvalidEndpointError(endpoint, str(exc)) from exc

    if not parts.scheme or not parts.netloc:
        raise InvalidEndpointError(endpoint, "expected an absolute URL like https://<bucket>.<region>-<domain>")

    # netloc keeps the bucket's case; hostname would lowercase it
    host = parts.netloc.rpartition("@")[2].partition(":")[0]
    bucket, sep, remainder = host.partition(".")
    if not sep or not bucket or not remainder:
        raise InvalidEndpointError(endpoint, "host has no bucket label")

    cut = remainder.rfind("-")
    if cut <= 0:
        raise InvalidEndpointError(endpoint, f"cannot derive region from '{remainder}'")
    region = remainder[:cut]

    # Keep an explicit port on the S3-compatible endpoint
    if port is not None:
        remainder = f"{remainder}:{port}"

    return EndpointDescriptor(
        bucket=bucket,
        region=region,
        zone=zone_for_region(region),
        host=remainder,
        scheme=parts.scheme,
    )
