"""OpenID Connect discovery of OP metadata.

Example:
    >>> from fedrp.discovery import DiscoveryService
    >>> metadata = await DiscoveryService().discover("https://op.example.com")
"""

from fedrp.discovery.models import (
    DISCOVERY_PATH,
    REQUIRED_FIELDS,
    OPMetadata,
    build_discovery_url,
    missing_required_fields,
)
from fedrp.discovery.service import DiscoveryService

__all__ = [
    "DISCOVERY_PATH",
    "REQUIRED_FIELDS",
    "DiscoveryService",
    "OPMetadata",
    "build_discovery_url",
    "missing_required_fields",
]
