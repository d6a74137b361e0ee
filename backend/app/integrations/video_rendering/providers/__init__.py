"""Video provider client implementations."""

from .base import ProviderClient, parse_retry_after_ms
from .sora import SoraClient
from .veo import VeoClient

__all__ = ["ProviderClient", "SoraClient", "VeoClient", "parse_retry_after_ms"]
