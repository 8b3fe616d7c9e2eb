from .cache import CachePort
from .debrid import DebridClientFactory, DebridClientPort
from .metadata import MetadataPort
from .provider import ProviderPort, ProviderScope

__all__ = [
    "CachePort",
    "DebridClientFactory",
    "DebridClientPort",
    "MetadataPort",
    "ProviderPort",
    "ProviderScope",
]
