from .base import ProviderBase
from .knaben import KnabenProvider
from .registry import ProviderRegistry
from .torznab import TorznabProvider
from .x1337 import X1337Provider

__all__ = [
    "KnabenProvider",
    "ProviderBase",
    "ProviderRegistry",
    "TorznabProvider",
    "X1337Provider",
]
