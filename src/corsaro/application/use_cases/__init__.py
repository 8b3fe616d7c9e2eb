from .resolve_streams import StreamResolutionUseCase

__all__ = ["StreamResolutionUseCase"]
