from __future__ import annotations

from .load import load_config
from .schema import AppConfig, EnvOverrides
from .user_config import UserConfig, UserFilters, decode_user_config

__all__ = [
    "AppConfig",
    "EnvOverrides",
    "UserConfig",
    "UserFilters",
    "decode_user_config",
    "load_config",
]
