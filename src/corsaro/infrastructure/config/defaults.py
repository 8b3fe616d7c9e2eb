"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "corsaro",
    "environment": "dev",
    "http": {
        "timeout_seconds": 10.0,
        "user_agent": "Corsaro/0.1.0",
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "backend": "memory",
        "directory": "./.cache/corsaro",
        "streams_ttl_seconds": 1800,
        "empty_ttl_seconds": 300,
        "metadata_ttl_seconds": 86_400,
    },
    "providers": {
        "knaben_enabled": True,
        "x1337_enabled": True,
        "timeout_seconds": 8.0,
        "torznab": [],
    },
    "pipeline": {
        "max_queries": 8,
        "provider_timeout_seconds": 15.0,
        "request_deadline_seconds": 25.0,
    },
    "debrid": {
        "timeout_seconds": 20.0,
        "candidate_budget": 12,
        "min_interval_seconds": 0.6,
        "rate_limit_cooldown_seconds": 2.0,
        "series_min_mb": 50,
        "movie_min_mb": 200,
        "cleanup_discarded": False,
    },
}
