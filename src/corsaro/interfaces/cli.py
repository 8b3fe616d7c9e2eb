"""``corsaro`` console entrypoint."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from corsaro.infrastructure.config import load_config
from corsaro.infrastructure.logging.setup import configure_logging
from corsaro.interfaces.app import create_app

log = structlog.get_logger(__name__)

DEFAULT_PORT = 7000

# argparse dest -> flat override key understood by load_config()
_OVERRIDE_FLAGS: dict[str, str] = {
    "environment": "environment",
    "log_level": "log_level",
    "log_format": "log_format",
    "cache_backend": "cache_backend",
    "cache_dir": "cache_dir",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="corsaro",
        description="Stremio addon: Italian torrent releases through Real-Debrid.",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", help="Bind host (default: $HOST or 0.0.0.0).")
    server.add_argument(
        "--port", type=int, help=f"Bind port (default: $PORT or {DEFAULT_PORT})."
    )

    files = parser.add_argument_group("configuration files")
    files.add_argument("--config", type=Path, help="YAML config file.")
    files.add_argument("--dotenv", type=Path, help=".env file with CORSARO_* variables.")

    overrides = parser.add_argument_group("overrides (win over YAML and env)")
    overrides.add_argument("--environment", choices=["dev", "test", "prod"])
    overrides.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    overrides.add_argument("--log-format", choices=["json", "console"])
    overrides.add_argument("--cache-backend", choices=["memory", "diskcache"])
    overrides.add_argument("--cache-dir", help="Directory of the diskcache backend.")
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Collect the override flags that were actually given."""
    return {
        key: getattr(args, dest)
        for dest, key in _OVERRIDE_FLAGS.items()
        if getattr(args, dest) is not None
    }


def bind_address(args: argparse.Namespace) -> tuple[str, int]:
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", str(DEFAULT_PORT)))
    return host, port


def start(argv: Iterable[str] | None = None) -> None:
    """Load configuration once, configure logging, then serve the addon."""
    args = build_parser().parse_args(list(sys.argv[1:] if argv is None else argv))

    config = load_config(
        config_path=args.config,
        dotenv_path=args.dotenv,
        cli_overrides=cli_overrides(args),
    )
    log_config = configure_logging(config)

    host, port = bind_address(args)
    log.info(
        "server_starting",
        host=host,
        port=port,
        environment=config.environment,
        cache_backend=config.cache.backend,
    )
    uvicorn.run(create_app(config), host=host, port=port, log_config=log_config)


if __name__ == "__main__":
    raise SystemExit(start())
