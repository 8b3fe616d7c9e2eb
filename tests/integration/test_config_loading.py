"""Integration tests for configuration loading with layered precedence.

Exercises the real load_config() with YAML files, environment variables
and CLI overrides: defaults < YAML < ENV < CLI.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml

from corsaro.infrastructure.config.load import load_config

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("CORSARO_"):
            monkeypatch.delenv(key)


def _write_yaml(tmp_path: Path, data: object, name: str = "config.yaml") -> Path:
    path = tmp_path / name
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


@pytest.fixture()
def yaml_config(tmp_path: Path) -> Path:
    return _write_yaml(
        tmp_path,
        {
            "app_name": "corsaro-test",
            "environment": "test",
            "tmdb_api_key": "yaml-key",
            "http": {"timeout_seconds": 12.0, "user_agent": "TestAgent/1.0"},
            "logging": {"level": "DEBUG", "format": "console"},
            "cache": {
                "backend": "diskcache",
                "dir": str(tmp_path / "cache"),
                "streams_ttl_seconds": 600,
            },
            "providers": {
                "1337x_enabled": False,
                "torznab": [
                    {
                        "name": "corsaronero",
                        "url": "http://jackett:9117/api/v2.0/indexers/cn/results/torznab",
                        "api_key": "jk",
                    }
                ],
            },
            "pipeline": {"max_queries": 4},
            "debrid": {"candidate_budget": 6, "cleanup_discarded": True},
        },
    )


class TestDefaultsOnly:
    def test_defaults_produce_valid_config(self) -> None:
        config = load_config()
        assert config.app_name == "corsaro"
        assert config.environment == "dev"
        assert config.log_level == "INFO"
        assert config.log_format == "console"
        assert config.cache.backend == "memory"
        assert config.cache.streams_ttl_seconds == 1800
        assert config.cache.empty_ttl_seconds == 300
        assert not hasattr(config.cache, "catalog_ttl_seconds")
        assert config.cache.ttl_for("metadata") == 86_400
        assert config.providers.knaben_enabled is True
        assert config.providers.x1337_enabled is True
        assert config.pipeline.max_queries == 8
        assert config.debrid.candidate_budget == 12
        assert config.debrid.min_interval_seconds == 0.6
        assert config.tmdb_api_key is None

    def test_prod_derives_json_logs(self) -> None:
        config = load_config(cli_overrides={"environment": "prod"})
        assert config.log_format == "json"


class TestYamlOverrides:
    def test_sections_applied(self, yaml_config: Path, tmp_path: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.app_name == "corsaro-test"
        assert config.environment == "test"
        assert config.tmdb_api_key == "yaml-key"
        assert config.http_timeout_seconds == 12.0
        assert config.http_user_agent == "TestAgent/1.0"
        assert config.log_level == "DEBUG"
        assert config.cache.backend == "diskcache"
        assert config.cache.directory == tmp_path / "cache"
        assert config.cache.streams_ttl_seconds == 600
        assert config.cache.empty_ttl_seconds == 300
        assert config.pipeline.max_queries == 4
        assert config.debrid.candidate_budget == 6
        assert config.debrid.cleanup_discarded is True

    def test_provider_alias_and_torznab(self, yaml_config: Path) -> None:
        config = load_config(config_path=yaml_config)
        assert config.providers.x1337_enabled is False
        assert config.providers.knaben_enabled is True
        (indexer,) = config.providers.torznab
        assert indexer.name == "corsaronero"
        assert indexer.scope == "local"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nonexistent.yaml")

    def test_empty_file_keeps_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(config_path=path).app_name == "corsaro"

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, ["not", "a", "mapping"])
        with pytest.raises(ValueError, match="mapping"):
            load_config(config_path=path)

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path, {"pipeline": {"max_queries": 0}})
        with pytest.raises(ValueError, match="max_queries"):
            load_config(config_path=path)


class TestEnvOverrides:
    def test_env_beats_yaml(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CORSARO_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("CORSARO_TMDB_API_KEY", "env-key")
        monkeypatch.setenv("CORSARO_CANDIDATE_BUDGET", "3")
        monkeypatch.setenv("CORSARO_CACHE_BACKEND", "memory")

        config = load_config(config_path=yaml_config)
        assert config.log_level == "WARNING"
        assert config.tmdb_api_key == "env-key"
        assert config.debrid.candidate_budget == 3
        assert config.cache.backend == "memory"
        assert config.pipeline.max_queries == 4

    def test_env_cache_dir_beats_yaml(
        self, yaml_config: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CORSARO_CACHE_DIR", str(tmp_path / "env-cache"))
        config = load_config(config_path=yaml_config)
        assert config.cache.directory == tmp_path / "env-cache"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("CORSARO_REQUEST_DEADLINE_SECONDS=9\n", encoding="utf-8")
        try:
            config = load_config(dotenv_path=env_file)
        finally:
            os.environ.pop("CORSARO_REQUEST_DEADLINE_SECONDS", None)
        assert config.pipeline.request_deadline_seconds == 9.0

    def test_missing_dotenv_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(dotenv_path=tmp_path / "missing.env")


class TestCliOverrides:
    def test_cli_beats_env(
        self, yaml_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CORSARO_LOG_LEVEL", "WARNING")
        config = load_config(
            config_path=yaml_config,
            cli_overrides={"log_level": "ERROR", "max_queries": 2},
        )
        assert config.log_level == "ERROR"
        assert config.pipeline.max_queries == 2

    def test_cli_sectioned_block(self) -> None:
        config = load_config(cli_overrides={"debrid": {"movie_min_mb": 700}})
        assert config.debrid.movie_min_mb == 700
        assert config.debrid.series_min_mb == 50
