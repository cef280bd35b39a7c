"""Tests for CLI configuration loading and validation."""

import pydantic
import pytest
import yaml

from src.cli.config import (
    EpesiConfig,
    GenerationConfig,
    ServerConfig,
    load_config,
    resolve_env_vars,
)


class TestDefaults:
    def test_server_defaults(self):
        cfg = ServerConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 8000
        assert cfg.log_level == "info"
        assert cfg.allowed_origins == []

    def test_generation_timeout_bounds(self):
        assert GenerationConfig(timeout=30).timeout == 30
        with pytest.raises(pydantic.ValidationError):
            GenerationConfig(timeout=1)
        with pytest.raises(pydantic.ValidationError):
            GenerationConfig(timeout=500)

    def test_to_environ_only_exports_set_values(self):
        assert EpesiConfig().to_environ() == {}

        cfg = EpesiConfig(
            server={"allowed_origins": ["http://a", "http://b"]},
            database={"url": "sqlite:///x.db"},
            generation={"model": "claude-test", "timeout": 45, "max_tokens": 2048},
        )
        assert cfg.to_environ() == {
            "DATABASE_URL": "sqlite:///x.db",
            "ANTHROPIC_MODEL": "claude-test",
            "EPESI_GENERATION_TIMEOUT": "45.0",
            "EPESI_MAX_TOKENS": "2048",
            "ALLOWED_ORIGINS": "http://a,http://b",
        }


class TestResolveEnvVars:
    """Tests for ${VAR} resolution in config values."""

    def test_resolves_env_var(self, monkeypatch):
        monkeypatch.setenv("TEST_SECRET", "my-secret-key")
        assert resolve_env_vars("${TEST_SECRET}") == "my-secret-key"

    def test_passthrough_no_vars(self):
        assert resolve_env_vars("plain-value") == "plain-value"

    def test_missing_env_var_returns_empty(self):
        assert resolve_env_vars("${DEFINITELY_NOT_SET_XYZ}") == ""

    def test_mixed_content(self, monkeypatch):
        monkeypatch.setenv("MY_HOST", "localhost")
        assert resolve_env_vars("postgresql://${MY_HOST}/epesi") == "postgresql://localhost/epesi"


class TestLoadConfig:
    """Tests for YAML config file loading."""

    def test_load_from_explicit_path(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(
            yaml.dump({"server": {"port": 9000}, "generation": {"model": "claude-x"}})
        )

        cfg = load_config(config_path=str(config_file))
        assert cfg is not None
        assert cfg.server.port == 9000
        assert cfg.generation.model == "claude-x"

    def test_returns_none_when_no_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert load_config() is None

    def test_finds_config_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "epesi.yml").write_text(yaml.dump({"server": {"host": "0.0.0.0"}}))
        monkeypatch.chdir(tmp_path)
        assert load_config().server.host == "0.0.0.0"

    def test_missing_explicit_path_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=str(tmp_path / "nope.yaml"))

    def test_env_var_override(self, tmp_path, monkeypatch):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"server": {"port": 8000}}))
        monkeypatch.setenv("EPESI_SERVER_PORT", "9999")
        monkeypatch.setenv("EPESI_SERVER_ALLOWED_ORIGINS", "http://a, http://b")
        monkeypatch.setenv("EPESI_API_KEY", "x" * 40)

        cfg = load_config(config_path=str(config_file))
        assert cfg.server.port == 9999
        assert cfg.server.allowed_origins == ["http://a", "http://b"]

    def test_dollar_var_resolution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EPESI_TEST_DB", "sqlite:///resolved.db")
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"database": {"url": "${EPESI_TEST_DB}"}}))

        cfg = load_config(config_path=str(config_file))
        assert cfg.database.url == "sqlite:///resolved.db"

    def test_empty_file_gives_defaults(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text("")
        assert load_config(config_path=str(config_file)) == EpesiConfig()

    def test_invalid_value_raises(self, tmp_path):
        config_file = tmp_path / "epesi.yaml"
        config_file.write_text(yaml.dump({"server": {"port": "not-a-port"}}))
        with pytest.raises(pydantic.ValidationError):
            load_config(config_path=str(config_file))
