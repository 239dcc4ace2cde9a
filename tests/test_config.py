"""Tests for config/settings.py."""

import yaml

from api_chaining.config.settings import load_settings

_ENV_KEYS = (
    "APICHAIN_CONFIG_FILE",
    "APICHAIN_DATA_DIR",
    "APICHAIN_LOG_LEVEL",
    "APICHAIN_HTTP_TIMEOUT",
    "APICHAIN_HTTP_ALLOW_PRIVATE_NETWORKS",
    "APICHAIN_HTTP_USER_AGENT",
)


def _clear_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_when_no_file_or_env(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    settings = load_settings(config_path=str(tmp_path / "nonexistent.yaml"))
    assert settings.http.timeout == 30.0
    assert settings.http.allow_private_networks is False
    assert settings.data_dir == "data"
    assert settings.log_level == "INFO"


def test_yaml_file_overrides_defaults(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "http": {"timeout": 10, "allow_private_networks": True},
        "data_dir": "/var/lib/apichain",
        "log_level": "debug",
    }))

    settings = load_settings(config_path=str(config_file))
    assert settings.http.timeout == 10.0
    assert settings.http.allow_private_networks is True
    assert settings.data_dir == "/var/lib/apichain"
    assert settings.log_level == "DEBUG"
    # Unset fields keep defaults
    assert settings.http.user_agent == "api-chaining/0.1"


def test_env_vars_override_yaml(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({"http": {"timeout": 10}, "data_dir": "from-yaml"}))

    monkeypatch.setenv("APICHAIN_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("APICHAIN_HTTP_ALLOW_PRIVATE_NETWORKS", "yes")
    monkeypatch.setenv("APICHAIN_LOG_LEVEL", "warning")

    settings = load_settings(config_path=str(config_file))
    assert settings.http.timeout == 2.5
    assert settings.http.allow_private_networks is True
    assert settings.log_level == "WARNING"
    # YAML still applies where env not set
    assert settings.data_dir == "from-yaml"


def test_env_var_config_file_path(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config_file = tmp_path / "custom.yaml"
    config_file.write_text(yaml.dump({"data_dir": "custom"}))
    monkeypatch.setenv("APICHAIN_CONFIG_FILE", str(config_file))

    settings = load_settings()
    assert settings.data_dir == "custom"
