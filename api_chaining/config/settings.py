"""Configuration loading: YAML file -> env vars -> Pydantic defaults."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel


class HttpConfig(BaseModel):
    timeout: float = 30.0
    allow_private_networks: bool = False
    user_agent: str = "api-chaining/0.1"


class Settings(BaseModel):
    http: HttpConfig = HttpConfig()
    data_dir: str = "data"
    log_level: str = "INFO"


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


_HTTP_ENV_MAP: dict[str, tuple[str, type]] = {
    "APICHAIN_HTTP_TIMEOUT": ("timeout", float),
    "APICHAIN_HTTP_ALLOW_PRIVATE_NETWORKS": ("allow_private_networks", _to_bool),
    "APICHAIN_HTTP_USER_AGENT": ("user_agent", str),
}

_TOP_ENV_MAP: dict[str, str] = {
    "APICHAIN_DATA_DIR": "data_dir",
    "APICHAIN_LOG_LEVEL": "log_level",
}


def load_settings(config_path: str | None = None) -> Settings:
    """Load settings: YAML file -> env var overrides -> Pydantic defaults."""
    yaml_data: dict = {}

    # 1. Resolve config file path
    path = _resolve_config_path(config_path)
    if path and path.is_file():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}

    # 2. Build settings from YAML (or defaults)
    settings = Settings.model_validate(yaml_data) if yaml_data else Settings()

    # 3. Override with env vars
    http_overrides: dict = {}
    for env_key, (field_name, convert) in _HTTP_ENV_MAP.items():
        val = os.environ.get(env_key)
        if val is not None:
            http_overrides[field_name] = convert(val)

    if http_overrides:
        merged = settings.http.model_dump()
        merged.update(http_overrides)
        settings.http = HttpConfig.model_validate(merged)

    for env_key, field_name in _TOP_ENV_MAP.items():
        val = os.environ.get(env_key)
        if val is not None:
            setattr(settings, field_name, val)

    settings.log_level = settings.log_level.upper()
    return settings


def _resolve_config_path(explicit_path: str | None) -> Path | None:
    if explicit_path:
        return Path(explicit_path)

    env_path = os.environ.get("APICHAIN_CONFIG_FILE")
    if env_path:
        return Path(env_path)

    # Default: config.yaml next to this module
    default = Path(__file__).parent / "config.yaml"
    if default.is_file():
        return default

    return None
