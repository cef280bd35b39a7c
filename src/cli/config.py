"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./epesi.yaml (working directory)
3. ~/.epesi/config.yaml (user home)

Environment variables override YAML: EPESI_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """Bind settings for the API server."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    allowed_origins: list[str] = []


class DatabaseConfig(BaseModel):
    """Database location. Empty means the platform data directory."""

    url: str = ""


class GenerationConfig(BaseModel):
    """Generation backend settings passed to the API process."""

    model: str = ""
    timeout: float | None = Field(default=None, ge=5, le=120)
    max_tokens: int | None = Field(default=None, gt=0)


class EpesiConfig(BaseModel):
    """Top-level configuration for the Epesi server."""

    server: ServerConfig = ServerConfig()
    database: DatabaseConfig = DatabaseConfig()
    generation: GenerationConfig = GenerationConfig()

    def to_environ(self) -> dict[str, str]:
        """Environment variables the API process reads for these settings.

        Only values that are set are returned, so an explicit environment
        is never cleared by an empty config entry.
        """
        env: dict[str, str] = {}
        if self.database.url:
            env["DATABASE_URL"] = self.database.url
        if self.generation.model:
            env["ANTHROPIC_MODEL"] = self.generation.model
        if self.generation.timeout is not None:
            env["EPESI_GENERATION_TIMEOUT"] = str(self.generation.timeout)
        if self.generation.max_tokens is not None:
            env["EPESI_MAX_TOKENS"] = str(self.generation.max_tokens)
        if self.server.allowed_origins:
            env["ALLOWED_ORIGINS"] = ",".join(self.server.allowed_origins)
        return env


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "epesi.yaml",
        Path.cwd() / "epesi.yml",
        Path.home() / ".epesi" / "config.yaml",
        Path.home() / ".epesi" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply EPESI_<SECTION>_<KEY> env var overrides to config data.

    For example, ``EPESI_SERVER_PORT=9000`` sets ``server.port``. Keys
    that do not name a known section are ignored, so unrelated variables
    such as ``EPESI_API_KEY`` pass through untouched.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    prefix = "EPESI_"
    known_sections = sorted(EpesiConfig.model_fields.keys(), key=len, reverse=True)
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        section_model = EpesiConfig.model_fields[matched_section].annotation
        if matched_field not in section_model.model_fields:
            logger.debug("Ignoring unknown config override %s", key)
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        if matched_field == "allowed_origins":
            data[matched_section][matched_field] = [
                o.strip() for o in value.split(",") if o.strip()
            ]
        else:
            # Pydantic coerces numeric strings for int/float fields
            data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> EpesiConfig | None:
    """Load Epesi configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.epesi/).

    Returns:
        Parsed and validated EpesiConfig, or None if no config found.

    Raises:
        FileNotFoundError: If an explicit config_path does not exist.
        pydantic.ValidationError: If the file holds invalid settings.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()
        if path is None:
            return None

    logger.info("Loading config from %s", path)

    with open(path) as f:
        raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return EpesiConfig(**data)
