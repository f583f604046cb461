"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. Explicit path (e.g. the CLI --config flag)
2. ./erp_analyst.yaml (working directory)
3. ~/.erp_analyst/config.yaml (user home)

Environment variables override YAML: ERP_ANALYST_<SECTION>_<KEY>.
${VAR} and ${VAR:-default} references in YAML values resolve from the
environment at load time.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "ERP_ANALYST_"
DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} and ${VAR:-default} references in a string.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with references replaced by their env values. Missing
        variables resolve to the default, or to an empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(2) or "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ErpConfig(BaseModel):
    """ERP transport settings."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    session_ttl_seconds: float = Field(default=300.0, gt=0)
    max_retries: int = Field(default=0, ge=0, le=5)
    retry_base_delay: float = Field(default=0.5, ge=0)


class EngineConfig(BaseModel):
    """Query engine settings."""

    timezone: str = DEFAULT_TIMEZONE
    default_period: str = "this month"
    display_limit: int = Field(default=10, ge=1, le=500)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        """Reject timezone names the tz database does not know."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value


class ValidatorConfig(BaseModel):
    """Response validator thresholds."""

    regenerate_below: int = Field(default=50, ge=0, le=100)
    warn_below: int = Field(default=70, ge=0, le=100)
    max_regenerations: int = Field(default=1, ge=0, le=3)


class DocumentsConfig(BaseModel):
    """Document search service settings."""

    timeout_seconds: float = Field(default=15.0, gt=0)
    default_limit: int = Field(default=5, ge=1, le=50)


class StorageConfig(BaseModel):
    """Tenant configuration storage."""

    database_url: str | None = None


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"


class AppConfig(BaseModel):
    """Top-level configuration for ERP Analyst."""

    erp: ErpConfig = ErpConfig()
    engine: EngineConfig = EngineConfig()
    validator: ValidatorConfig = ValidatorConfig()
    documents: DocumentsConfig = DocumentsConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "erp_analyst.yaml",
        Path.cwd() / "erp_analyst.yml",
        Path.home() / ".erp_analyst" / "config.yaml",
        Path.home() / ".erp_analyst" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce_env_value(value: str) -> Any:
    """Coerce an env override to int, float, bool, or keep as string."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply ERP_ANALYST_<SECTION>_<KEY> env var overrides to config data.

    For example, ``ERP_ANALYST_ENGINE_TIMEZONE`` maps to section ``engine``,
    field ``timezone``. Variables whose section is unknown are ignored, which
    keeps unrelated settings such as ERP_ANALYST_CREDENTIAL_KEY out of the
    config model.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    known_sections = sorted(AppConfig.model_fields.keys(), key=len, reverse=True)
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        for section in known_sections:
            section_prefix = section + "_"
            if not suffix.startswith(section_prefix):
                continue
            field_name = suffix[len(section_prefix):]
            section_model = AppConfig.model_fields[section].annotation
            if field_name not in section_model.model_fields:
                break
            section_data = data.setdefault(section, {})
            if isinstance(section_data, dict):
                section_data[field_name] = _coerce_env_value(value)
            break
    return data


def load_config(config_path: str | None = None) -> AppConfig:
    """Load configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.erp_analyst/).

    Returns:
        Parsed and validated AppConfig. Defaults plus env overrides when no
        file is found.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
    """
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return AppConfig(**data)


def configure_logging(level: str = "INFO", stream: Any = None) -> None:
    """Send application logs to a stream (stdout by default) in the standard format."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(levelname)s:%(name)s:%(message)s",
        handlers=[logging.StreamHandler(stream or sys.stdout)],
    )
    logging.getLogger("erp_analyst").setLevel(numeric_level)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
