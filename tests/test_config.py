"""Tests for YAML configuration loading and env overrides."""

import logging
import os

import pytest
from pydantic import ValidationError

from erp_analyst.config import (
    DEFAULT_TIMEZONE,
    AppConfig,
    configure_logging,
    load_config,
    resolve_env_vars,
)


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path):
    """Run from an empty directory with no ERP_ANALYST_* variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("ERP_ANALYST_"):
            monkeypatch.delenv(key)


class TestResolveEnvVars:

    def test_reference_and_default(self, monkeypatch):
        monkeypatch.setenv("ODOO_HOST", "acme.odoo.test")
        assert resolve_env_vars("https://${ODOO_HOST}") == "https://acme.odoo.test"
        assert resolve_env_vars("${MISSING_VAR:-fallback}") == "fallback"
        assert resolve_env_vars("${MISSING_VAR}") == ""


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self):
        config = load_config()
        assert config.engine.timezone == DEFAULT_TIMEZONE
        assert config.erp.max_retries == 0
        assert config.validator.regenerate_below == 50
        assert config.storage.database_url is None

    def test_yaml_in_working_directory(self, tmp_path):
        (tmp_path / "erp_analyst.yaml").write_text(
            "engine:\n  timezone: Europe/Madrid\n  display_limit: 25\n"
            "erp:\n  timeout_seconds: 12\n"
        )
        config = load_config()
        assert config.engine.timezone == "Europe/Madrid"
        assert config.engine.display_limit == 25
        assert config.erp.timeout_seconds == 12.0

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_env_vars_in_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DB_URL", "sqlite:///tenants.db")
        path = tmp_path / "custom.yaml"
        path.write_text("storage:\n  database_url: ${DB_URL}\n")
        assert load_config(str(path)).storage.database_url == "sqlite:///tenants.db"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ERP_ANALYST_ERP_MAX_RETRIES", "2")
        monkeypatch.setenv("ERP_ANALYST_LOGGING_LEVEL", "DEBUG")
        monkeypatch.setenv("ERP_ANALYST_STORAGE_DATABASE_URL", "sqlite:///x.db")
        config = load_config()
        assert config.erp.max_retries == 2
        assert config.logging.level == "DEBUG"
        assert config.storage.database_url == "sqlite:///x.db"

    def test_unrelated_env_vars_ignored(self, monkeypatch):
        monkeypatch.setenv("ERP_ANALYST_CREDENTIAL_KEY", "abc")
        monkeypatch.setenv("ERP_ANALYST_ENGINE_UNKNOWN_FIELD", "1")
        assert load_config() == AppConfig()

    def test_unknown_timezone_rejected(self, monkeypatch):
        monkeypatch.setenv("ERP_ANALYST_ENGINE_TIMEZONE", "Mars/Olympus_Mons")
        with pytest.raises(ValidationError, match="Unknown timezone"):
            load_config()


class TestConfigureLogging:

    def test_quiets_httpx(self):
        configure_logging("DEBUG")
        assert logging.getLogger("erp_analyst").level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
