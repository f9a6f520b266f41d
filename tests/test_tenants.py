"""
Tests for the tenant registry
"""

import json

import pytest
from loguru import logger

from querypilot.config.settings import (
    DatabaseKind,
    MySQLConfig,
    PostgreSQLConfig,
    SQLiteConfig,
    default_database_config,
    settings,
)
from querypilot.infra.tenants import (
    FileTenantRegistry,
    StaticTenantRegistry,
    database_config_from_dict,
    load_tenant_registry,
)
from querypilot.utils.errors import ConfigurationError, UnknownTenantError


class TestDatabaseConfigFromDict:
    def test_mysql_with_password_env(self, monkeypatch):
        monkeypatch.setenv("CLINIC_A_DB_PWD", "s3cret")
        config = database_config_from_dict(
            {"type": "mariadb", "host": "db-a", "port": "3307", "database": "medical", "password_env": "CLINIC_A_DB_PWD"}
        )
        assert isinstance(config, MySQLConfig)
        assert config.port == 3307
        assert config.password == "s3cret"
        assert config.kind == DatabaseKind.MYSQL
        assert "s3cret" not in repr(config)

    def test_postgres_url(self):
        config = database_config_from_dict({"type": "postgres", "database": "medical", "user": "reader"})
        assert isinstance(config, PostgreSQLConfig)
        assert config.get_connection_url().drivername == "postgresql+asyncpg"

    def test_sqlite(self):
        config = database_config_from_dict({"type": "sqlite", "database": "data/demo.db", "host": "ignored"})
        assert config == SQLiteConfig(database="data/demo.db")
        assert config.engine_options() == {}

    def test_unsupported_type(self):
        with pytest.raises(ConfigurationError):
            database_config_from_dict({"type": "oracle", "database": "x"})

    def test_database_required(self):
        with pytest.raises(ConfigurationError):
            database_config_from_dict({"type": "mysql"})


class TestRegistries:
    def test_unknown_tenant(self):
        with pytest.raises(UnknownTenantError):
            StaticTenantRegistry().get_config("nobody")

    def test_file_registry(self, tmp_path):
        path = tmp_path / "tenants.json"
        path.write_text(json.dumps({
            "b": {"type": "sqlite", "database": "b.db"},
            "a": {"type": "postgresql", "database": "medical"},
        }))
        registry = FileTenantRegistry(path)
        assert registry.tenant_ids() == ["a", "b"]
        assert registry.get_config("b").describe() == "sqlite:b.db"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "tenants.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            FileTenantRegistry(path)

    def test_missing_file_falls_back_to_settings(self, tmp_path):
        registry = load_tenant_registry(tmp_path / "missing.json")
        assert registry.tenant_ids() == ["default"]


class TestDefaultDatabaseConfig:
    def test_sqlite_ignores_server_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "db_type", "sqlite")
        monkeypatch.setattr(settings, "db_name", "data/demo.db")
        warnings = []
        sink = logger.add(warnings.append, level="WARNING")
        try:
            config = default_database_config()
        finally:
            logger.remove(sink)

        assert config == SQLiteConfig(database="data/demo.db")
        assert warnings == []

    def test_mysql_uses_server_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "db_type", "mysql")
        monkeypatch.setattr(settings, "db_host", "db-main")
        monkeypatch.setattr(settings, "db_name", "medical")
        config = default_database_config()

        assert isinstance(config, MySQLConfig)
        assert config.host == "db-main"
