"""
Tenant registry - resolves a tenant id to its database configuration.

Credential storage is out of scope: registry entries reference passwords by
environment variable name (``password_env``) rather than embedding them.
"""

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

from loguru import logger

from querypilot.config.settings import (
    DatabaseConfig,
    MySQLConfig,
    PostgreSQLConfig,
    SQLiteConfig,
    env_or_default,
)
from querypilot.utils.errors import ConfigurationError, UnknownTenantError

_CONFIG_TYPES = {
    "mysql": MySQLConfig,
    "mariadb": MySQLConfig,
    "postgresql": PostgreSQLConfig,
    "postgres": PostgreSQLConfig,
    "sqlite": SQLiteConfig,
}


def database_config_from_dict(entry: Mapping[str, Any]) -> DatabaseConfig:
    """
    Build a database configuration variant from a registry entry.

    Example:
        >>> database_config_from_dict({"type": "sqlite", "database": "data/demo.db"})
        SQLiteConfig(database='data/demo.db')
    """
    data = dict(entry)
    kind = str(data.pop("type", "mysql")).lower()
    config_cls = _CONFIG_TYPES.get(kind)
    if config_cls is None:
        raise ConfigurationError(f"Unsupported database type '{kind}'")

    password_env = data.pop("password_env", None)
    if password_env:
        data["password"] = env_or_default(password_env)
    if "port" in data and data["port"] is not None:
        data["port"] = int(data["port"])

    if not data.get("database"):
        raise ConfigurationError(f"Database name is required for a {kind} tenant")

    allowed = {f.name for f in fields(config_cls)}
    unknown = set(data) - allowed
    if unknown:
        logger.warning(f"Ignoring unknown {kind} tenant settings: {sorted(unknown)}")
    return config_cls(**{k: v for k, v in data.items() if k in allowed})


class TenantRegistry(Protocol):
    def get_config(self, tenant_id: str) -> DatabaseConfig:
        ...

    def tenant_ids(self) -> List[str]:
        ...


class StaticTenantRegistry:
    """In-memory registry, mainly for tests and single-tenant setups."""

    def __init__(self, configs: Optional[Dict[str, DatabaseConfig]] = None):
        self._configs: Dict[str, DatabaseConfig] = dict(configs or {})

    def register(self, tenant_id: str, config: DatabaseConfig) -> None:
        self._configs[tenant_id] = config

    def get_config(self, tenant_id: str) -> DatabaseConfig:
        config = self._configs.get(tenant_id)
        if config is None:
            raise UnknownTenantError(f"Unknown tenant '{tenant_id}'")
        return config

    def tenant_ids(self) -> List[str]:
        return sorted(self._configs)


class FileTenantRegistry(StaticTenantRegistry):
    """
    Registry loaded from a JSON file::

        {
          "clinic_a": {"type": "mysql", "host": "db-a", "database": "medical",
                       "user": "reader", "password_env": "CLINIC_A_DB_PWD"},
          "demo": {"type": "sqlite", "database": "data/demo.db"}
        }
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> Dict[str, DatabaseConfig]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigurationError(f"Tenant registry not found: {self.path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Tenant registry {self.path} is not valid JSON: {e}")

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Tenant registry {self.path} must be a JSON object")

        configs = {tenant: database_config_from_dict(entry) for tenant, entry in raw.items()}
        logger.info(f"Loaded {len(configs)} tenant(s) from {self.path}")
        return configs


def load_tenant_registry(path: Optional[Path] = None) -> StaticTenantRegistry:
    """
    Registry from the configured JSON file, or a single ``default`` tenant
    built from the DB_* settings when no file exists.
    """
    from querypilot.config.settings import default_database_config, settings

    path = Path(path) if path else settings.resolve_path(settings.tenant_registry_path)
    if path.exists():
        return FileTenantRegistry(path)

    logger.info(f"No tenant registry at {path}; using DB_* settings for tenant '{settings.default_tenant_id}'")
    return StaticTenantRegistry({settings.default_tenant_id: default_database_config()})
