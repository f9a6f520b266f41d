"""
Infrastructure - tenant registry, connection lifecycle and schema inspection
"""

from querypilot.infra.connections import (
    ConnectionHandle,
    ConnectionManager,
    SQLAlchemyConnection,
    SQLAlchemyConnectionProvider,
)
from querypilot.infra.schema import SQLAlchemySchemaProvider
from querypilot.infra.tenants import (
    FileTenantRegistry,
    StaticTenantRegistry,
    database_config_from_dict,
    load_tenant_registry,
)

__all__ = [
    "ConnectionHandle",
    "ConnectionManager",
    "SQLAlchemyConnection",
    "SQLAlchemyConnectionProvider",
    "SQLAlchemySchemaProvider",
    "FileTenantRegistry",
    "StaticTenantRegistry",
    "database_config_from_dict",
    "load_tenant_registry",
]
