"""Database module for tenant configuration storage."""

from erp_analyst.db.connection import (
    SessionLocal,
    engine,
    init_db,
)
from erp_analyst.db.models import Base, TenantIntegration

__all__ = [
    # Models
    "Base",
    "TenantIntegration",
    # Connection
    "engine",
    "SessionLocal",
    "init_db",
]
