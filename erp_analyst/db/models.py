"""SQLAlchemy ORM models for tenant configuration storage.

Uses SQLAlchemy 2.0 style with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class TenantIntegration(Base):
    """Encrypted per-tenant integration settings.

    One row per (tenant, integration). The secret is stored as an
    AES-256-GCM JSON envelope bound to the tenant and integration through
    AAD, so a row copied to another tenant cannot be decrypted.

    Attributes:
        id: UUID4 text primary key.
        tenant_id: Owning tenant identifier.
        integration: Integration identifier ('odoo', 'documents').
        status: 'active', 'disabled', or 'error'.
        url: Endpoint base URL.
        database: ERP database name (empty for integrations without one).
        username: Login used against the endpoint.
        encrypted_secret: AES-256-GCM JSON envelope string.
        error_message: Sanitized error message from the last failure.
        key_version: Encryption key version.
        created_at: ISO8601 UTC timestamp.
        updated_at: ISO8601 UTC timestamp, service-managed.
    """

    __tablename__ = "tenant_integrations"

    id: Mapped[str] = mapped_column(Text, primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    integration: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    url: Mapped[str] = mapped_column(Text, nullable=False)
    database: Mapped[str] = mapped_column(Text, nullable=False, default="")
    username: Mapped[str] = mapped_column(Text, nullable=False, default="")
    encrypted_secret: Mapped[str] = mapped_column(Text, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    key_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False, default=utc_now_iso)

    __table_args__ = (
        UniqueConstraint("tenant_id", "integration", name="uq_tenant_integration"),
        Index("idx_tenant_integrations_tenant", "tenant_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TenantIntegration(tenant={self.tenant_id!r}, "
            f"integration={self.integration!r}, status={self.status!r})>"
        )
