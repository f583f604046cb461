"""Tenant integration store with encrypted secret storage.

Persists one row per (tenant, integration) in the tenant_integrations table.
Secrets are AES-256-GCM encrypted with AAD bound to the tenant and
integration; they are decrypted only inside resolve_credentials() and are
never included in listings or logs.
"""

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_analyst.db.models import TenantIntegration, utc_now_iso
from erp_analyst.documents.client import DocumentSearchCredentials
from erp_analyst.erp.models import ErpCredentials
from erp_analyst.services.credential_encryption import (
    CredentialDecryptionError,
    build_aad,
    decrypt_credentials,
    encrypt_credentials,
    get_or_create_key,
)
from erp_analyst.services.integration_types import (
    DOCUMENTS,
    MAX_FIELD_LENGTH,
    MAX_SECRET_LENGTH,
    ODOO,
    REQUIRED_FIELDS,
    RUNTIME_USABLE_STATUSES,
    VALID_INTEGRATIONS,
    VALID_STATUSES,
    IntegrationValidationError,
)
from erp_analyst.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)


def _build_credentials(row: TenantIntegration, secret: str) -> Any:
    """Turn a row plus its decrypted secret into typed credentials."""
    if row.integration == ODOO:
        return ErpCredentials(
            url=row.url, database=row.database, username=row.username, secret=secret,
        )
    if row.integration == DOCUMENTS:
        return DocumentSearchCredentials(url=row.url, api_key=secret, default_scope=row.database)
    raise IntegrationValidationError(
        "INVALID_INTEGRATION", f"Unknown integration '{row.integration}'",
    )


class TenantIntegrationStore:
    """Reads and writes per-tenant integration settings.

    Args:
        db: SQLAlchemy session.
        key: 32-byte encryption key. Loaded with get_or_create_key() when
            omitted.
        key_dir: Optional override for the encryption key directory.
    """

    def __init__(self, db: Session, key: bytes | None = None, key_dir: str | None = None) -> None:
        self._db = db
        self._key = key if key is not None else get_or_create_key(key_dir)

    def _validate_save_input(
        self, integration: str, url: str, database: str, username: str, secret: str,
    ) -> None:
        """Validate inputs before save.

        Raises:
            IntegrationValidationError: On any validation failure.
        """
        if integration not in VALID_INTEGRATIONS:
            raise IntegrationValidationError(
                "INVALID_INTEGRATION",
                f"Invalid integration '{integration}'. Must be one of: {sorted(VALID_INTEGRATIONS)}",
            )
        values = {"url": url, "database": database, "username": username}
        for field_name in REQUIRED_FIELDS[integration]:
            if not values[field_name]:
                raise IntegrationValidationError(
                    "MISSING_FIELD", f"{field_name} is required for {integration}",
                )
        for field_name, value in values.items():
            if len(value) > MAX_FIELD_LENGTH:
                raise IntegrationValidationError(
                    "FIELD_TOO_LONG", f"{field_name} exceeds {MAX_FIELD_LENGTH} characters",
                )
        if not secret:
            raise IntegrationValidationError("MISSING_FIELD", f"secret is required for {integration}")
        if len(secret) > MAX_SECRET_LENGTH:
            raise IntegrationValidationError(
                "FIELD_TOO_LONG", f"secret exceeds {MAX_SECRET_LENGTH} characters",
            )

    def _get_row(self, tenant_id: str, integration: str) -> TenantIntegration | None:
        return self._db.query(TenantIntegration).filter_by(
            tenant_id=tenant_id, integration=integration,
        ).first()

    @staticmethod
    def _row_to_dict(row: TenantIntegration) -> dict:
        """Convert a row to a display dict (no secret exposed)."""
        return {
            "id": row.id,
            "tenant_id": row.tenant_id,
            "integration": row.integration,
            "status": row.status,
            "url": row.url,
            "database": row.database,
            "username": row.username,
            "error_message": row.error_message,
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }

    def save_integration(
        self,
        tenant_id: str,
        integration: str,
        *,
        url: str,
        secret: str,
        database: str = "",
        username: str = "",
    ) -> dict:
        """Create or overwrite a tenant's integration settings.

        Args:
            tenant_id: Owning tenant.
            integration: 'odoo' or 'documents'.
            url: Endpoint base URL.
            secret: API key or password (encrypted before storage).
            database: ERP database (or default scope for documents).
            username: ERP login.

        Returns:
            Dict with is_new plus the stored row's display fields.

        Raises:
            IntegrationValidationError: On invalid inputs.
        """
        if not tenant_id:
            raise IntegrationValidationError("MISSING_FIELD", "tenant_id is required")
        self._validate_save_input(integration, url, database, username, secret)

        row = self._get_row(tenant_id, integration)
        is_new = row is None
        now = utc_now_iso()
        if row is None:
            row = TenantIntegration(
                tenant_id=tenant_id,
                integration=integration,
                created_at=now,
            )
            self._db.add(row)
        row.url = url
        row.database = database
        row.username = username
        row.status = "active"
        row.error_message = None
        row.updated_at = now
        row.encrypted_secret = encrypt_credentials(
            {"secret": secret}, self._key, aad=build_aad(tenant_id, integration),
        )

        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            raise

        logger.info("Saved %s integration for tenant %s", integration, tenant_id)
        return {"is_new": is_new, **self._row_to_dict(row)}

    def list_integrations(self, tenant_id: str) -> list[dict]:
        """List a tenant's integrations (no secrets exposed)."""
        rows = (
            self._db.query(TenantIntegration)
            .filter_by(tenant_id=tenant_id)
            .order_by(TenantIntegration.integration)
            .all()
        )
        return [self._row_to_dict(row) for row in rows]

    def active_integrations(self, tenant_id: str) -> list[str]:
        """Names of the tenant's integrations whose status allows runtime use."""
        return [
            item["integration"]
            for item in self.list_integrations(tenant_id)
            if item["status"] in RUNTIME_USABLE_STATUSES
        ]

    def update_status(
        self, tenant_id: str, integration: str, status: str, error_message: str | None = None,
    ) -> dict | None:
        """Set an integration's status, storing a sanitized error message.

        Returns:
            Updated display dict, or None if the integration does not exist.

        Raises:
            IntegrationValidationError: If the status is unknown.
        """
        if status not in VALID_STATUSES:
            raise IntegrationValidationError(
                "INVALID_STATUS", f"Invalid status '{status}'. Must be one of: {sorted(VALID_STATUSES)}",
            )
        row = self._get_row(tenant_id, integration)
        if row is None:
            return None
        row.status = status
        row.error_message = sanitize_error_message(error_message, max_length=500)
        row.updated_at = utc_now_iso()
        self._db.commit()
        return self._row_to_dict(row)

    def delete_integration(self, tenant_id: str, integration: str) -> bool:
        """Delete an integration. Returns True if a row was removed."""
        row = self._get_row(tenant_id, integration)
        if row is None:
            return False
        self._db.delete(row)
        self._db.commit()
        logger.info("Deleted %s integration for tenant %s", integration, tenant_id)
        return True

    def get_credentials(self, tenant_id: str, integration: str) -> Any | None:
        """Decrypt one integration's credentials.

        Rows that are not active, fail to decrypt, or hold invalid settings
        resolve to None; the failure is logged without the secret.
        """
        row = self._get_row(tenant_id, integration)
        if row is None or row.status not in RUNTIME_USABLE_STATUSES:
            return None
        try:
            payload = decrypt_credentials(
                row.encrypted_secret, self._key, aad=build_aad(tenant_id, integration),
            )
            return _build_credentials(row, payload["secret"])
        except CredentialDecryptionError:
            logger.warning("Failed to decrypt %s credentials for tenant %s", integration, tenant_id)
        except (KeyError, ValidationError, IntegrationValidationError) as e:
            logger.warning(
                "Invalid stored %s settings for tenant %s: %s",
                integration, tenant_id, sanitize_error_message(str(e), 300),
            )
        return None

    def resolve_credentials(self, tenant_id: str) -> dict[str, Any]:
        """Decrypt credentials for every active integration of a tenant.

        Returns:
            Mapping of integration name to typed credentials. Integrations
            that cannot be resolved are absent rather than None.
        """
        resolved: dict[str, Any] = {}
        for integration in self.active_integrations(tenant_id):
            credentials = self.get_credentials(tenant_id, integration)
            if credentials is not None:
                resolved[integration] = credentials
        return resolved
