"""Types shared by the ERP transport client.

ErpCredentials identifies one authenticated ERP session per credential set.
RpcResult is the non-raising return type of every transport call.
"""

import hashlib
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from erp_analyst.errors.registry import ErrorKind

AGGREGATE_FUNCTIONS: frozenset[str] = frozenset({"sum", "count", "avg", "min", "max"})

GROUP_BY_GRANULARITIES: frozenset[str] = frozenset({"day", "week", "month", "quarter", "year"})


class ErpCredentials(BaseModel):
    """Connection settings for one tenant's ERP.

    The secret is a SecretStr so it never shows up in repr(), logs, or
    serialized model context.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="ERP base URL, e.g. https://acme.odoo.com")
    database: str = Field(..., min_length=1, description="ERP database name")
    username: str = Field(..., min_length=1, description="Login used for RPC calls")
    secret: SecretStr = Field(..., description="API key or password")

    @field_validator("url")
    @classmethod
    def normalize_url(cls, value: str) -> str:
        """Strip trailing slashes and require an http(s) scheme."""
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("ERP url must start with http:// or https://")
        return value

    def fingerprint(self) -> str:
        """Stable cache key for this credential set.

        Hashes every field, secret included, so rotating the key yields a new
        session. The secret itself never leaves this object.
        """
        material = "\x1f".join(
            (self.url, self.database, self.username, self.secret.get_secret_value())
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RpcResult:
    """Outcome of one transport call.

    Attributes:
        success: Whether the call produced decoded data.
        data: Decoded payload on success.
        error: Normalized single-line error message on failure.
        error_kind: AUTH for rejected credentials or sessions, VALIDATION for
            requests refused before sending, UPSTREAM otherwise.
    """

    success: bool
    data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: Any) -> "RpcResult":
        """Build a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, kind: ErrorKind = ErrorKind.UPSTREAM) -> "RpcResult":
        """Build a failed result."""
        return cls(success=False, error=message, error_kind=kind)
