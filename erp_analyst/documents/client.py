"""Client for the sibling document search service.

The retrieval service owns chunking and embeddings; this client only speaks
its ``POST /search`` contract: ``{query, scope, limit}`` in, ranked passages
out. Like the ERP transport it never raises.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from erp_analyst.erp.models import RpcResult
from erp_analyst.errors.registry import ErrorKind

logger = logging.getLogger(__name__)


class DocumentSearchCredentials(BaseModel):
    """Endpoint and API key for a tenant's document index."""

    model_config = ConfigDict(frozen=True)

    url: str
    api_key: SecretStr
    default_scope: str = ""

    @field_validator("url")
    @classmethod
    def normalize_url(cls, value: str) -> str:
        """Strip trailing slashes and require an http(s) scheme."""
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("document search url must start with http:// or https://")
        return value


class Passage(BaseModel):
    """One ranked passage returned by the search service."""

    document_id: str
    title: str = ""
    text: str
    score: float = Field(ge=0)
    source_url: str | None = None


class DocumentSearchClient:
    """Async client for ``search(query, scope) -> ranked passages``."""

    def __init__(
        self,
        credentials: DocumentSearchCredentials,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.credentials = credentials
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    async def __aenter__(self) -> "DocumentSearchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    async def search(self, query: str, scope: str | None = None, limit: int = 5) -> RpcResult:
        """Search the tenant's document index.

        Args:
            query: Free-text question.
            scope: Collection or folder to restrict the search to. Falls back
                to the credential's default scope.
            limit: Maximum number of passages.

        Returns:
            RpcResult with a list of Passage sorted by descending score.
        """
        payload: dict[str, Any] = {
            "query": query,
            "scope": scope or self.credentials.default_scope,
            "limit": limit,
        }
        headers = {"Authorization": f"Bearer {self.credentials.api_key.get_secret_value()}"}
        try:
            response = await self._http.post(
                f"{self.credentials.url}/search", json=payload, headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.error("Document search timed out: %s", e)
            return RpcResult.fail(f"document search timed out after {self._timeout:g}s")
        except httpx.HTTPError as e:
            logger.error("Document search transport error: %s", e)
            return RpcResult.fail("cannot reach the document search service")

        if response.status_code in (401, 403):
            return RpcResult.fail("document search rejected the API key", ErrorKind.AUTH)
        if response.status_code >= 400:
            return RpcResult.fail(f"document search returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            return RpcResult.fail("document search returned a non-JSON response")

        raw = body.get("passages") if isinstance(body, dict) else None
        if not isinstance(raw, list):
            return RpcResult.fail("malformed document search response: missing 'passages'")
        try:
            passages = [Passage.model_validate(item) for item in raw]
        except ValidationError as e:
            return RpcResult.fail(f"malformed passage in document search response: {e.error_count()} error(s)")

        passages.sort(key=lambda p: p.score, reverse=True)
        return RpcResult.ok(passages[:limit])


class DocumentSearchClientFactory:
    """Builds DocumentSearchClient instances from tenant credentials."""

    def __init__(self, *, timeout: float = 15.0, http_client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._http_client = http_client

    def __call__(self, credentials: DocumentSearchCredentials) -> DocumentSearchClient:
        return DocumentSearchClient(credentials, http_client=self._http_client, timeout=self._timeout)
