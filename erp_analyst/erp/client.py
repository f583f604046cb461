"""Odoo JSON-RPC transport client.

Executes raw ``search_read`` / ``read_group`` / ``read`` / ``search_count``
calls against an Odoo ``/jsonrpc`` endpoint. The client carries no business
semantics and never raises: every public method returns an RpcResult whose
failure message is a single normalized string.

Example usage:
    credentials = ErpCredentials(
        url="https://acme.odoo.com", database="acme",
        username="bot@acme.com", secret="api-key",
    )
    async with OdooClient(credentials) as client:
        result = await client.read_group(
            "sale.order", [["state", "in", ["sale", "done"]]],
            ["amount_total:sum"], ["partner_id"],
        )
        if result.success:
            rows = result.data
"""

import asyncio
import itertools
import logging
from typing import Any

import httpx

from erp_analyst.erp.models import (
    AGGREGATE_FUNCTIONS,
    GROUP_BY_GRANULARITIES,
    ErpCredentials,
    RpcResult,
)
from erp_analyst.erp.session_cache import SessionCache
from erp_analyst.errors.registry import ErrorKind
from erp_analyst.utils.redaction import redact_rpc_args, sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})

# Remote exception names and messages that mean the uid is no longer valid
_AUTH_ERROR_MARKERS = ("accessdenied", "access denied", "session expired", "sessionexpired")

_DOMAIN_OPERATORS = frozenset({"&", "|", "!"})


def _extract_remote_error(error: Any) -> tuple[str, ErrorKind]:
    """Normalize a JSON-RPC ``error`` payload into (message, kind).

    Odoo puts the useful text in ``error.data.message`` and the exception
    class in ``error.data.name``; the top-level ``error.message`` is usually
    a generic "Odoo Server Error".
    """
    message = ""
    name = ""
    if isinstance(error, dict):
        data = error.get("data")
        if isinstance(data, dict):
            if isinstance(data.get("message"), str):
                message = data["message"]
            if isinstance(data.get("name"), str):
                name = data["name"]
        if not message and isinstance(error.get("message"), str):
            message = error["message"]
    elif isinstance(error, str):
        message = error
    message = message.strip() or "Unknown ERP error"

    haystack = f"{name} {message}".lower()
    kind = ErrorKind.AUTH if any(m in haystack for m in _AUTH_ERROR_MARKERS) else ErrorKind.UPSTREAM
    return message, kind


def decode_envelope(body: Any) -> RpcResult:
    """Validate a JSON-RPC response envelope and extract its result.

    Args:
        body: Parsed JSON response body.

    Returns:
        RpcResult carrying ``result`` on success. A body that is not an
        object, carries an ``error`` member, or lacks ``result`` is a failure.
    """
    if not isinstance(body, dict):
        return RpcResult.fail("Malformed JSON-RPC envelope: expected an object")
    if body.get("error") is not None:
        message, kind = _extract_remote_error(body["error"])
        return RpcResult.fail(message, kind)
    if "result" not in body:
        return RpcResult.fail("Malformed JSON-RPC envelope: missing 'result'")
    return RpcResult.ok(body["result"])


def _validate_domain(domain: Any) -> str | None:
    """Return an error message if ``domain`` is not a well-formed domain list."""
    if not isinstance(domain, list):
        return "domain must be a list of clauses"
    for clause in domain:
        if isinstance(clause, str):
            if clause not in _DOMAIN_OPERATORS:
                return f"unknown domain operator {clause!r}"
            continue
        if not isinstance(clause, (list, tuple)) or len(clause) != 3 or not isinstance(clause[0], str):
            return f"malformed domain clause {clause!r}"
    return None


def _validate_aggregates(aggregate_fields: list[str]) -> str | None:
    for spec in aggregate_fields:
        field, sep, func = spec.partition(":")
        if not field:
            return f"empty aggregate field in {spec!r}"
        if sep and func not in AGGREGATE_FUNCTIONS:
            return f"unsupported aggregate function {func!r} (allowed: {', '.join(sorted(AGGREGATE_FUNCTIONS))})"
    return None


def _validate_group_by(group_by: list[str]) -> str | None:
    for spec in group_by:
        field, sep, granularity = spec.partition(":")
        if not field:
            return f"empty group-by field in {spec!r}"
        if sep and granularity not in GROUP_BY_GRANULARITIES:
            return f"unsupported date granularity {granularity!r} in {spec!r}"
    return None


def _is_record_list(data: Any) -> bool:
    return isinstance(data, list) and all(isinstance(row, dict) for row in data)


class OdooClient:
    """Async Odoo JSON-RPC client bound to one credential set.

    Sessions (the numeric uid returned by ``common.authenticate``) live in a
    SessionCache keyed by the credential fingerprint, so clients created for
    the same tenant within the TTL reuse one login.

    Attributes:
        credentials: The credential set this client authenticates with.
    """

    def __init__(
        self,
        credentials: ErpCredentials,
        *,
        session_cache: SessionCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = 0,
        retry_base_delay: float = 0.5,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: ERP endpoint and login.
            session_cache: Shared session cache. A private cache is created
                when omitted.
            http_client: Pre-configured httpx client (tests inject one backed
                by httpx.MockTransport). Owned by the caller when given.
            timeout: Per-request timeout in seconds.
            max_retries: Retries for transient failures (429/5xx, connect
                errors, timeouts). Zero disables retrying.
            retry_base_delay: Base delay in seconds, doubled each retry.
        """
        self.credentials = credentials
        self._cache = session_cache if session_cache is not None else SessionCache()
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._request_ids = itertools.count(1)
        self._endpoint = f"{credentials.url}/jsonrpc"

    async def __aenter__(self) -> "OdooClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http.aclose()

    @property
    def session_key(self) -> str:
        """Session cache key for this client's credentials."""
        return self.credentials.fingerprint()

    def invalidate_session(self) -> bool:
        """Forget the cached uid so the next call re-authenticates."""
        return self._cache.invalidate(self.session_key)

    # ------------------------------------------------------------------
    # Envelope transport
    # ------------------------------------------------------------------

    async def _post_once(self, payload: dict[str, Any]) -> tuple[RpcResult, bool]:
        """Send one request. Returns the result and whether it is retryable."""
        try:
            response = await self._http.post(self._endpoint, json=payload)
        except httpx.TimeoutException as e:
            logger.error("ERP request to %s timed out: %s", self.credentials.url, e)
            return RpcResult.fail(f"ERP request timed out after {self._timeout:g}s"), True
        except httpx.ConnectError as e:
            logger.error("Failed to connect to ERP at %s: %s", self.credentials.url, e)
            return RpcResult.fail(f"Cannot connect to ERP at {self.credentials.url}"), True
        except httpx.HTTPError as e:
            logger.error("ERP transport error: %s", e)
            return RpcResult.fail(f"ERP transport error: {sanitize_error_message(str(e), 300)}"), False

        if response.status_code in _RETRYABLE_STATUS_CODES:
            logger.warning("ERP returned HTTP %d", response.status_code)
            return RpcResult.fail(f"ERP unavailable (HTTP {response.status_code})"), True
        if response.status_code >= 400:
            logger.warning("ERP returned HTTP %d", response.status_code)
            return RpcResult.fail(f"ERP returned HTTP {response.status_code}"), False

        try:
            body = response.json()
        except ValueError:
            return RpcResult.fail("ERP returned a non-JSON response"), False
        return decode_envelope(body), False

    async def _call(self, service: str, method: str, args: list[Any]) -> RpcResult:
        """Send a JSON-RPC ``call`` with optional retry on transient failures."""
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "id": next(self._request_ids),
            "params": {"service": service, "method": method, "args": args},
        }
        logger.debug("ERP %s.%s args=%s", service, method, redact_rpc_args(args))
        attempt = 0
        while True:
            result, retryable = await self._post_once(payload)
            if result.success or not retryable or attempt >= self._max_retries:
                return result
            delay = self._retry_base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                "Retrying ERP %s.%s in %.1fs (attempt %d/%d): %s",
                service, method, delay, attempt, self._max_retries, result.error,
            )
            await asyncio.sleep(delay)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self) -> RpcResult:
        """Exchange credentials for a numeric uid, using the session cache.

        Returns:
            RpcResult with the uid, or an AUTH failure when the ERP rejects
            the credentials (it answers ``false`` rather than an error).
        """
        cached = self._cache.get(self.session_key)
        if cached is not None:
            return RpcResult.ok(cached)

        creds = self.credentials
        result = await self._call(
            "common", "authenticate",
            [creds.database, creds.username, creds.secret.get_secret_value(), {}],
        )
        if not result.success:
            return result

        uid = result.data
        if isinstance(uid, bool) or not isinstance(uid, int) or uid <= 0:
            logger.warning(
                "ERP rejected credentials for user %s on database %s",
                creds.username, creds.database,
            )
            return RpcResult.fail(
                f"ERP rejected the credentials for user '{creds.username}' "
                f"on database '{creds.database}'",
                ErrorKind.AUTH,
            )

        self._cache.set(self.session_key, uid)
        logger.info("Authenticated with ERP at %s as uid %d", creds.url, uid)
        return RpcResult.ok(uid)

    async def execute_kw(
        self,
        model: str,
        method: str,
        args: list[Any],
        kwargs: dict[str, Any] | None = None,
    ) -> RpcResult:
        """Run ``object.execute_kw`` with transparent (re)authentication.

        An AUTH failure on the data call invalidates the cached session and
        retries exactly once after logging in again.
        """
        creds = self.credentials
        for attempt in range(2):
            auth = await self.authenticate()
            if not auth.success:
                return auth
            result = await self._call(
                "object", "execute_kw",
                [creds.database, auth.data, creds.secret.get_secret_value(),
                 model, method, args, kwargs or {}],
            )
            if result.success or result.error_kind is not ErrorKind.AUTH or attempt == 1:
                return result
            logger.info("ERP session rejected for %s.%s, re-authenticating", model, method)
            self.invalidate_session()
        return result

    # ------------------------------------------------------------------
    # Data operations
    # ------------------------------------------------------------------

    async def search_read(
        self,
        model: str,
        domain: list[Any],
        fields: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        order: str | None = None,
    ) -> RpcResult:
        """Search records and read their fields.

        Returns:
            RpcResult with a list of record dicts. A result that is not a
            list of dicts is a failure, never a partial list.
        """
        problem = _validate_domain(domain)
        if problem:
            return RpcResult.fail(problem, ErrorKind.VALIDATION)
        kwargs: dict[str, Any] = {}
        if fields:
            kwargs["fields"] = list(fields)
        if limit is not None:
            kwargs["limit"] = limit
        if offset:
            kwargs["offset"] = offset
        if order:
            kwargs["order"] = order

        result = await self.execute_kw(model, "search_read", [domain], kwargs)
        if result.success and not _is_record_list(result.data):
            return RpcResult.fail(f"Malformed search_read result for {model}: expected a list of records")
        return result

    async def read_group(
        self,
        model: str,
        domain: list[Any],
        aggregate_fields: list[str],
        group_by: list[str],
        limit: int | None = None,
        offset: int | None = None,
        order_by: str | None = None,
        lazy: bool = False,
    ) -> RpcResult:
        """Aggregate records, one row per group.

        Args:
            model: ERP model name.
            domain: Domain clauses.
            aggregate_fields: ``field:function`` pairs, function one of
                sum, count, avg, min, max.
            group_by: Fields to group by; date fields accept ``:day``,
                ``:week``, ``:month``, ``:quarter``, ``:year``. An empty list
                yields a single row aggregating the whole domain.
            limit: Maximum number of groups.
            offset: Number of groups to skip.
            order_by: Ordering of groups, e.g. ``amount_total desc``.
            lazy: Group by the first field only (Odoo's lazy mode).

        Returns:
            RpcResult with a list of group row dicts.
        """
        problem = (
            _validate_domain(domain)
            or _validate_aggregates(aggregate_fields)
            or _validate_group_by(group_by)
        )
        if problem:
            return RpcResult.fail(problem, ErrorKind.VALIDATION)
        kwargs: dict[str, Any] = {
            "fields": list(aggregate_fields),
            "groupby": list(group_by),
            "lazy": lazy,
        }
        if limit is not None:
            kwargs["limit"] = limit
        if offset:
            kwargs["offset"] = offset
        if order_by:
            kwargs["orderby"] = order_by

        result = await self.execute_kw(model, "read_group", [domain], kwargs)
        if result.success and not _is_record_list(result.data):
            return RpcResult.fail(f"Malformed read_group result for {model}: expected a list of groups")
        return result

    async def read(self, model: str, ids: list[int], fields: list[str] | None = None) -> RpcResult:
        """Read records by identifier."""
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            return RpcResult.fail("ids must be integers", ErrorKind.VALIDATION)
        if not ids:
            return RpcResult.ok([])
        kwargs = {"fields": list(fields)} if fields else {}
        result = await self.execute_kw(model, "read", [list(ids)], kwargs)
        if result.success and not _is_record_list(result.data):
            return RpcResult.fail(f"Malformed read result for {model}: expected a list of records")
        return result

    async def search_count(self, model: str, domain: list[Any]) -> RpcResult:
        """Count records matching a domain."""
        problem = _validate_domain(domain)
        if problem:
            return RpcResult.fail(problem, ErrorKind.VALIDATION)
        result = await self.execute_kw(model, "search_count", [domain])
        if result.success and (isinstance(result.data, bool) or not isinstance(result.data, int)):
            return RpcResult.fail(f"Malformed search_count result for {model}: expected an integer")
        return result


class OdooClientFactory:
    """Builds OdooClient instances that share one session cache.

    Created once by the application and handed to capabilities, so the
    session cache is explicit state rather than a module-level singleton.
    """

    def __init__(
        self,
        session_cache: SessionCache | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = 0,
        retry_base_delay: float = 0.5,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.session_cache = session_cache if session_cache is not None else SessionCache()
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._http_client = http_client

    def __call__(self, credentials: ErpCredentials) -> OdooClient:
        return OdooClient(
            credentials,
            session_cache=self.session_cache,
            http_client=self._http_client,
            timeout=self._timeout,
            max_retries=self._max_retries,
            retry_base_delay=self._retry_base_delay,
        )
