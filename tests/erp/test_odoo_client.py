"""Tests for the Odoo JSON-RPC transport client."""

import json

import httpx
import pytest

from erp_analyst.erp.client import OdooClient, decode_envelope
from erp_analyst.erp.models import ErpCredentials
from erp_analyst.erp.session_cache import SessionCache
from erp_analyst.errors.registry import ErrorKind
from tests.helpers.fake_odoo import FakeOdoo, Fault


class TestDecodeEnvelope:
    """Tests for JSON-RPC envelope validation."""

    def test_result_is_extracted(self):
        result = decode_envelope({"jsonrpc": "2.0", "id": 1, "result": [1, 2]})
        assert result.success
        assert result.data == [1, 2]

    def test_non_object_body_is_failure(self):
        result = decode_envelope(["not", "an", "object"])
        assert not result.success
        assert "Malformed" in result.error

    def test_missing_result_is_failure(self):
        result = decode_envelope({"jsonrpc": "2.0", "id": 1})
        assert not result.success
        assert "missing 'result'" in result.error

    def test_error_uses_data_message(self):
        """The specific message in error.data wins over the generic top-level one."""
        result = decode_envelope({
            "error": {
                "message": "Odoo Server Error",
                "data": {"name": "odoo.exceptions.ValidationError", "message": "Invalid field 'foo'"},
            },
        })
        assert not result.success
        assert result.error == "Invalid field 'foo'"
        assert result.error_kind is ErrorKind.UPSTREAM

    def test_access_denied_is_auth(self):
        result = decode_envelope({
            "error": {"message": "Odoo Server Error",
                      "data": {"name": "odoo.exceptions.AccessDenied", "message": "Access Denied"}},
        })
        assert result.error_kind is ErrorKind.AUTH


class TestErpCredentials:
    """Tests for credential normalization and secrecy."""

    def test_url_trailing_slash_stripped(self):
        creds = ErpCredentials(url="https://acme.odoo.com/", database="db", username="u", secret="k")
        assert creds.url == "https://acme.odoo.com"

    def test_url_requires_scheme(self):
        with pytest.raises(ValueError):
            ErpCredentials(url="acme.odoo.com", database="db", username="u", secret="k")

    def test_secret_not_in_repr(self, erp_credentials):
        assert "s3cret-api-key" not in repr(erp_credentials)

    def test_fingerprint_changes_with_secret(self, erp_credentials):
        rotated = ErpCredentials(
            url=erp_credentials.url, database=erp_credentials.database,
            username=erp_credentials.username, secret="rotated-key",
        )
        assert rotated.fingerprint() != erp_credentials.fingerprint()


class TestAuthentication:
    """Tests for login and session caching."""

    @pytest.mark.asyncio
    async def test_authenticate_caches_uid(self, odoo_client, fake_odoo):
        first = await odoo_client.authenticate()
        second = await odoo_client.authenticate()
        assert first.success and first.data == 7
        assert second.data == 7
        assert fake_odoo.logins == 1

    @pytest.mark.asyncio
    async def test_false_uid_is_auth_failure(self, erp_credentials):
        fake = FakeOdoo(uid=False)
        client = OdooClient(erp_credentials, http_client=fake.http_client())
        result = await client.authenticate()
        assert not result.success
        assert result.error_kind is ErrorKind.AUTH
        assert "s3cret-api-key" not in result.error

    @pytest.mark.asyncio
    async def test_rejected_login_skips_data_call(self, erp_credentials):
        fake = FakeOdoo(uid=False)
        client = OdooClient(erp_credentials, http_client=fake.http_client())
        result = await client.search_count("sale.order", [])
        assert result.error_kind is ErrorKind.AUTH
        assert fake.executed() == []

    @pytest.mark.asyncio
    async def test_expired_cache_entry_triggers_login(self, erp_credentials, fake_odoo):
        now = [0.0]
        cache = SessionCache(ttl_seconds=10, clock=lambda: now[0])
        client = OdooClient(erp_credentials, session_cache=cache, http_client=fake_odoo.http_client())
        await client.authenticate()
        now[0] = 11.0
        await client.authenticate()
        assert fake_odoo.logins == 2

    @pytest.mark.asyncio
    async def test_session_loss_reauthenticates_once(self, odoo_client, fake_odoo):
        """A session-expired fault invalidates the uid and retries once."""
        fake_odoo.on("sale.order", "search_count", 4)
        await odoo_client.authenticate()
        fake_odoo.expire_session()
        result = await odoo_client.search_count("sale.order", [])
        assert result.success
        assert result.data == 4
        assert fake_odoo.logins == 2
        assert len(fake_odoo.executed("search_count")) == 2

    @pytest.mark.asyncio
    async def test_repeated_session_loss_gives_up(self, odoo_client, fake_odoo):
        fake_odoo.expire_session(times=5)
        result = await odoo_client.search_count("sale.order", [])
        assert not result.success
        assert result.error_kind is ErrorKind.AUTH
        assert len(fake_odoo.executed("search_count")) == 2


class TestDataOperations:
    """Tests for search_read, read_group, read and search_count."""

    @pytest.mark.asyncio
    async def test_search_read_passes_kwargs(self, odoo_client, fake_odoo):
        fake_odoo.on("res.partner", "search_read", [{"id": 1, "name": "Acme"}])
        result = await odoo_client.search_read(
            "res.partner", [["customer_rank", ">", 0]], ["name"], limit=5, order="name asc",
        )
        assert result.data == [{"id": 1, "name": "Acme"}]
        call = fake_odoo.executed("search_read")[0]
        assert call.domain == [["customer_rank", ">", 0]]
        assert call.kwargs == {"fields": ["name"], "limit": 5, "order": "name asc"}

    @pytest.mark.asyncio
    async def test_search_read_non_list_is_failure(self, odoo_client, fake_odoo):
        fake_odoo.on("res.partner", "search_read", {"oops": True})
        result = await odoo_client.search_read("res.partner", [])
        assert not result.success
        assert "expected a list" in result.error

    @pytest.mark.asyncio
    async def test_search_read_mixed_rows_is_failure(self, odoo_client, fake_odoo):
        """A list that is not all dicts is rejected, never returned partially."""
        fake_odoo.on("res.partner", "search_read", [{"id": 1}, "garbage"])
        result = await odoo_client.search_read("res.partner", [])
        assert not result.success
        assert result.data is None

    @pytest.mark.asyncio
    async def test_read_group_sends_fields_and_groupby(self, odoo_client, fake_odoo):
        await odoo_client.read_group(
            "sale.order", [], ["amount_total:sum"], ["partner_id"], order_by="amount_total desc",
        )
        call = fake_odoo.executed("read_group")[0]
        assert call.kwargs == {
            "fields": ["amount_total:sum"],
            "groupby": ["partner_id"],
            "lazy": False,
            "orderby": "amount_total desc",
        }

    @pytest.mark.asyncio
    async def test_read_group_rejects_unknown_aggregate(self, odoo_client, fake_odoo):
        result = await odoo_client.read_group("sale.order", [], ["amount_total:median"], [])
        assert not result.success
        assert result.error_kind is ErrorKind.VALIDATION
        assert "median" in result.error
        assert fake_odoo.calls == []

    @pytest.mark.asyncio
    async def test_read_group_rejects_unknown_granularity(self, odoo_client):
        result = await odoo_client.read_group("sale.order", [], [], ["date_order:decade"])
        assert result.error_kind is ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_malformed_domain_rejected_before_sending(self, odoo_client, fake_odoo):
        result = await odoo_client.search_count("sale.order", [["state", "="]])
        assert result.error_kind is ErrorKind.VALIDATION
        assert fake_odoo.calls == []

    @pytest.mark.asyncio
    async def test_search_count_bool_is_failure(self, odoo_client, fake_odoo):
        fake_odoo.on("sale.order", "search_count", True)
        result = await odoo_client.search_count("sale.order", [])
        assert not result.success

    @pytest.mark.asyncio
    async def test_read_empty_ids_makes_no_call(self, odoo_client, fake_odoo):
        result = await odoo_client.read("res.partner", [])
        assert result.success and result.data == []
        assert fake_odoo.calls == []

    @pytest.mark.asyncio
    async def test_remote_fault_is_upstream_failure(self, odoo_client, fake_odoo):
        fake_odoo.on("sale.order", "read_group", Fault("Invalid field 'foo' on model 'sale.order'"))
        result = await odoo_client.read_group("sale.order", [], ["foo:sum"], [])
        assert not result.success
        assert result.error_kind is ErrorKind.UPSTREAM
        assert "Invalid field" in result.error


class TestTransportFailures:
    """Tests for HTTP-level failures and retries."""

    @staticmethod
    def _client(erp_credentials, handler, **kwargs) -> OdooClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return OdooClient(erp_credentials, http_client=http, retry_base_delay=0, **kwargs)

    @pytest.mark.asyncio
    async def test_http_error_status(self, erp_credentials):
        client = self._client(erp_credentials, lambda request: httpx.Response(500))
        result = await client.authenticate()
        assert not result.success
        assert "HTTP 500" in result.error

    @pytest.mark.asyncio
    async def test_non_json_response(self, erp_credentials):
        client = self._client(erp_credentials, lambda request: httpx.Response(200, text="<html>"))
        result = await client.authenticate()
        assert result.error == "ERP returned a non-JSON response"

    @pytest.mark.asyncio
    async def test_connect_error(self, erp_credentials):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(erp_credentials, refuse)
        result = await client.authenticate()
        assert "Cannot connect" in result.error

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self, erp_credentials):
        attempts = []

        def unavailable(request):
            attempts.append(request)
            return httpx.Response(503)

        client = self._client(erp_credentials, unavailable)
        await client.authenticate()
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_opt_in_retry_recovers(self, erp_credentials):
        attempts = []

        def flaky(request):
            attempts.append(request)
            if len(attempts) == 1:
                return httpx.Response(503)
            body = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": 3})

        client = self._client(erp_credentials, flaky, max_retries=2)
        result = await client.authenticate()
        assert result.success and result.data == 3
        assert len(attempts) == 2
