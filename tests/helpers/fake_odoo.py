"""Fake Odoo JSON-RPC server for transport-level testing.

Serves ``common.authenticate`` and ``object.execute_kw`` through an
httpx.MockTransport, so the real OdooClient (envelope decoding, session
cache, re-authentication) runs unchanged against canned data.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass
class Fault:
    """A JSON-RPC ``error`` member to send instead of a result."""

    message: str
    name: str = "odoo.exceptions.UserError"


@dataclass
class RpcCall:
    """Record of one request received by the fake server."""

    service: str
    method: str
    model: str | None = None
    model_method: str | None = None
    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def domain(self) -> list[Any]:
        """Domain argument of search/read_group calls."""
        return self.args[0] if self.args else []


Handler = Callable[[list[Any], dict[str, Any]], Any]

_DEFAULTS: dict[str, Any] = {
    "read_group": [],
    "search_read": [],
    "search_count": 0,
    "read": [],
}


class FakeOdoo:
    """Configurable stand-in for an Odoo ``/jsonrpc`` endpoint.

    Responses are keyed by (model, method). A response may be a value, a
    Fault, or a callable receiving ``(args, kwargs)`` and returning either.
    """

    def __init__(self, uid: int | bool = 7) -> None:
        self.uid = uid
        self.calls: list[RpcCall] = []
        self._responses: dict[tuple[str, str], Any] = {}
        self._session_faults = 0

    def on(self, model: str, method: str, response: Any) -> None:
        """Configure the response for one model method."""
        self._responses[(model, method)] = response

    def expire_session(self, times: int = 1) -> None:
        """Answer the next ``times`` data calls with a session-expired fault."""
        self._session_faults = times

    def executed(self, model_method: str | None = None, model: str | None = None) -> list[RpcCall]:
        """Recorded execute_kw calls, optionally filtered."""
        return [
            call for call in self.calls
            if call.service == "object"
            and (model_method is None or call.model_method == model_method)
            and (model is None or call.model == model)
        ]

    @property
    def logins(self) -> int:
        return sum(1 for call in self.calls if call.method == "authenticate")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        params = body["params"]
        service, method, args = params["service"], params["method"], params["args"]

        if service == "common" and method == "authenticate":
            self.calls.append(RpcCall(service=service, method=method))
            return self._reply(body, self.uid)

        _db, _uid, _secret, model, model_method, margs, kwargs = args
        self.calls.append(RpcCall(
            service=service, method=method, model=model,
            model_method=model_method, args=margs, kwargs=kwargs,
        ))
        if self._session_faults:
            self._session_faults -= 1
            return self._reply(body, Fault("Session expired", "odoo.http.SessionExpiredException"))

        response = self._responses.get((model, model_method), _DEFAULTS.get(model_method))
        if callable(response):
            response = response(margs, kwargs)
        return self._reply(body, response)

    @staticmethod
    def _reply(body: dict[str, Any], result: Any) -> httpx.Response:
        if isinstance(result, Fault):
            payload = {
                "jsonrpc": "2.0",
                "id": body.get("id"),
                "error": {
                    "code": 200,
                    "message": "Odoo Server Error",
                    "data": {"name": result.name, "message": result.message},
                },
            }
        else:
            payload = {"jsonrpc": "2.0", "id": body.get("id"), "result": result}
        return httpx.Response(200, json=payload)


def group_row(field_name: str, label: str | None, amount_field: str | None, total: float, count: int,
              record_id: int = 1) -> dict[str, Any]:
    """One non-lazy read_group row keyed by a many2one field."""
    row: dict[str, Any] = {
        field_name: [record_id, label] if label is not None else False,
        "__count": count,
    }
    if amount_field:
        row[amount_field] = total
    return row


def has_clause(domain: list[Any], field_name: str, operator: str, value: Any) -> bool:
    """Whether a domain contains exactly the given clause."""
    return [field_name, operator, value] in [list(c) for c in domain if isinstance(c, (list, tuple))]
