"""Test helper utilities."""

from tests.helpers.fake_odoo import FakeOdoo, Fault, RpcCall, group_row, has_clause

__all__ = [
    "FakeOdoo",
    "Fault",
    "RpcCall",
    "group_row",
    "has_clause",
]
