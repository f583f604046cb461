"""Tests for the skill framework: call states, context and result envelope."""

from typing import ClassVar

import pytest
from pydantic import BaseModel, Field

from erp_analyst.errors.formatter import AnalystError
from erp_analyst.errors.registry import ErrorKind
from erp_analyst.skills.base import (
    CallState,
    Skill,
    SkillCall,
    SkillContext,
    SkillResult,
)
from erp_analyst.skills.odoo.sales import GetSalesByCustomer


class EchoInput(BaseModel):
    text: str = Field(..., min_length=1)
    mode: str = "ok"


class EchoSkill(Skill):
    name: ClassVar[str] = "echo"
    description: ClassVar[str] = "Echo the text back."
    integration: ClassVar[str] = "odoo"
    input_model = EchoInput

    async def execute(self, params: EchoInput, context: SkillContext):
        if params.mode == "typed":
            raise AnalystError.from_code("E-3001", operation="read", model="x", detail="remote down")
        if params.mode == "crash":
            raise ZeroDivisionError("division by zero")
        return {"echo": params.text, "tenant": context.tenant_id}


class TestSkillCall:
    """Tests for the invocation state machine."""

    def test_happy_path(self):
        call = SkillCall("echo")
        for state in (CallState.VALIDATING, CallState.EXECUTING, CallState.SUCCEEDED):
            call.advance(state)
        assert call.history == [
            CallState.PENDING, CallState.VALIDATING, CallState.EXECUTING, CallState.SUCCEEDED,
        ]

    def test_cannot_skip_validation(self):
        call = SkillCall("echo")
        with pytest.raises(RuntimeError, match="pending -> executing"):
            call.advance(CallState.EXECUTING)

    def test_terminal_states_are_final(self):
        call = SkillCall("echo")
        call.advance(CallState.VALIDATING)
        call.advance(CallState.REJECTED)
        with pytest.raises(RuntimeError):
            call.advance(CallState.EXECUTING)


class TestSkillContext:

    def test_credentials_are_read_only(self, erp_credentials):
        context = SkillContext(tenant_id="acme", user_id="u", credentials={"odoo": erp_credentials})
        with pytest.raises(TypeError):
            context.credentials["documents"] = object()

    def test_repr_hides_credentials(self, skill_context):
        text = repr(skill_context)
        assert "s3cret-api-key" not in text
        assert "['odoo']" in text

    def test_has(self, skill_context):
        assert skill_context.has("odoo")
        assert not skill_context.has("documents")


class TestSkillRun:
    """Tests for Skill.run()."""

    @pytest.mark.asyncio
    async def test_success(self, skill_context):
        result = await EchoSkill().run({"text": "hi"}, skill_context)
        assert result.success
        assert result.state is CallState.SUCCEEDED
        assert result.data == {"echo": "hi", "tenant": "acme"}

    @pytest.mark.asyncio
    async def test_missing_credentials_rejected_before_any_call(self, fake_odoo, odoo_factory):
        context = SkillContext(tenant_id="acme", user_id="u", credentials={})

        result = await GetSalesByCustomer(odoo_factory).run({"period": "this month"}, context)

        assert not result.success
        assert result.state is CallState.REJECTED
        assert result.error.kind is ErrorKind.AUTH
        assert result.error.code == "E-2001"
        assert fake_odoo.calls == []

    @pytest.mark.asyncio
    async def test_invalid_input_rejected(self, skill_context):
        result = await EchoSkill().run({"text": ""}, skill_context)
        assert result.state is CallState.REJECTED
        assert result.error.code == "E-1001"
        assert result.error.kind is ErrorKind.VALIDATION
        assert "text" in result.error.message

    @pytest.mark.asyncio
    async def test_invalid_period_input_never_reaches_erp(self, skill_context, fake_odoo, odoo_factory):
        result = await GetSalesByCustomer(odoo_factory).run({"limit": 0}, skill_context)
        assert result.error.code == "E-1001"
        assert fake_odoo.calls == []

    @pytest.mark.asyncio
    async def test_typed_failure(self, skill_context):
        result = await EchoSkill().run({"text": "x", "mode": "typed"}, skill_context)
        assert result.state is CallState.FAILED
        assert result.error.code == "E-3001"
        assert result.error.kind is ErrorKind.UPSTREAM

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, skill_context):
        result = await EchoSkill().run({"text": "x", "mode": "crash"}, skill_context)
        assert result.state is CallState.FAILED
        assert result.error.code == "E-4001"
        assert result.error.kind is ErrorKind.EXECUTION
        assert "division by zero" in result.error.message


class TestSkillResult:

    def test_success_envelope(self):
        assert SkillResult.ok("echo", {"a": 1}).to_envelope() == {"success": True, "data": {"a": 1}}

    def test_error_envelope(self):
        error = AnalystError.from_code("E-2001", integration="odoo")
        envelope = SkillResult.fail("echo", error, CallState.REJECTED).to_envelope()
        assert envelope["success"] is False
        assert envelope["error"]["kind"] == "auth"
        assert envelope["error"]["code"] == "E-2001"

    def test_metadata(self):
        metadata = EchoSkill.metadata()
        assert metadata["name"] == "echo"
        assert metadata["input_schema"]["required"] == ["text"]
