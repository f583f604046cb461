"""Capability (skill) framework primitives.

A Skill is a stateless, typed handler for one class of business question.
One instance serves every tenant; everything tenant-specific arrives in the
SkillContext built for the call. ``Skill.run`` is the only entry point and
never raises: each call walks

    pending -> validating -> (rejected | executing) -> (succeeded | failed)

and ends in a SkillResult carrying either output data or a typed error.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from erp_analyst.config import DEFAULT_TIMEZONE
from erp_analyst.engine.engine import QueryEngine
from erp_analyst.engine.models import AggregationResult, ListResult, QuerySpec
from erp_analyst.erp.client import OdooClientFactory
from erp_analyst.errors.formatter import AnalystError
from erp_analyst.errors.registry import ErrorKind
from erp_analyst.services.integration_types import ODOO
from erp_analyst.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Call State Machine
# ---------------------------------------------------------------------------


class CallState(str, Enum):
    """Lifecycle state of one skill invocation."""

    PENDING = "pending"
    VALIDATING = "validating"
    REJECTED = "rejected"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.PENDING: frozenset({CallState.VALIDATING}),
    CallState.VALIDATING: frozenset({CallState.REJECTED, CallState.EXECUTING}),
    CallState.EXECUTING: frozenset({CallState.SUCCEEDED, CallState.FAILED}),
    CallState.REJECTED: frozenset(),
    CallState.SUCCEEDED: frozenset(),
    CallState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({CallState.REJECTED, CallState.SUCCEEDED, CallState.FAILED})


@dataclass
class SkillCall:
    """Tracks the state of one invocation."""

    skill: str
    state: CallState = CallState.PENDING
    history: list[CallState] = field(default_factory=lambda: [CallState.PENDING])

    def advance(self, new_state: CallState) -> None:
        """Move to ``new_state``.

        Raises:
            RuntimeError: If the transition is not allowed.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid transition for {self.skill}: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)


# ---------------------------------------------------------------------------
# Context and Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkillContext:
    """Per-call scope: one tenant, one caller, that tenant's credentials.

    Built fresh for each request and never shared across tenants. The
    credentials mapping is read-only.

    Attributes:
        tenant_id: Tenant the call runs for.
        user_id: Caller identifier.
        credentials: Integration name -> decrypted credentials.
        timezone: IANA timezone for relative periods.
        today: Fixed reference date (tests); None means "now" in timezone.
    """

    tenant_id: str
    user_id: str
    credentials: Mapping[str, Any] = field(default_factory=dict)
    timezone: str = DEFAULT_TIMEZONE
    today: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "credentials", MappingProxyType(dict(self.credentials)))

    def has(self, integration: str) -> bool:
        """Whether credentials for ``integration`` are present."""
        return self.credentials.get(integration) is not None

    def __repr__(self) -> str:
        return (
            f"SkillContext(tenant_id={self.tenant_id!r}, user_id={self.user_id!r}, "
            f"integrations={sorted(self.credentials)})"
        )


class SkillError(BaseModel):
    """Typed error carried by a failed SkillResult."""

    kind: ErrorKind
    code: str
    message: str
    remediation: str = ""
    is_retryable: bool = False


class SkillResult(BaseModel):
    """Discriminated success/error outcome of a skill call."""

    skill: str
    success: bool
    state: CallState
    data: Any = None
    error: SkillError | None = None

    @classmethod
    def ok(cls, skill: str, data: Any) -> "SkillResult":
        return cls(skill=skill, success=True, state=CallState.SUCCEEDED, data=data)

    @classmethod
    def fail(cls, skill: str, error: AnalystError, state: CallState) -> "SkillResult":
        return cls(
            skill=skill,
            success=False,
            state=state,
            error=SkillError(
                kind=error.kind,
                code=error.code,
                message=error.message,
                remediation=error.remediation,
                is_retryable=error.is_retryable,
            ),
        )

    def to_envelope(self) -> dict[str, Any]:
        """JSON-serializable payload handed to the language model."""
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error.model_dump(mode="json")}


def _summarize_validation_error(error: ValidationError, limit: int = 5) -> str:
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(p) for p in item.get("loc", ())) or "input"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    extra = error.error_count() - limit
    if extra > 0:
        parts.append(f"and {extra} more")
    return "; ".join(parts)


# ---------------------------------------------------------------------------
# Skill Base Classes
# ---------------------------------------------------------------------------


class Skill(ABC):
    """Base class for every capability.

    Subclasses declare their metadata as class attributes and implement
    ``execute``. They may raise AnalystError (or subclasses) for expected
    failures; ``run`` converts every exception into a typed result.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    integration: ClassVar[str]
    input_model: ClassVar[type[BaseModel]]
    tags: ClassVar[tuple[str, ...]] = ()
    priority: ClassVar[int] = 0

    @classmethod
    def input_schema(cls) -> dict[str, Any]:
        """JSON schema of the input contract."""
        return cls.input_model.model_json_schema()

    @classmethod
    def metadata(cls) -> dict[str, Any]:
        """Catalogue entry for admin display."""
        return {
            "name": cls.name,
            "description": cls.description,
            "integration": cls.integration,
            "tags": list(cls.tags),
            "priority": cls.priority,
            "input_schema": cls.input_schema(),
        }

    @abstractmethod
    async def execute(self, params: BaseModel, context: SkillContext) -> Any:
        """Answer the question. ``params`` is an instance of ``input_model``."""

    async def run(self, raw_input: Mapping[str, Any] | None, context: SkillContext) -> SkillResult:
        """Validate, execute and wrap the outcome. Never raises.

        Credentials are checked before anything else runs, so a tenant
        without the required integration never reaches a transport client.
        """
        call = SkillCall(self.name)
        call.advance(CallState.VALIDATING)

        if not context.has(self.integration):
            call.advance(CallState.REJECTED)
            logger.warning(
                "Rejected %s for tenant %s: no %s credentials",
                self.name, context.tenant_id, self.integration,
            )
            return SkillResult.fail(
                self.name, AnalystError.from_code("E-2001", integration=self.integration), call.state,
            )

        try:
            params = self.input_model.model_validate(dict(raw_input or {}))
        except ValidationError as e:
            call.advance(CallState.REJECTED)
            detail = _summarize_validation_error(e)
            logger.info("Rejected %s input: %s", self.name, detail)
            return SkillResult.fail(
                self.name, AnalystError.from_code("E-1001", skill=self.name, detail=detail), call.state,
            )

        call.advance(CallState.EXECUTING)
        try:
            output = await self.execute(params, context)
        except AnalystError as e:
            call.advance(CallState.FAILED)
            logger.warning("%s failed for tenant %s: %s", self.name, context.tenant_id, e)
            return SkillResult.fail(self.name, e, call.state)
        except Exception as e:
            call.advance(CallState.FAILED)
            logger.exception("%s raised unexpectedly for tenant %s", self.name, context.tenant_id)
            error = AnalystError.from_code(
                "E-4001", skill=self.name, detail=sanitize_error_message(str(e), 300) or type(e).__name__,
            )
            return SkillResult.fail(self.name, error, call.state)

        call.advance(CallState.SUCCEEDED)
        data = output.model_dump(mode="json") if isinstance(output, BaseModel) else output
        logger.info("%s succeeded for tenant %s", self.name, context.tenant_id)
        return SkillResult.ok(self.name, data)


class OdooSkill(Skill):
    """Skill answered through the query engine over the tenant's ERP."""

    integration: ClassVar[str] = ODOO

    def __init__(self, client_factory: OdooClientFactory | None = None) -> None:
        self._client_factory = client_factory or OdooClientFactory()

    @asynccontextmanager
    async def engine(self, context: SkillContext) -> AsyncIterator[QueryEngine]:
        """Query engine bound to the context's ERP credentials for one call."""
        client = self._client_factory(context.credentials[ODOO])
        try:
            yield QueryEngine(client, timezone=context.timezone, today=context.today)
        finally:
            await client.aclose()

    @staticmethod
    async def query(
        engine: QueryEngine, spec: QuerySpec, *, compare: bool = False,
    ) -> AggregationResult | ListResult:
        """Run a query spec, raising its typed error on failure."""
        outcome = await engine.run(spec, compare=compare)
        if not outcome.success:
            raise outcome.error
        return outcome.result
