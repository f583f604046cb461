"""Response gate: validate prose and regenerate it once when rejected.

The regeneration is internal; the user only ever sees the prose the gate
returns.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from erp_analyst.validation.models import PreSendValidation, ValidationAction
from erp_analyst.validation.pre_send import PreSendValidator, ToolResults, generate_correction_prompt

logger = logging.getLogger(__name__)

RegenerateFn = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class GateOutcome:
    """Final prose with the validation that applies to it."""

    prose: str
    validation: PreSendValidation
    regenerations: int

    @property
    def flagged(self) -> bool:
        """Whether the prose ships with an unresolved warning or rejection."""
        return self.validation.action is not ValidationAction.SEND


class ResponseGate:
    """Runs the validator and drives regeneration through a callback.

    Args:
        regenerate: Async callable receiving the correction prompt and
            returning new prose (typically one more model turn).
        validator: Validator to use; default thresholds when omitted.
        max_regenerations: Regeneration attempts before giving up.
    """

    def __init__(
        self,
        regenerate: RegenerateFn,
        validator: PreSendValidator | None = None,
        max_regenerations: int = 1,
    ) -> None:
        self._regenerate = regenerate
        self._validator = validator or PreSendValidator()
        self._max_regenerations = max_regenerations

    async def review(self, prose: str, results: ToolResults = None) -> GateOutcome:
        """Validate ``prose``; regenerate while rejected and attempts remain."""
        validation = self._validator.validate(prose, results)
        regenerations = 0
        while validation.action is ValidationAction.REGENERATE and regenerations < self._max_regenerations:
            prompt = generate_correction_prompt(validation)
            regenerations += 1
            logger.info(
                "Regenerating response (attempt %d, confidence %d)", regenerations, validation.confidence,
            )
            prose = await self._regenerate(prompt)
            validation = self._validator.validate(prose, results)

        if validation.action is ValidationAction.REGENERATE:
            logger.warning(
                "Response still rejected after %d regeneration(s): %s",
                regenerations, [issue.description for issue in validation.issues],
            )
        return GateOutcome(prose=prose, validation=validation, regenerations=regenerations)
