# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Rollback compensator -- undoes committed steps after a remote failure.

Which compensations run is a pure table lookup on
``(operation, error origin)`` intersected with the steps that actually
committed. Compensations run in reverse commit order, one at a time. The
first compensation that throws ends the rollback: the rollback-failed
status is persisted through ``ctx.status_sink`` and
:class:`~samoc.kernel.exceptions.CompensationFailure` is raised. Nothing is
retried past that point.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from samoc.kernel.exceptions import CompensationFailure, ErrorOrigin, RemoteError
from samoc.saga.types import StepStatus
from samoc.status.codes import Operation, Outcome
from samoc.status.registry import next_status

if TYPE_CHECKING:
    from samoc.saga.context import SagaContext
    from samoc.saga.step import Action, SagaStep

logger = logging.getLogger(__name__)

# compensation names
ARCHIVE_CONTENT = "archive_content"
RESTORE_CONTENT = "restore_content"
ROLLBACK_TARGETING = "rollback_targeting"
DEACTIVATE_COUPON = "deactivate_coupon"
DEACTIVATE_UPGRADE_COUPON = "deactivate_upgrade_coupon"
RESTORE_COUPON = "restore_coupon"
RESTORE_UPGRADE_COUPON = "restore_upgrade_coupon"

_CREATE_UNDO = frozenset({ARCHIVE_CONTENT, ROLLBACK_TARGETING, DEACTIVATE_COUPON, DEACTIVATE_UPGRADE_COUPON})
_UPDATE_UNDO = frozenset({RESTORE_CONTENT, RESTORE_COUPON, RESTORE_UPGRADE_COUPON})
_DELETE_UNDO = frozenset({RESTORE_COUPON, RESTORE_UPGRADE_COUPON})

_O = ErrorOrigin

_OPERATION_LABELS = {
    Operation.CREATE: "Create",
    Operation.UPDATE: "Update",
    Operation.DELETE: "Retire",
    Operation.VALIDATE: "Validate",
}


@dataclass(frozen=True)
class CompensationPolicy:
    """Table of compensation names allowed per ``(operation, origin)``.

    A missing entry means nothing is compensated: a billing failure during
    create, for instance, happens before anything exists to undo.
    """

    table: Mapping[tuple[Operation, ErrorOrigin], frozenset[str]] = field(default_factory=dict)

    def allowed(self, operation: Operation, origin: ErrorOrigin) -> frozenset[str]:
        return self.table.get((operation, origin), frozenset())


DEFAULT_POLICY = CompensationPolicy(
    {
        (Operation.CREATE, _O.TARGETING): _CREATE_UNDO,
        (Operation.CREATE, _O.AUTH_CACHE): _CREATE_UNDO,
        (Operation.CREATE, _O.CONTENT): _CREATE_UNDO,
        (Operation.CREATE, _O.CACHE): _CREATE_UNDO,
        (Operation.UPDATE, _O.AUTH_CACHE): _UPDATE_UNDO,
        (Operation.UPDATE, _O.CONTENT): _UPDATE_UNDO,
        (Operation.UPDATE, _O.CACHE): _UPDATE_UNDO,
        (Operation.DELETE, _O.TARGETING): _DELETE_UNDO,
        (Operation.DELETE, _O.AUTH_CACHE): _DELETE_UNDO,
        (Operation.DELETE, _O.CONTENT): _DELETE_UNDO,
        (Operation.DELETE, _O.CACHE): _DELETE_UNDO,
    }
)


class RollbackCompensator:
    """Runs compensations for a failed saga and enforces the two-level failure model."""

    def __init__(self, policy: CompensationPolicy = DEFAULT_POLICY, disable_rollback: bool = False) -> None:
        self._policy = policy
        self._disable_rollback = disable_rollback

    @property
    def policy(self) -> CompensationPolicy:
        return self._policy

    def select(self, ctx: SagaContext, error: RemoteError, steps: Sequence[SagaStep]) -> list[SagaStep]:
        """Committed, compensable steps allowed by the policy, newest first."""
        allowed = self._policy.allowed(ctx.operation, error.origin)
        by_name = {step.name: step for step in steps}
        selected: list[SagaStep] = []
        for name in reversed(ctx.completed_steps):
            step = by_name.get(name)
            if step is not None and step.compensable and step.policy_key in allowed:
                selected.append(step)
        return selected

    async def compensate(self, ctx: SagaContext, error: RemoteError, steps: Sequence[SagaStep]) -> list[str]:
        """Undo what *error* calls for; returns the compensated step names."""
        selected = self.select(ctx, error, steps)
        ctx.log.info(
            "saga failed, compensating",
            origin=error.origin.value,
            error=str(error),
            compensations=[step.policy_key for step in selected],
        )
        actions = [(step.name, step.compensation) for step in selected if step.compensation is not None]
        return await self.rollback(ctx, actions, error)

    async def rollback(
        self,
        ctx: SagaContext,
        actions: Sequence[tuple[str, Action]],
        original: Exception | None = None,
    ) -> list[str]:
        """Run *actions* in order, stopping at the first failure.

        Also used directly for the full retire performed after a failed
        validation, which is not tied to the steps of the current run.
        """
        if self._disable_rollback:
            logger.warning(
                "Rollback disabled, skipping %d compensation(s) for %s/%s",
                len(actions),
                ctx.store_code,
                ctx.offer_code,
            )
            return []

        done: list[str] = []
        for name, action in actions:
            try:
                await action(ctx)
            except Exception as exc:
                ctx.compensation_errors[name] = exc
                ctx.set_step_status(name, StepStatus.FAILED)
                raise await self._failure(ctx, name, exc, original) from exc
            ctx.set_step_status(name, StepStatus.COMPENSATED)
            ctx.compensated_steps.append(name)
            done.append(name)
            logger.debug("Compensated %s for %s/%s", name, ctx.store_code, ctx.offer_code)
        return done

    async def _failure(
        self,
        ctx: SagaContext,
        name: str,
        exc: Exception,
        original: Exception | None,
    ) -> CompensationFailure:
        """Persist the rollback-failed status and build the terminal error."""
        status = next_status(ctx.operation, ctx.env, Outcome.ROLLBACK_FAILURE)
        message = f"Rollback failed for {_OPERATION_LABELS[ctx.operation]} Offer on {ctx.env.label}: {exc}"
        logger.error("Compensation %s failed for %s/%s: %s", name, ctx.store_code, ctx.offer_code, exc)
        if ctx.status_sink is not None:
            await ctx.status_sink(status, str(exc))
        return CompensationFailure(message, cause=exc, original=original, status_id=int(status))
