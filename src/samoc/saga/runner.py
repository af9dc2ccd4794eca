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
"""SagaRunner -- executes an explicit step list and routes failures."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from samoc.kernel.exceptions import BusyError, ErrorOrigin, OfflineError, RemoteError, SamocException
from samoc.saga.result import SagaResult
from samoc.saga.types import StepStatus

if TYPE_CHECKING:
    from samoc.saga.compensator import RollbackCompensator
    from samoc.saga.context import SagaContext
    from samoc.saga.step import SagaStep

logger = logging.getLogger(__name__)


class SagaRunner:
    """Runs steps in order; on failure decides what the compensator undoes.

    * ``RemoteError`` -- compensated according to its origin, then re-raised.
    * ``BusyError`` / ``OfflineError`` -- re-raised untouched; nothing is undone.
    * Other ``SamocException`` (guard or policy violations raised inside a
      step) -- re-raised untouched.
    * Anything else is wrapped as a ``RemoteError`` with origin ``database``,
      which has no compensation entry.
    """

    def __init__(self, compensator: RollbackCompensator) -> None:
        self._compensator = compensator

    async def run(self, steps: Sequence[SagaStep], ctx: SagaContext) -> SagaResult:
        for step in steps:
            ctx.set_step_status(step.name, StepStatus.RUNNING)
            try:
                if step.already_done is not None and step.already_done(ctx):
                    logger.debug("Step %s already done for %s/%s", step.name, ctx.store_code, ctx.offer_code)
                elif step.retry is not None:
                    ctx.set_result(step.name, await step.retry.execute(step.action, ctx))
                else:
                    ctx.set_result(step.name, await step.action(ctx))
            except (BusyError, OfflineError):
                ctx.set_step_status(step.name, StepStatus.FAILED)
                raise
            except RemoteError as exc:
                ctx.set_step_status(step.name, StepStatus.FAILED)
                await self._compensator.compensate(ctx, exc, steps)
                raise
            except SamocException:
                ctx.set_step_status(step.name, StepStatus.FAILED)
                raise
            except Exception as exc:
                ctx.set_step_status(step.name, StepStatus.FAILED)
                wrapped = RemoteError(ErrorOrigin.DATABASE, str(exc) or type(exc).__name__)
                await self._compensator.compensate(ctx, wrapped, steps)
                raise wrapped from exc
            ctx.mark_completed(step.name)

        return self._build_result(ctx, success=True)

    @staticmethod
    def _build_result(ctx: SagaContext, success: bool) -> SagaResult:
        return SagaResult(
            name=f"{ctx.operation.value}:{ctx.store_code}/{ctx.offer_code}",
            success=success,
            steps=dict(ctx.step_statuses),
            completed_steps=tuple(ctx.completed_steps),
            compensated_steps=tuple(ctx.compensated_steps),
            results=dict(ctx.step_results),
        )
