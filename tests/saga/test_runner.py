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
"""Tests for SagaRunner -- step execution and failure routing."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from samoc.kernel.exceptions import BusyError, ErrorOrigin, GuardViolation, OfflineError, RemoteError
from samoc.resilience.retry import RetryPolicy
from samoc.saga import compensator as comp
from samoc.saga.compensator import RollbackCompensator
from samoc.saga.context import SagaContext
from samoc.saga.runner import SagaRunner
from samoc.saga.step import SagaStep
from samoc.saga.types import StepStatus
from samoc.status.codes import Env, Operation


@pytest.fixture
def ctx() -> SagaContext:
    return SagaContext(Operation.CREATE, Env.STG, "store-us", "SUMMER")


@pytest.fixture
def undo() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def runner() -> SagaRunner:
    return SagaRunner(RollbackCompensator())


def _coupon_step(undo: AsyncMock, action: AsyncMock | None = None) -> SagaStep:
    return SagaStep(
        "create_coupon",
        action or AsyncMock(return_value="cpn-1"),
        compensation=undo,
        compensation_name=comp.DEACTIVATE_COUPON,
    )


class TestSagaRunner:
    async def test_success_collects_results(self, runner, ctx, undo):
        targeting = AsyncMock(return_value=7)
        result = await runner.run([_coupon_step(undo), SagaStep("write_targeting", targeting)], ctx)

        assert result.success
        assert result.name == "create:store-us/SUMMER"
        assert result.completed_steps == ("create_coupon", "write_targeting")
        assert result.result_of("create_coupon") == "cpn-1"
        assert result.result_of("write_targeting") == 7
        assert result.steps["write_targeting"] == StepStatus.DONE
        targeting.assert_awaited_once_with(ctx)

    async def test_remote_error_compensates_then_reraises(self, runner, ctx, undo):
        failing = AsyncMock(side_effect=RemoteError(ErrorOrigin.CONTENT, "content down"))

        with pytest.raises(RemoteError, match="content down"):
            await runner.run([_coupon_step(undo), SagaStep("create_content", failing)], ctx)

        undo.assert_awaited_once_with(ctx)
        assert ctx.step_statuses["create_content"] == StepStatus.FAILED
        assert ctx.compensated_steps == ["create_coupon"]

    @pytest.mark.parametrize("error", [BusyError("version conflict"), OfflineError("maintenance")])
    async def test_busy_and_offline_are_not_compensated(self, runner, ctx, undo, error):
        with pytest.raises(type(error)):
            await runner.run([_coupon_step(undo), SagaStep("write_targeting", AsyncMock(side_effect=error))], ctx)
        undo.assert_not_awaited()

    async def test_guard_violation_inside_step_propagates(self, runner, ctx, undo):
        with pytest.raises(GuardViolation):
            await runner.run([_coupon_step(undo), SagaStep("check", AsyncMock(side_effect=GuardViolation("no")))], ctx)
        undo.assert_not_awaited()

    async def test_unexpected_error_becomes_database_remote_error(self, runner, ctx, undo):
        failing = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(RemoteError) as exc_info:
            await runner.run([_coupon_step(undo), SagaStep("set_status", failing)], ctx)

        assert exc_info.value.origin is ErrorOrigin.DATABASE
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        undo.assert_not_awaited()

    async def test_already_done_step_is_skipped_but_committed(self, runner, ctx, undo):
        action = AsyncMock()
        step = SagaStep(
            "create_coupon",
            action,
            compensation=undo,
            compensation_name=comp.DEACTIVATE_COUPON,
            already_done=lambda c: True,
        )
        failing = AsyncMock(side_effect=RemoteError(ErrorOrigin.TARGETING, "conflict"))

        with pytest.raises(RemoteError):
            await runner.run([step, SagaStep("write_targeting", failing)], ctx)

        action.assert_not_awaited()
        undo.assert_awaited_once()

    async def test_step_retry_policy(self, runner, ctx):
        flaky = AsyncMock(side_effect=[RemoteError(ErrorOrigin.BILLING, "blip"), {"code": "monthly"}])
        retry = RetryPolicy(max_attempts=2, base_delay=timedelta(0), retry_on=(RemoteError,))

        result = await runner.run([SagaStep("fetch_plan", flaky, retry=retry)], ctx)

        assert result.result_of("fetch_plan") == {"code": "monthly"}
        assert flaky.await_count == 2
