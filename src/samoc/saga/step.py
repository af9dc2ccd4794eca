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
"""SagaStep -- one forward action and its optional compensation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from samoc.resilience.retry import RetryPolicy
    from samoc.saga.context import SagaContext

Action = Callable[["SagaContext"], Awaitable[Any]]
Predicate = Callable[["SagaContext"], bool]


@dataclass(frozen=True)
class SagaStep:
    """A unit of work in an offer saga.

    Fields
    ------
    name:
        Unique name within the step list; the action's return value is stored
        under it in ``ctx.step_results``.
    action:
        Awaited with the saga context.
    compensation:
        Undo for a committed action, or ``None`` when the step leaves nothing
        to undo (cache clears, reads).
    compensation_name:
        Key looked up in the compensation policy table; defaults to *name*.
    already_done:
        Predicate telling whether the step's effect already exists (from an
        earlier attempt). The action is skipped but the step still counts as
        committed, so its compensation can run.
    retry:
        Retry policy for idempotent actions only; mutating remote calls never
        carry one.
    """

    name: str
    action: Action
    compensation: Action | None = None
    compensation_name: str | None = None
    already_done: Predicate | None = None
    retry: RetryPolicy | None = None

    @property
    def compensable(self) -> bool:
        return self.compensation is not None

    @property
    def policy_key(self) -> str:
        return self.compensation_name or self.name
