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
"""Immutable results returned by the saga runner and the offer sagas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from samoc.saga.types import StepStatus


@dataclass(frozen=True)
class SagaResult:
    """Outcome of one saga run.

    Fields
    ------
    name:
        ``"<operation>:<store>/<offer>"``.
    success:
        ``True`` when every step committed.
    steps:
        Final status per step name.
    completed_steps:
        Step names in commit order.
    compensated_steps:
        Step names whose compensation ran, in the order it ran.
    results:
        Return values of the actions by step name.
    """

    name: str
    success: bool
    steps: dict[str, StepStatus] = field(default_factory=dict)
    completed_steps: tuple[str, ...] = ()
    compensated_steps: tuple[str, ...] = ()
    results: dict[str, Any] = field(default_factory=dict)

    def result_of(self, step_name: str) -> Any | None:
        return self.results.get(step_name)

    def failed_steps(self) -> list[str]:
        return [name for name, status in self.steps.items() if status == StepStatus.FAILED]


@dataclass(frozen=True)
class OfferSagaOutcome:
    """What an offer saga reports back to its caller."""

    store_code: str
    offer_code: str
    status_id: int | None
    message: str
    saga: SagaResult | None = None
    data: dict[str, Any] = field(default_factory=dict)
