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
"""SagaContext -- explicit state carrier for one offer saga execution."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from samoc.logging.structlog_adapter import get_logger
from samoc.saga.types import StepStatus
from samoc.status.codes import Env, Operation, StatusCode

StatusSink = Callable[[StatusCode, str | None], Awaitable[None]]


@dataclass
class SagaContext:
    """Mutable bag of state threaded through every step of one saga.

    The context is passed explicitly to every step and compensation; nothing
    about the running saga (environment, offer code, who triggered it) is kept
    in ambient or thread-local state. ``status_sink`` is how the compensator
    persists the rollback-failed status without knowing about the database.
    """

    operation: Operation
    env: Env
    store_code: str
    offer_code: str
    updated_by: str | None = None
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status_sink: StatusSink | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    step_results: dict[str, Any] = field(default_factory=dict)
    step_statuses: dict[str, StepStatus] = field(default_factory=dict)
    completed_steps: list[str] = field(default_factory=list)
    compensated_steps: list[str] = field(default_factory=list)
    compensation_errors: dict[str, Exception] = field(default_factory=dict)

    # ── labels ────────────────────────────────────────────────

    @property
    def prefix(self) -> str:
        """Message prefix shown to users, e.g. ``"STG: "``."""
        return f"{self.env.label}: "

    @property
    def log(self) -> Any:
        return get_logger(
            "samoc.saga",
            env=self.env.label,
            operation=self.operation.value,
            store=self.store_code,
            offer=self.offer_code,
            correlation_id=self.correlation_id,
        )

    # ── result helpers ────────────────────────────────────────

    def get_result(self, step_name: str) -> Any | None:
        return self.step_results.get(step_name)

    def set_result(self, step_name: str, result: Any) -> None:
        self.step_results[step_name] = result

    def get_variable(self, key: str, default: Any = None) -> Any:
        return self.variables.get(key, default)

    def set_variable(self, key: str, value: Any) -> None:
        self.variables[key] = value

    # ── status helpers ────────────────────────────────────────

    def set_step_status(self, step_name: str, status: StepStatus) -> None:
        self.step_statuses[step_name] = status

    def mark_completed(self, step_name: str) -> None:
        self.completed_steps.append(step_name)
        self.step_statuses[step_name] = StepStatus.DONE

    def is_completed(self, step_name: str) -> bool:
        return step_name in self.completed_steps
