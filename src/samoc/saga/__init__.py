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
"""Generic saga engine: steps, explicit context, runner and compensator."""

from samoc.saga.compensator import DEFAULT_POLICY, CompensationPolicy, RollbackCompensator
from samoc.saga.context import SagaContext
from samoc.saga.result import OfferSagaOutcome, SagaResult
from samoc.saga.runner import SagaRunner
from samoc.saga.step import SagaStep
from samoc.saga.types import StepStatus

__all__ = [
    "DEFAULT_POLICY",
    "CompensationPolicy",
    "OfferSagaOutcome",
    "RollbackCompensator",
    "SagaContext",
    "SagaResult",
    "SagaRunner",
    "SagaStep",
    "StepStatus",
]
