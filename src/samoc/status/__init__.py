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
"""Status registry: lifecycle codes, guards and transitions."""

from samoc.status.codes import (
    CodeType,
    CouponState,
    EntryState,
    Env,
    FilterStatus,
    OfferType,
    Operation,
    Outcome,
    StatusCode,
)
from samoc.status.registry import (
    IN_FLIGHT,
    ensure_allowed,
    is_allowed_for_create,
    is_allowed_for_delete,
    is_allowed_for_update,
    is_allowed_for_validate,
    is_in_flight,
    next_status,
    rollback_failed_status,
    target_env,
    target_env_from_status,
)

__all__ = [
    "IN_FLIGHT",
    "CodeType",
    "CouponState",
    "EntryState",
    "Env",
    "FilterStatus",
    "OfferType",
    "Operation",
    "Outcome",
    "StatusCode",
    "ensure_allowed",
    "is_allowed_for_create",
    "is_allowed_for_delete",
    "is_allowed_for_update",
    "is_allowed_for_validate",
    "is_in_flight",
    "next_status",
    "rollback_failed_status",
    "target_env",
    "target_env_from_status",
]
