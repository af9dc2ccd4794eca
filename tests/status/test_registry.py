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
"""Tests for the status registry: guards, transitions and environment derivation."""

from __future__ import annotations

import pytest

from samoc.kernel.exceptions import GuardViolation
from samoc.status.codes import Env, Operation, Outcome, StatusCode
from samoc.status.registry import (
    CREATE_ALLOWED,
    DELETE_ALLOWED,
    IN_FLIGHT,
    UPDATE_ALLOWED,
    VALIDATE_ALLOWED,
    ensure_allowed,
    is_allowed_for_create,
    is_allowed_for_delete,
    is_allowed_for_update,
    is_allowed_for_validate,
    next_status,
    rollback_failed_status,
    target_env,
    target_env_from_status,
)

S = StatusCode


class TestGuards:
    def test_in_flight_statuses_admit_no_operation(self):
        for allowed in (CREATE_ALLOWED, UPDATE_ALLOWED, VALIDATE_ALLOWED, DELETE_ALLOWED):
            assert not allowed & IN_FLIGHT

    def test_create_only_from_draft_or_failed_create(self):
        assert is_allowed_for_create(S.DFT)
        assert is_allowed_for_create(S.STG_ERR_CRT)
        assert is_allowed_for_create(S.STG_FAIL)
        assert not is_allowed_for_create(S.STG)
        assert not is_allowed_for_create(S.PROD)

    def test_update_allowed_on_live_offers(self):
        assert is_allowed_for_update(S.STG)
        assert is_allowed_for_update(S.PROD_VALDN_PASS)
        assert not is_allowed_for_update(S.STG_VALDN_PEND)
        assert not is_allowed_for_update(S.STG_RETD)

    def test_validate_only_from_stable_or_failed_validation(self):
        assert is_allowed_for_validate(S.STG)
        assert is_allowed_for_validate(S.PROD_VALDN_FAIL)
        assert not is_allowed_for_validate(S.STG_VALDN_PASS)
        assert not is_allowed_for_validate(S.DFT)

    def test_retired_and_rollback_failed_cannot_be_deleted(self):
        assert not is_allowed_for_delete(S.STG_RETD)
        assert not is_allowed_for_delete(S.PROD_RB_FAIL)
        assert is_allowed_for_delete(S.DFT)
        assert is_allowed_for_delete(S.PROD)

    def test_ensure_allowed_raises_with_operation_code(self):
        with pytest.raises(GuardViolation) as exc_info:
            ensure_allowed(Operation.CREATE, S.STG, "SUMMER")
        assert exc_info.value.code == "GUARD_CREATE"
        assert exc_info.value.status_code == 406
        assert "SUMMER" in exc_info.value.message
        assert "STG" in exc_info.value.message


class TestTransitions:
    @pytest.mark.parametrize(
        ("operation", "env", "outcome", "expected"),
        [
            (Operation.CREATE, Env.STG, Outcome.SUCCESS, S.STG),
            (Operation.CREATE, Env.STG, Outcome.FAILURE, S.STG_ERR_CRT),
            (Operation.UPDATE, Env.PROD, Outcome.FAILURE, S.PROD_ERR_UPD),
            (Operation.DELETE, Env.STG, Outcome.SUCCESS, S.STG_RETD),
            (Operation.VALIDATE, Env.STG, Outcome.PENDING, S.STG_VALDN_PEND),
            (Operation.VALIDATE, Env.PROD, Outcome.SUCCESS, S.PROD_VALDN_PASS),
            (Operation.UPDATE, Env.STG, Outcome.ROLLBACK_FAILURE, S.STG_RB_FAIL),
        ],
    )
    def test_next_status(self, operation, env, outcome, expected):
        assert next_status(operation, env, outcome) == expected

    def test_failed_delete_reverts_to_previous_status(self):
        assert next_status(Operation.DELETE, Env.PROD, Outcome.FAILURE, previous=S.PROD) == S.PROD
        assert next_status(Operation.DELETE, Env.PROD, Outcome.FAILURE) == S.PROD_ERR_DEL

    def test_missing_transition_raises(self):
        with pytest.raises(ValueError):
            next_status(Operation.CREATE, Env.DB, Outcome.SUCCESS)

    def test_rollback_failed_status_per_env(self):
        assert rollback_failed_status(Env.STG) == S.STG_RB_FAIL
        assert rollback_failed_status(Env.PROD) == S.PROD_RB_FAIL


class TestTargetEnv:
    def test_draft_lives_in_db(self):
        assert target_env(S.DFT) is Env.DB

    def test_staged_without_coupon_is_still_db(self):
        assert target_env(S.STG_ERR_CRT, None) is Env.DB
        assert target_env(S.STG_ERR_CRT, "cpn-1") is Env.STG

    def test_published_statuses_live_on_prod(self):
        assert target_env(S.PROD_ERR_PUB) is Env.PROD
        assert target_env(S.PROD_RETD, None) is Env.PROD

    def test_from_status_rejects_unknown(self):
        assert target_env_from_status(S.PROD) is Env.PROD
        assert target_env_from_status(S.STG) is Env.STG
        with pytest.raises(GuardViolation):
            target_env_from_status(0)
