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
"""Status registry -- guards and the transition table for offer sagas.

Every status written by a saga is computed by :func:`next_status`; saga code
never picks a status code on its own.
"""

from __future__ import annotations

from samoc.kernel.exceptions import GuardViolation
from samoc.status.codes import Env, Operation, Outcome, StatusCode

S = StatusCode

CREATE_ALLOWED: frozenset[StatusCode] = frozenset({S.DFT, S.STG_ERR_CRT, S.STG_FAIL})

UPDATE_ALLOWED: frozenset[StatusCode] = frozenset(
    {
        S.DFT,
        S.STG_ERR_UPD,
        S.STG,
        S.STG_VALDN_FAIL,
        S.STG_VALDN_PASS,
        S.PROD_ERR_UPD,
        S.PROD,
        S.PROD_VALDN_FAIL,
        S.PROD_VALDN_PASS,
    }
)

VALIDATE_ALLOWED: frozenset[StatusCode] = frozenset({S.STG, S.STG_VALDN_FAIL, S.PROD, S.PROD_VALDN_FAIL})

# A saga or an external promotion is running against the row.
IN_FLIGHT: frozenset[StatusCode] = frozenset({S.STG_VALDN_PEND, S.PROD_VALDN_PEND, S.PROD_PEND, S.APV_PEND})

ROLLBACK_FAILED: frozenset[StatusCode] = frozenset({S.STG_RB_FAIL, S.PROD_RB_FAIL})

RETIRED: frozenset[StatusCode] = frozenset({S.STG_RETD, S.PROD_RETD})

ACTIVE: frozenset[StatusCode] = frozenset(
    {S.STG, S.STG_VALDN_PEND, S.STG_VALDN_PASS, S.PROD, S.PROD_VALDN_PEND, S.PROD_VALDN_PASS}
)

DELETE_ALLOWED: frozenset[StatusCode] = frozenset(set(StatusCode) - IN_FLIGHT - ROLLBACK_FAILED - RETIRED)

_TRANSITIONS: dict[tuple[Operation, Env, Outcome], StatusCode] = {
    # create on STG is the saga; create on PROD mirrors the external publish
    (Operation.CREATE, Env.STG, Outcome.SUCCESS): S.STG,
    (Operation.CREATE, Env.STG, Outcome.FAILURE): S.STG_ERR_CRT,
    (Operation.CREATE, Env.STG, Outcome.ROLLBACK_FAILURE): S.STG_RB_FAIL,
    (Operation.CREATE, Env.PROD, Outcome.SUCCESS): S.PROD,
    (Operation.CREATE, Env.PROD, Outcome.FAILURE): S.PROD_ERR_PUB,
    (Operation.CREATE, Env.PROD, Outcome.ROLLBACK_FAILURE): S.PROD_RB_FAIL,
    (Operation.UPDATE, Env.DB, Outcome.SUCCESS): S.DFT,
    (Operation.UPDATE, Env.STG, Outcome.SUCCESS): S.STG,
    (Operation.UPDATE, Env.STG, Outcome.FAILURE): S.STG_ERR_UPD,
    (Operation.UPDATE, Env.STG, Outcome.ROLLBACK_FAILURE): S.STG_RB_FAIL,
    (Operation.UPDATE, Env.PROD, Outcome.SUCCESS): S.PROD,
    (Operation.UPDATE, Env.PROD, Outcome.FAILURE): S.PROD_ERR_UPD,
    (Operation.UPDATE, Env.PROD, Outcome.ROLLBACK_FAILURE): S.PROD_RB_FAIL,
    (Operation.DELETE, Env.STG, Outcome.SUCCESS): S.STG_RETD,
    (Operation.DELETE, Env.STG, Outcome.FAILURE): S.STG_ERR_DEL,
    (Operation.DELETE, Env.STG, Outcome.ROLLBACK_FAILURE): S.STG_RB_FAIL,
    (Operation.DELETE, Env.PROD, Outcome.SUCCESS): S.PROD_RETD,
    (Operation.DELETE, Env.PROD, Outcome.FAILURE): S.PROD_ERR_DEL,
    (Operation.DELETE, Env.PROD, Outcome.ROLLBACK_FAILURE): S.PROD_RB_FAIL,
    (Operation.VALIDATE, Env.STG, Outcome.SUCCESS): S.STG_VALDN_PASS,
    (Operation.VALIDATE, Env.STG, Outcome.PENDING): S.STG_VALDN_PEND,
    (Operation.VALIDATE, Env.STG, Outcome.FAILURE): S.STG_VALDN_FAIL,
    (Operation.VALIDATE, Env.STG, Outcome.ROLLBACK_FAILURE): S.STG_RB_FAIL,
    (Operation.VALIDATE, Env.PROD, Outcome.SUCCESS): S.PROD_VALDN_PASS,
    (Operation.VALIDATE, Env.PROD, Outcome.PENDING): S.PROD_VALDN_PEND,
    (Operation.VALIDATE, Env.PROD, Outcome.FAILURE): S.PROD_VALDN_FAIL,
    (Operation.VALIDATE, Env.PROD, Outcome.ROLLBACK_FAILURE): S.PROD_RB_FAIL,
}


# ── guards ────────────────────────────────────────────────────


def is_allowed_for_create(status: int) -> bool:
    return status in CREATE_ALLOWED


def is_allowed_for_update(status: int) -> bool:
    return status in UPDATE_ALLOWED


def is_allowed_for_validate(status: int) -> bool:
    return status in VALIDATE_ALLOWED


def is_allowed_for_delete(status: int) -> bool:
    return status in DELETE_ALLOWED


_GUARDS = {
    Operation.CREATE: is_allowed_for_create,
    Operation.UPDATE: is_allowed_for_update,
    Operation.VALIDATE: is_allowed_for_validate,
    Operation.DELETE: is_allowed_for_delete,
}


def ensure_allowed(operation: Operation, status: int, offer_code: str = "") -> None:
    """Raise :class:`GuardViolation` unless *status* permits *operation*."""
    if not _GUARDS[operation](status):
        name = _status_name(status)
        raise GuardViolation(
            f"Offer ({offer_code}) in status {name} is not allowed for {operation.value}",
            code=f"GUARD_{operation.value.upper()}",
            context={"status": status, "operation": operation.value},
        )


# ── transitions ───────────────────────────────────────────────


def next_status(
    operation: Operation,
    env: Env,
    outcome: Outcome,
    previous: StatusCode | None = None,
) -> StatusCode:
    """Return the status to persist after *operation* ended with *outcome* on *env*.

    A failed delete reverts to *previous* when it is known, since the
    compensation restores everything the delete touched.
    """
    if operation is Operation.DELETE and outcome is Outcome.FAILURE and previous is not None:
        return StatusCode(previous)
    try:
        return _TRANSITIONS[(operation, env, outcome)]
    except KeyError:
        raise ValueError(f"No transition for {operation.value} on {env.value} with outcome {outcome.value}") from None


def rollback_failed_status(env: Env) -> StatusCode:
    return S.PROD_RB_FAIL if env is Env.PROD else S.STG_RB_FAIL


# ── environment derivation ────────────────────────────────────


def target_env(status: int, coupon_id: str | None = None) -> Env:
    """Environment an offer row lives in, from its status and billing id."""
    if status >= S.PROD_ERR_PUB:
        return Env.PROD
    if status >= S.STG_ERR_CRT:
        return Env.STG if coupon_id else Env.DB
    return Env.DB


def target_env_from_status(status: int) -> Env:
    if status > S.PROD_PEND:
        return Env.PROD
    if status >= S.STG_ERR_CRT:
        return Env.STG
    if status >= S.DFT:
        return Env.DB
    raise GuardViolation(f"Unknown status {status}", code="UNKNOWN_STATUS")


def is_in_flight(status: int) -> bool:
    return status in IN_FLIGHT


def _status_name(status: int) -> str:
    try:
        return StatusCode(status).name
    except ValueError:
        return str(status)
