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
"""Billing service adapter: plans and coupons."""

from __future__ import annotations

from typing import Any

from samoc.clients.http import RestAdapter
from samoc.kernel.exceptions import RemoteError
from samoc.ports.outbound import CouponRequest, CouponSnapshot
from samoc.status.codes import CodeType, CouponState, Env


def _coupon_body(request: CouponRequest) -> dict[str, Any]:
    return {
        "code": request.code,
        "planCode": request.plan_code,
        "name": request.name,
        "codeType": request.code_type.value,
        **request.attributes,
    }


def _snapshot(data: dict[str, Any]) -> CouponSnapshot:
    known = {"code", "id", "state", "codeType", "planCode", "name"}
    return CouponSnapshot(
        code=data["code"],
        coupon_id=str(data["id"]),
        state=CouponState(data.get("state", CouponState.REDEEMABLE)),
        code_type=CodeType(data.get("codeType", CodeType.SINGLE_CODE)),
        plan_code=data.get("planCode"),
        name=data.get("name", ""),
        attributes={k: v for k, v in data.items() if k not in known},
    )


class BillingClient(RestAdapter):
    """Implements :class:`~samoc.ports.outbound.BillingPort` over REST."""

    async def fetch_plan(self, plan_code: str, env: Env) -> dict[str, Any]:
        return await self._clients[env].get_json(f"/plans/{plan_code}")

    async def create_coupon(self, request: CouponRequest, env: Env) -> CouponSnapshot:
        response = await self._clients[env].post("/coupons", json=_coupon_body(request))
        return _snapshot(response.json())

    async def update_coupon(self, request: CouponRequest, env: Env) -> CouponSnapshot:
        response = await self._clients[env].put(f"/coupons/{request.code}", json=_coupon_body(request))
        return _snapshot(response.json())

    async def deactivate_coupon(self, code: str, env: Env) -> None:
        try:
            await self._clients[env].delete(f"/coupons/{code}")
        except RemoteError as exc:
            # already gone counts as deactivated
            if exc.status_code != 404:
                raise

    async def restore_coupon(self, snapshot: CouponSnapshot, env: Env) -> CouponSnapshot:
        body = {
            "code": snapshot.code,
            "id": snapshot.coupon_id,
            "state": snapshot.state.value,
            "codeType": snapshot.code_type.value,
            "planCode": snapshot.plan_code,
            "name": snapshot.name,
            **snapshot.attributes,
        }
        response = await self._clients[env].put(f"/coupons/{snapshot.code}/restore", json=body)
        return _snapshot(response.json())

    async def fetch_coupon(self, code: str, env: Env) -> CouponSnapshot | None:
        data = await self._clients[env].find_json(f"/coupons/{code}")
        return _snapshot(data) if data else None

    async def codes_ready(self, code: str, env: Env) -> bool:
        data = await self._clients[env].get_json(f"/coupons/{code}/unique_codes/status")
        return bool(data.get("ready"))
