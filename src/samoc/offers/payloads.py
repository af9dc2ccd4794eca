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
"""Typed request payloads, one per offer kind."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from samoc.ports.outbound import CouponRequest
from samoc.status.codes import CodeType, OfferType


class OfferPayload(BaseModel):
    """Acquisition and winback offers.

    ``coupon`` goes to the billing service, ``content`` to the content
    service and ``targeting`` becomes the offer's entry in the targeting
    configuration. The whole payload is kept as the row's ``draft_data``.
    """

    model_config = ConfigDict(frozen=True)

    store_code: str
    offer_code: str
    offer_type_id: OfferType = OfferType.ACQUISITION
    plan_code: str | None = None
    offer_name: str = ""
    code_type: CodeType = CodeType.SINGLE_CODE
    coupon: dict[str, Any] = Field(default_factory=dict)
    content: dict[str, Any] = Field(default_factory=dict)
    targeting: dict[str, Any] = Field(default_factory=dict)
    campaign: str | None = None
    campaign_name: str | None = None
    updated_by: str | None = None

    @property
    def region(self) -> str:
        return self.store_code[-2:].upper()

    @property
    def upgrade_offer_code(self) -> str | None:
        return None

    @property
    def upgrade_plan_code(self) -> str | None:
        return None

    def coupon_request(self) -> CouponRequest:
        return CouponRequest(
            code=self.offer_code,
            plan_code=self.plan_code,
            name=self.offer_name,
            code_type=self.code_type,
            attributes=dict(self.coupon),
        )

    def upgrade_coupon_request(self) -> CouponRequest | None:
        return None

    def content_fields(self) -> dict[str, Any]:
        fields = {"offerName": self.offer_name, "storeCode": self.store_code}
        fields.update(self.content)
        return fields

    def targeting_entry(self) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "offerCode": self.offer_code,
            "offerType": self.offer_type_id.name.lower(),
            "planCode": self.plan_code,
        }
        entry.update(self.targeting)
        return entry

    def draft_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def row_values(self) -> dict[str, Any]:
        """Column values written when the local row is upserted."""
        return {
            "offer_type_id": int(self.offer_type_id),
            "plan_code": self.plan_code,
            "upgrade_offer_code": self.upgrade_offer_code,
            "upgrade_plan_code": self.upgrade_plan_code,
            "draft_data": self.draft_data(),
            "updated_by": self.updated_by,
        }


class RetentionOfferPayload(OfferPayload):
    """Retention offers, optionally paired with an upgrade-plan coupon."""

    offer_type_id: OfferType = OfferType.RETENTION
    upgrade_offer: str | None = None
    upgrade_plan: str | None = None
    upgrade_coupon: dict[str, Any] = Field(default_factory=dict)

    @property
    def upgrade_offer_code(self) -> str | None:
        return self.upgrade_offer

    @property
    def upgrade_plan_code(self) -> str | None:
        return self.upgrade_plan

    def upgrade_coupon_request(self) -> CouponRequest | None:
        if not self.upgrade_offer:
            return None
        return CouponRequest(
            code=self.upgrade_offer,
            plan_code=self.upgrade_plan,
            name=f"{self.offer_name} (upgrade)" if self.offer_name else "",
            code_type=self.code_type,
            attributes=dict(self.upgrade_coupon),
        )

    def targeting_entry(self) -> dict[str, Any]:
        entry = super().targeting_entry()
        if self.upgrade_offer:
            entry["upgradeOfferCode"] = self.upgrade_offer
            entry["upgradePlanCode"] = self.upgrade_plan
        return entry


class ExtensionOfferPayload(RetentionOfferPayload):
    offer_type_id: OfferType = OfferType.EXTENSION
    extension_days: int | None = None

    def targeting_entry(self) -> dict[str, Any]:
        entry = super().targeting_entry()
        if self.extension_days is not None:
            entry["extensionDays"] = self.extension_days
        return entry


_PAYLOAD_TYPES: dict[OfferType, type[OfferPayload]] = {
    OfferType.DEFAULT_SIGNUP: OfferPayload,
    OfferType.ACQUISITION: OfferPayload,
    OfferType.WINBACK: OfferPayload,
    OfferType.RETENTION: RetentionOfferPayload,
    OfferType.EXTENSION: ExtensionOfferPayload,
}


def parse_payload(data: dict[str, Any]) -> OfferPayload:
    """Build the payload class matching ``offer_type_id`` in *data*."""
    offer_type = OfferType(int(data.get("offer_type_id", OfferType.ACQUISITION)))
    return _PAYLOAD_TYPES[offer_type].model_validate(data)
