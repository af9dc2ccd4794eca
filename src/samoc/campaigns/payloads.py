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
"""Campaign payloads: shared offer settings plus one entry per region."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from samoc.offers.payloads import OfferPayload, parse_payload
from samoc.status.codes import CodeType, OfferType, StatusCode


class CampaignOfferPayload(BaseModel):
    """Per-region part of a campaign; merged over the campaign-wide settings."""

    model_config = ConfigDict(frozen=True)

    store_code: str
    offer_code: str
    plan_code: str | None = None
    offer_name: str = ""
    coupon: dict[str, Any] = Field(default_factory=dict)
    content: dict[str, Any] = Field(default_factory=dict)
    targeting: dict[str, Any] = Field(default_factory=dict)
    upgrade_offer: str | None = None
    upgrade_plan: str | None = None
    upgrade_coupon: dict[str, Any] = Field(default_factory=dict)
    extension_days: int | None = None

    @property
    def region(self) -> str:
        return self.store_code[-2:].upper()


class CampaignPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    campaign: str | None = None
    campaign_name: str = ""
    offer_type_id: OfferType = OfferType.ACQUISITION
    status_id: int = int(StatusCode.STG)
    code_type: CodeType = CodeType.SINGLE_CODE
    coupon: dict[str, Any] = Field(default_factory=dict)
    content: dict[str, Any] = Field(default_factory=dict)
    offers: list[CampaignOfferPayload] = Field(default_factory=list)
    updated_by: str | None = None

    @property
    def is_draft(self) -> bool:
        return self.status_id == StatusCode.DFT

    def offer_payloads(self, campaign_id: str) -> list[OfferPayload]:
        """One typed offer payload per region, tagged with *campaign_id*."""
        payloads: list[OfferPayload] = []
        for offer in self.offers:
            data = offer.model_dump(exclude_none=True)
            data["coupon"] = {**self.coupon, **offer.coupon}
            data["content"] = {**self.content, **offer.content}
            data.update(
                offer_type_id=int(self.offer_type_id),
                code_type=self.code_type,
                campaign=campaign_id,
                campaign_name=self.campaign_name,
                updated_by=self.updated_by,
            )
            if self.offer_type_id not in (OfferType.RETENTION, OfferType.EXTENSION):
                for key in ("upgrade_offer", "upgrade_plan", "upgrade_coupon", "extension_days"):
                    data.pop(key, None)
            elif self.offer_type_id is OfferType.RETENTION:
                data.pop("extension_days", None)
            payloads.append(parse_payload(data))
        return payloads
