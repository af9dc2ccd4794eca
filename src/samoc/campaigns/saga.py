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
"""CampaignSaga -- fans one offer saga out per region.

A campaign has no table of its own; it is the set of offer rows sharing a
``campaign`` id. Per-region sagas run concurrently with cache clears
deferred, then each touched environment's content cache is cleared once.
Failures are collected per region and reported together.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from samoc.campaigns.payloads import CampaignPayload
from samoc.data.entities import OfferColumnsMixin
from samoc.kernel.exceptions import CampaignFailure, PolicyViolation, RemoteError, ResourceNotFoundException
from samoc.offers.payloads import OfferPayload
from samoc.offers.saga import OfferSaga
from samoc.status.codes import Env, StatusCode
from samoc.status.registry import is_allowed_for_update, is_allowed_for_validate

logger = logging.getLogger(__name__)


# statuses of offers that are live or on their way to being live
VALID_STATUSES: frozenset[StatusCode] = frozenset(
    {
        StatusCode.DFT,
        StatusCode.STG,
        StatusCode.STG_VALDN_PEND,
        StatusCode.STG_VALDN_PASS,
        StatusCode.PROD_PEND,
        StatusCode.PROD,
        StatusCode.PROD_VALDN_PEND,
        StatusCode.PROD_VALDN_PASS,
    }
)


def campaign_status(offers: Iterable[OfferColumnsMixin]) -> StatusCode:
    """Aggregate status of a campaign's offers.

    The lowest valid status wins, so one region still in draft keeps the
    whole campaign a draft. When no offer is valid the highest status is
    reported.
    """
    statuses = [StatusCode(offer.status_id) for offer in offers]
    if not statuses:
        raise ValueError("A campaign needs at least one offer")
    valid = [status for status in statuses if status in VALID_STATUSES]
    return min(valid) if valid else max(statuses)


@dataclass(frozen=True)
class CampaignOutcome:
    campaign: str
    messages: tuple[str, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Fanout:
    """Collects per-region results of one campaign operation."""

    errors: list[tuple[str, Exception]] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    envs: set[Env] = field(default_factory=set)

    async def run(self, region: str, work: Callable[[], Awaitable[str | None]]) -> None:
        try:
            message = await work()
        except Exception as exc:
            logger.error("Campaign region %s failed: %s", region, exc)
            self.errors.append((region, exc))
            return
        if message:
            self.messages.append(f"{region}: {message}")


class CampaignSaga:
    def __init__(self, offers: OfferSaga) -> None:
        self._offers = offers

    async def create(self, campaign: CampaignPayload) -> CampaignOutcome:
        """Insert every region as a draft, then stage them unless the campaign is a draft."""
        campaign_id = campaign.campaign or uuid.uuid4().hex
        fanout = _Fanout()

        async def create_one(payload: OfferPayload) -> str | None:
            row = await self._offers.store.find(payload.store_code, payload.offer_code)
            if row is None or row.status_id == StatusCode.DFT:
                outcome = await self._offers.save_draft(payload)
                if campaign.is_draft:
                    return outcome.message
            fanout.envs.add(Env.STG)
            return (await self._offers.create(payload, clear_caches=False)).message

        await asyncio.gather(
            *(fanout.run(p.region, lambda p=p: create_one(p)) for p in campaign.offer_payloads(campaign_id))
        )
        return await self._finish(campaign_id, fanout)

    async def update(self, campaign: CampaignPayload) -> CampaignOutcome:
        """Reconcile the payload's regions with the rows already in the campaign."""
        campaign_id = campaign.campaign
        if not campaign_id:
            raise PolicyViolation("Campaign id is required for an update", code="CAMPAIGN_ID_REQUIRED")
        existing: dict[str, OfferColumnsMixin] = {
            row.store_code: row for row in await self._offers.store.find_by_campaign(campaign_id)
        }
        fanout = _Fanout()
        work: list[Awaitable[None]] = []

        for payload in campaign.offer_payloads(campaign_id):
            previous = existing.pop(payload.store_code, None)
            row = await self._offers.store.find(payload.store_code, payload.offer_code)
            if row is None:
                work.append(fanout.run(payload.region, self._replace(campaign, payload, previous, fanout)))
            elif is_allowed_for_update(row.status_id):
                if row.env is not Env.DB:
                    fanout.envs.add(row.env)
                work.append(fanout.run(payload.region, lambda p=payload: self._update_one(p)))
            else:
                logger.info("Skipping %s/%s in status %s", payload.store_code, payload.offer_code, row.status_id)

        for store_code, row in existing.items():
            work.append(fanout.run(row.region, lambda s=store_code, r=row: self._drop(s, r)))

        await asyncio.gather(*work)
        return await self._finish(campaign_id, fanout)

    async def delete(self, campaign_id: str, updated_by: str | None = None) -> CampaignOutcome:
        """Retire (or hard-delete drafts of) every offer in the campaign."""
        rows = await self._rows(campaign_id)
        fanout = _Fanout()

        async def delete_one(row: OfferColumnsMixin) -> str:
            if row.env is not Env.DB:
                fanout.envs.add(row.env)
            outcome = await self._offers.delete(row.store_code, row.offer_code, updated_by, clear_caches=False)
            return outcome.message

        await asyncio.gather(*(fanout.run(row.region, lambda r=row: delete_one(r)) for row in rows))
        return await self._finish(campaign_id, fanout)

    async def validate(
        self,
        campaign_id: str,
        run_build: bool = True,
        updated_by: str | None = None,
        parallel: bool = False,
    ) -> CampaignOutcome:
        """Validate every region whose status allows it.

        Regions run one after another unless *parallel* is set: the build
        oracle accepts a single validation per environment at a time.
        """
        rows = [row for row in await self._rows(campaign_id) if is_allowed_for_validate(row.status_id)]
        fanout = _Fanout()

        async def validate_one(row: OfferColumnsMixin) -> str:
            outcome = await self._offers.validate(
                row.store_code, row.offer_code, run_build=run_build, updated_by=updated_by
            )
            return outcome.message

        if parallel:
            await asyncio.gather(*(fanout.run(row.region, lambda r=row: validate_one(r)) for row in rows))
        else:
            for row in rows:
                await fanout.run(row.region, lambda r=row: validate_one(r))
        if fanout.errors:
            raise CampaignFailure(fanout.errors, fanout.messages)
        return CampaignOutcome(
            campaign_id, (f"Campaign ({campaign_id}) validated successfully", *fanout.messages)
        )

    async def status(self, campaign_id: str) -> StatusCode:
        """Status of the campaign as a whole, derived from its offers."""
        return campaign_status(await self._rows(campaign_id))

    # ── helpers ───────────────────────────────────────────────

    async def _rows(self, campaign_id: str) -> list[Any]:
        rows = await self._offers.store.find_by_campaign(campaign_id)
        if not rows:
            raise ResourceNotFoundException(f"Campaign ({campaign_id}) not found", context={"campaign": campaign_id})
        return rows

    def _replace(
        self,
        campaign: CampaignPayload,
        payload: OfferPayload,
        previous: OfferColumnsMixin | None,
        fanout: _Fanout,
    ) -> Callable[[], Awaitable[str | None]]:
        """New offer code for a region: drop the region's old draft, then create."""

        async def work() -> str | None:
            if previous is not None:
                if previous.status_id != StatusCode.DFT:
                    raise PolicyViolation(f"Updating a non-draft offer as draft on {Env.STG.label}")
                await self._offers.store.delete(previous.store_code, previous.offer_code)
            outcome = await self._offers.save_draft(payload)
            if campaign.is_draft:
                return outcome.message
            fanout.envs.add(Env.STG)
            return (await self._offers.create(payload, clear_caches=False)).message

        return work

    async def _update_one(self, payload: OfferPayload) -> str:
        return (await self._offers.update(payload, clear_caches=False)).message

    async def _drop(self, store_code: str, row: OfferColumnsMixin) -> str:
        if row.status_id != StatusCode.DFT:
            raise PolicyViolation(f"Can't delete a non-draft offer in store {store_code} on {Env.STG.label}")
        await self._offers.store.delete(row.store_code, row.offer_code)
        return f"Offer ({row.offer_code}) deleted successfully from DB"

    async def _finish(self, campaign_id: str, fanout: _Fanout) -> CampaignOutcome:
        for env in sorted(fanout.envs):
            logger.info("Clearing %s content cache for campaign %s", env.label, campaign_id)
            try:
                await self._offers.clear_content_cache(env)
            except RemoteError as exc:
                logger.error("Content cache clear on %s failed for campaign %s: %s", env.label, campaign_id, exc)
                fanout.errors.append((env.label, exc))
        if fanout.errors:
            raise CampaignFailure(fanout.errors, fanout.messages)
        return CampaignOutcome(campaign_id, tuple(fanout.messages))
