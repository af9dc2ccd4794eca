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
"""User eligibility filter workflow: draft, stage, publish and retire.

A filter row snapshots the retention configuration of the regions it
touches. Its status moves NEW -> DFT -> STG -> PROD. Before every edit the
snapshots are compared with the live configuration; a filter whose
snapshot no longer matches (someone edited the targeting service directly)
is soft-deleted and the caller is told why.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from samoc.data.entities import UserEligibilityFilterEntity
from samoc.data.repository import FilterRepository
from samoc.data.store import db_retry_policy
from samoc.eligibility.merger import offer_campaigns, sort_rules
from samoc.eligibility.rules import apply_country_rules, extract_rules, state_data
from samoc.kernel.exceptions import PolicyViolation, RemoteError
from samoc.offers.targeting import RETENTION_SET
from samoc.ports.outbound import AuthCachePort, TargetingPort
from samoc.resilience.retry import RetryPolicy
from samoc.status.codes import Env, FilterStatus

logger = logging.getLogger(__name__)


class FilterMode(StrEnum):
    DRAFT = "draft"
    STG = "stg"
    PROD = "prod"


class FilterState(BaseModel):
    """What a caller saw; echoed back on edits for the optimistic check."""

    model_config = ConfigDict(frozen=True)

    status: FilterStatus = FilterStatus.NEW
    stg_version: int = 0
    prod_version: int = 0
    can_retire: bool = False
    error_message: str | None = None
    updated_by: str | None = None


class RulesPayload(BaseModel):
    rules: list[dict[str, Any]] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    filter_state: FilterState = Field(default_factory=FilterState)
    updated_by: str | None = None


@dataclass(frozen=True)
class _LiveState:
    regions: tuple[dict[str, Any], ...]
    revision: int

    def find(self, country: str) -> dict[str, Any] | None:
        return next((r for r in self.regions if r["country"].lower() == country.lower()), None)


def _find_country(countries: list[dict[str, Any]], region: str) -> int | None:
    return next((i for i, c in enumerate(countries) if c.get("country", "").lower() == region.lower()), None)


class FilterWorkflow:
    """Drives eligibility filters for one store (``""`` for the global filter).

    *stores* lists the store codes whose auth caches must be cleared when a
    region's rules change.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        targeting: TargetingPort,
        auth_cache: AuthCachePort,
        stores: Sequence[str] = (),
        read_retry: RetryPolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._targeting = targeting
        self._auth_cache = auth_cache
        self._stores = list(stores)
        self._db_retry = db_retry_policy()
        self._read_retry = read_retry or RetryPolicy(max_attempts=3, retry_on=(RemoteError,), name="filter read")

    # ── persistence ───────────────────────────────────────────

    async def _latest(self, store_code: str) -> UserEligibilityFilterEntity | None:
        async def work() -> UserEligibilityFilterEntity | None:
            async with self._session_factory() as session:
                return await FilterRepository(session=session).latest(store_code)

        return await self._db_retry.execute(work)

    async def _save(self, entity: UserEligibilityFilterEntity) -> UserEligibilityFilterEntity:
        async def work() -> UserEligibilityFilterEntity:
            async with self._session_factory() as session:
                merged = await session.merge(entity)
                await session.commit()
                return merged

        return await self._db_retry.execute(work)

    async def _soft_delete(self, entity: UserEligibilityFilterEntity) -> None:
        async def work() -> None:
            async with self._session_factory() as session:
                await FilterRepository(session=session).soft_delete(await session.merge(entity))
                await session.commit()

        await self._db_retry.execute(work)

    # ── live configuration ────────────────────────────────────

    async def _load(self, env: Env) -> _LiveState:
        config = await self._read_retry.execute(self._targeting.read_config, RETENTION_SET, env)
        regions = tuple(
            data for data in (state_data(c) for c in config.value.get("countries", [])) if data is not None
        )
        return _LiveState(regions, config.version)

    async def _live(self) -> tuple[_LiveState, _LiveState]:
        return await self._load(Env.STG), await self._load(Env.PROD)

    # ── state ─────────────────────────────────────────────────

    async def state(self, store_code: str = "") -> FilterState:
        stg, prod = await self._live()
        return await self._state(store_code, stg, prod)

    async def _state(self, store_code: str, stg: _LiveState, prod: _LiveState) -> FilterState:
        error: str | None = None
        while True:
            last = await self._latest(store_code)
            if last is None:
                return FilterState(stg_version=stg.revision, prod_version=prod.revision, error_message=error)

            stale = self._stale_reason(last, stg, prod)
            if stale is not None:
                error = stale
                logger.warning("Dropping filter %s for store %r: %s", last.id, store_code, stale)
                await self._soft_delete(last)
                continue

            if last.status_id == FilterStatus.PROD and (last.prod_rollback_version or 0) + 1 != prod.revision:
                return FilterState(stg_version=stg.revision, prod_version=prod.revision, error_message=error)

            return FilterState(
                status=FilterStatus(last.status_id),
                stg_version=stg.revision,
                prod_version=prod.revision,
                can_retire=last.status_id in (FilterStatus.DFT, FilterStatus.STG, FilterStatus.PROD),
                error_message=error,
                updated_by=last.created_by,
            )

    @staticmethod
    def _stale_reason(last: UserEligibilityFilterEntity, stg: _LiveState, prod: _LiveState) -> str | None:
        if last.status_id not in (FilterStatus.DFT, FilterStatus.STG):
            return None
        stage = "DFT" if last.status_id == FilterStatus.DFT else "STG"
        for saved in last.prod_data or []:
            if not saved:
                continue
            live = prod.find(saved["country"])
            if live is not None and saved != live:
                country = saved["country"].upper()
                return f"User eligibility settings were updated on PROD after {stage} was created for {country}"
        if last.status_id == FilterStatus.STG:
            for saved in last.draft_data or []:
                if not saved:
                    continue
                live = stg.find(saved["country"])
                if live is not None and saved != live:
                    country = saved["country"].upper()
                    return f"User eligibility settings were updated on STG outside SAMOC for {country}"
        return None

    @staticmethod
    def _check_unchanged(actual: FilterState, seen: FilterState) -> None:
        def versions(state: FilterState) -> tuple[FilterStatus, int, int]:
            return state.status, state.prod_version, state.stg_version

        if versions(actual) != versions(seen):
            raise PolicyViolation("Cancellation offers were updated by another user", code="FILTER_CONFLICT")

    # ── rules ─────────────────────────────────────────────────

    async def rules(self, store_code: str = "", offers: Iterable[Any] = ()) -> list[dict[str, Any]]:
        """Current rules of the store (or of every store), merged across countries.

        A draft filter shows its saved rules for the regions it covers; a
        staged filter shows STG for those regions. Everything else comes from
        PROD. *offers* are the retention offer rows used to recognise the same
        campaign under different offer codes.
        """
        stg, prod = await self._live()
        state = await self._state(store_code, stg, prod)
        last = await self._latest(store_code)
        live = stg if state.status == FilterStatus.STG else prod

        if not store_code and last is None:
            return [rule for country in live.regions for rule in extract_rules(country) or []]

        regions = last.region_list if last is not None else []
        covered = [] if last is None else [c for c in last.draft_data or [] if c]
        stores = [store_code] if store_code else self._stores
        rules: list[dict[str, Any]] = []
        for store in stores:
            region = store[-2:].upper()
            in_filter = not regions or region in regions
            country = prod.find(region)
            if state.status == FilterStatus.DFT and in_filter:
                country = next((c for c in covered if c["country"].upper() == region), country)
            elif state.status == FilterStatus.STG and in_filter:
                country = stg.find(region)
            rules += extract_rules(country) or []

        ordered = [r for r in rules if r["countries"][0] not in regions]
        ordered += [r for r in rules if r["countries"][0] in regions]
        return sort_rules(ordered, offer_campaigns(offers))

    # ── update ────────────────────────────────────────────────

    async def update_rules(self, store_code: str, payload: RulesPayload, mode: FilterMode) -> str:
        """Save rules as a draft, push them to STG or publish them on PROD."""
        stg, prod = await self._live()
        actual = await self._state(store_code, stg, prod)
        if actual.error_message:
            raise PolicyViolation(actual.error_message, code="FILTER_STALE")
        self._check_unchanged(actual, payload.filter_state)

        seen_status = payload.filter_state.status
        if mode is FilterMode.DRAFT and seen_status == FilterStatus.STG:
            raise PolicyViolation("Workflow violation - pushed to STG filters can't be saved as DFT")
        if mode is FilterMode.PROD and seen_status != FilterStatus.STG:
            raise PolicyViolation("Workflow violation - create filters on stage before publishing")

        env = Env.PROD if mode is FilterMode.PROD else Env.STG
        config = await self._read_retry.execute(self._targeting.read_config, RETENTION_SET, env)
        value = copy.deepcopy(config.value)
        countries: list[dict[str, Any]] = value.setdefault("countries", [])
        regions = [store_code[-2:]] if store_code else list(payload.regions)

        draft_data: list[Any] = []
        stg_data: list[Any] = []
        prod_data: list[Any] = []
        for region in regions:
            idx = _find_country(countries, region)
            country = countries[idx] if idx is not None else None
            rules = [r for r in payload.rules if not r.get("countries") or region.upper() in r["countries"]]
            updated = apply_country_rules(country, rules)
            if idx is not None and updated is not None:
                countries[idx] = updated
            draft_data.append(state_data(updated))
            prod_data.append(prod.find(region))
            stg_data.append(stg.find(region))

        updated_by = payload.updated_by or payload.filter_state.updated_by or "Unknown"
        last = await self._latest(store_code)
        if mode is FilterMode.DRAFT:
            if last is None or last.status_id != FilterStatus.DFT:
                last = self._new_filter(store_code, prod_data, prod.revision)
            last.status_id = int(FilterStatus.DFT)
        else:
            if last is None or last.status_id == FilterStatus.PROD:
                last = self._new_filter(store_code, prod_data, prod.revision)
            if last.status_id != FilterStatus.STG:
                last.stg_data = stg_data
                last.stg_rollback_version = stg.revision
            await self._targeting.write_config(RETENTION_SET, value, config.version, env, updated_by)
            await self._clear_auth_caches(store_code, regions, env)
            last.status_id = int(FilterStatus.PROD if mode is FilterMode.PROD else FilterStatus.STG)
        last.created_by = updated_by
        last.draft_data = draft_data
        last.regions = ",".join(payload.regions) if payload.regions else None
        await self._save(last)
        logger.info("Eligibility filter for store %r saved as %s", store_code, mode.value)

        if mode is FilterMode.DRAFT:
            return "Cancellation offers were successfully saved as DFT"
        if mode is FilterMode.PROD:
            return "Cancellation offers were successfully published on PROD"
        return "Cancellation offers were successfully pushed to STG"

    @staticmethod
    def _new_filter(store_code: str, prod_data: list[Any], prod_revision: int) -> UserEligibilityFilterEntity:
        return UserEligibilityFilterEntity(
            store_code=store_code,
            status_id=int(FilterStatus.NEW),
            prod_data=prod_data,
            prod_rollback_version=prod_revision,
        )

    async def _clear_auth_caches(self, store_code: str, regions: Sequence[str], env: Env) -> None:
        wanted = {r.upper() for r in regions}
        stores = [store_code] if store_code else [s for s in self._stores if s[-2:].upper() in wanted]
        for store in stores:
            await self._read_retry.execute(self._auth_cache.clear_offer_cache, store, env)

    # ── retire ────────────────────────────────────────────────

    async def retire(self, store_code: str, seen: FilterState, updated_by: str | None = None) -> str:
        """Undo the latest filter: roll targeting back, or restore the saved snapshots."""
        stg, prod = await self._live()
        actual = await self._state(store_code, stg, prod)
        self._check_unchanged(actual, seen)
        if not actual.can_retire or actual.status == FilterStatus.NEW:
            raise PolicyViolation("Rollback is not supported", code="FILTER_RETIRE")
        last = await self._latest(store_code)
        if last is None:
            raise PolicyViolation("Can't retire non-existent filters", code="FILTER_RETIRE")

        if actual.status == FilterStatus.PROD and (last.prod_rollback_version or 0) + 1 == prod.revision:
            await self._targeting.rollback_to_version(RETENTION_SET, last.prod_rollback_version, Env.PROD)
        if actual.status in (FilterStatus.STG, FilterStatus.PROD):
            if last.stg_rollback_version is not None and last.stg_rollback_version + 1 == stg.revision:
                await self._targeting.rollback_to_version(RETENTION_SET, last.stg_rollback_version, Env.STG)
            else:
                await self._restore_snapshots(last, updated_by or "Unknown")

        await self._soft_delete(last)
        if actual.status == FilterStatus.DFT:
            return "Cancellation offers DFT was deleted successfully"
        return "Cancellation offers were rolled back successfully"

    async def _restore_snapshots(self, last: UserEligibilityFilterEntity, updated_by: str) -> None:
        """Put the STG countries back as saved when the config moved on since."""
        config = await self._read_retry.execute(self._targeting.read_config, RETENTION_SET, Env.STG)
        value = copy.deepcopy(config.value)
        countries: list[dict[str, Any]] = value.setdefault("countries", [])
        regions = last.region_list
        for saved in last.stg_data or []:
            if not saved or not saved.get("retentionOffersLists"):
                continue
            idx = _find_country(countries, saved["country"])
            if idx is None or not countries[idx].get("retentionOffersLists"):
                continue
            if not regions or saved["country"] in regions:
                countries[idx] = {
                    **countries[idx],
                    "retentionOffersLists": saved["retentionOffersLists"],
                    "userEligibility": saved["userEligibility"],
                }
        await self._targeting.write_config(RETENTION_SET, value, config.version, Env.STG, updated_by)
