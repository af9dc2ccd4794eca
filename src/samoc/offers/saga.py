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
"""OfferSaga -- create, update, retire and validate a single offer.

Each operation is an explicit list of :class:`~samoc.saga.step.SagaStep`
run by :class:`~samoc.saga.runner.SagaRunner`. The saga itself only decides
which steps exist and what to persist at the end; what gets undone after a
failure is decided by the compensator's policy table. Every status written
here comes from :func:`~samoc.status.registry.next_status`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, NoReturn

from samoc.core.properties import SagaProperties
from samoc.data.entities import OfferColumnsMixin
from samoc.data.store import OfferStore
from samoc.kernel.exceptions import (
    BusyError,
    CompensationFailure,
    ErrorOrigin,
    GuardViolation,
    OfflineError,
    PolicyViolation,
    RemoteError,
    SagaFailure,
    SamocException,
)
from samoc.offers import history
from samoc.offers.dit import DataIntegrityTest, DitReport
from samoc.offers.payloads import OfferPayload
from samoc.offers.targeting import OFFERS_SET, put_offer_entry, remove_offer_entry
from samoc.ports.outbound import BuildConfig, Collaborators, CouponSnapshot
from samoc.resilience.retry import RetryPolicy
from samoc.saga import compensator as comp
from samoc.saga.compensator import RollbackCompensator
from samoc.saga.context import SagaContext, StatusSink
from samoc.saga.result import OfferSagaOutcome, SagaResult
from samoc.saga.runner import SagaRunner
from samoc.saga.step import Action, SagaStep
from samoc.status.codes import CodeType, CouponState, EntryState, Env, OfferType, Operation, Outcome, StatusCode
from samoc.status.registry import ensure_allowed, next_status

logger = logging.getLogger(__name__)


class OfferSaga:
    """Saga operations for one offer table (acquisition, retention or extension)."""

    def __init__(
        self,
        store: OfferStore[Any],
        collaborators: Collaborators,
        properties: SagaProperties | None = None,
        compensator: RollbackCompensator | None = None,
        offers_url: str = "",
    ) -> None:
        self._store = store
        self._c = collaborators
        self._props = properties or SagaProperties()
        self._compensator = compensator or RollbackCompensator(disable_rollback=self._props.disable_rollback)
        self._runner = SagaRunner(self._compensator)
        self._read_retry = RetryPolicy(
            max_attempts=self._props.read_retry_attempts,
            base_delay=self._props.read_retry_base_delay,
            retry_on=(RemoteError,),
            name="remote read",
        )
        self._dit = DataIntegrityTest(collaborators, self._read_retry)
        self._offers_url = offers_url

    @property
    def store(self) -> OfferStore[Any]:
        return self._store

    # ── draft ─────────────────────────────────────────────────

    async def save_draft(self, payload: OfferPayload) -> OfferSagaOutcome:
        """Insert or edit the local-draft row; no external system is touched."""
        existing = await self._store.find(payload.store_code, payload.offer_code)
        if existing is not None and existing.status_id != StatusCode.DFT:
            raise GuardViolation(f"Offer ({payload.offer_code}) is no longer a draft", code="GUARD_DRAFT")
        values = payload.row_values()
        values["campaign"] = payload.campaign or (existing.campaign if existing else None) or payload.offer_code
        values["campaign_name"] = payload.campaign_name or (existing.campaign_name if existing else "")
        if existing is None:
            values["created_by"] = payload.updated_by
            values["status_id"] = int(StatusCode.DFT)
        offer = await self._store.upsert(payload.store_code, payload.offer_code, values)
        await self._store.append_history(offer, history.UPDATED, history.should_append, payload.updated_by)
        return OfferSagaOutcome(
            offer.store_code, offer.offer_code, offer.status_id, f"Offer ({offer.offer_code}) saved as draft in DB"
        )

    # ── create ────────────────────────────────────────────────

    async def create(self, payload: OfferPayload, clear_caches: bool = True) -> OfferSagaOutcome:
        """Stage a new offer: coupon, targeting entry, content entry, then status STG."""
        env = Env.STG
        store_code, offer_code = payload.store_code, payload.offer_code
        existing = await self._store.find(store_code, offer_code)
        if existing is not None:
            ensure_allowed(Operation.CREATE, existing.status_id, offer_code)

        ctx = self._context(Operation.CREATE, env, store_code, offer_code, payload.updated_by)
        steps = self._create_steps(payload, existing, env, clear_caches)
        result = await self._execute(ctx, steps)

        coupon = result.result_of("create_coupon") or ctx.get_variable("live_coupon")
        upgrade = result.result_of("create_upgrade_coupon") or ctx.get_variable("live_upgrade_coupon")
        offer = await self._store.set_status(
            store_code,
            offer_code,
            next_status(Operation.CREATE, env, Outcome.SUCCESS),
            None,
            coupon_id=coupon.coupon_id if coupon else None,
            upgrade_coupon_id=upgrade.coupon_id if upgrade else None,
            gl_rollback_version=ctx.get_variable("gl_rollback_version"),
        )
        await self._store.append_history(offer, history.CREATED, history.should_append, payload.updated_by)
        ctx.log.info("offer created")
        return OfferSagaOutcome(
            store_code,
            offer_code,
            offer.status_id,
            f"Offer ({offer_code}) created successfully on {env.label}",
            saga=result,
        )

    def _create_steps(
        self,
        payload: OfferPayload,
        existing: OfferColumnsMixin | None,
        env: Env,
        clear_caches: bool,
    ) -> list[SagaStep]:
        billing, targeting = self._c.billing, self._c.targeting
        store_code, offer_code = payload.store_code, payload.offer_code
        upgrade_request = payload.upgrade_coupon_request()

        async def upsert_row(ctx: SagaContext) -> Any:
            values = payload.row_values()
            values["campaign"] = (existing.campaign if existing else None) or payload.campaign or offer_code
            values["campaign_name"] = payload.campaign_name or (existing.campaign_name if existing else "")
            if existing is None:
                values["created_by"] = payload.updated_by
            return await self._store.upsert(store_code, offer_code, values)

        async def fetch_plan(ctx: SagaContext) -> dict[str, Any] | None:
            if not payload.plan_code:
                return None
            return await billing.fetch_plan(payload.plan_code, env)

        async def find_live_coupons(ctx: SagaContext) -> None:
            # a coupon left redeemable by an earlier attempt is reused, never duplicated
            ctx.set_variable("live_coupon", _live(await billing.fetch_coupon(offer_code, env)))
            if upgrade_request is not None:
                ctx.set_variable("live_upgrade_coupon", _live(await billing.fetch_coupon(upgrade_request.code, env)))

        async def create_coupon(ctx: SagaContext) -> CouponSnapshot:
            return await billing.create_coupon(payload.coupon_request(), env)

        async def deactivate_coupon(ctx: SagaContext) -> None:
            await billing.deactivate_coupon(offer_code, env)

        async def write_targeting(ctx: SagaContext) -> Any:
            config = await put_offer_entry(
                targeting, store_code, offer_code, payload.targeting_entry(), env, payload.updated_by
            )
            ctx.set_variable("gl_rollback_version", config.version - 1)
            return config

        async def rollback_targeting(ctx: SagaContext) -> None:
            written = ctx.get_result("write_targeting")
            current = await targeting.read_config(OFFERS_SET, env)
            if written is None or current.version == written.version:
                await targeting.rollback_to_version(OFFERS_SET, ctx.get_variable("gl_rollback_version"), env)
                return
            # the set moved on under a sibling saga; only this offer's entry comes out
            await remove_offer_entry(targeting, store_code, offer_code, env, payload.updated_by)

        async def verify_targeting(ctx: SagaContext) -> None:
            if not await self._c.auth_cache.verify_offer(store_code, offer_code, env):
                raise RemoteError(
                    ErrorOrigin.TARGETING,
                    f"Offer ({offer_code}) is not served from the targeting configuration on {env.label}",
                )

        async def create_content(ctx: SagaContext) -> Any:
            return await self._c.content.create_entry(offer_code, payload.content_fields(), env)

        async def archive_content(ctx: SagaContext) -> None:
            await self._c.content.archive_entry(ctx.get_result("create_content").entry_id, env)

        steps = [
            SagaStep("upsert_row", upsert_row),
            SagaStep("fetch_plan", fetch_plan, retry=self._read_retry),
            SagaStep("find_live_coupons", find_live_coupons, retry=self._read_retry),
            SagaStep(
                "create_coupon",
                create_coupon,
                compensation=deactivate_coupon,
                compensation_name=comp.DEACTIVATE_COUPON,
                already_done=lambda ctx: ctx.get_variable("live_coupon") is not None,
            ),
        ]
        if upgrade_request is not None:

            async def create_upgrade_coupon(ctx: SagaContext) -> CouponSnapshot:
                return await billing.create_coupon(upgrade_request, env)

            async def deactivate_upgrade_coupon(ctx: SagaContext) -> None:
                await billing.deactivate_coupon(upgrade_request.code, env)

            steps.append(
                SagaStep(
                    "create_upgrade_coupon",
                    create_upgrade_coupon,
                    compensation=deactivate_upgrade_coupon,
                    compensation_name=comp.DEACTIVATE_UPGRADE_COUPON,
                    already_done=lambda ctx: ctx.get_variable("live_upgrade_coupon") is not None,
                )
            )
        steps += [
            SagaStep(
                "write_targeting",
                write_targeting,
                compensation=rollback_targeting,
                compensation_name=comp.ROLLBACK_TARGETING,
            ),
            self._cache_step("clear_auth_cache", self._clear_auth_cache(store_code, env)),
            SagaStep("verify_targeting", verify_targeting, retry=self._read_retry),
            SagaStep(
                "create_content",
                create_content,
                compensation=archive_content,
                compensation_name=comp.ARCHIVE_CONTENT,
            ),
        ]
        if clear_caches:
            steps.append(self._cache_step("clear_content_cache", self._clear_content_cache(env)))
        return steps

    # ── update ────────────────────────────────────────────────

    async def update(self, payload: OfferPayload, clear_caches: bool = True) -> OfferSagaOutcome:
        """Push an edited offer to the environment it lives in.

        Previous coupon and content snapshots are read before anything is
        written so that compensation can put them back verbatim.
        """
        store_code, offer_code = payload.store_code, payload.offer_code
        offer = await self._store.get(store_code, offer_code)
        ensure_allowed(Operation.UPDATE, offer.status_id, offer_code)
        env = offer.env

        if env is Env.DB:
            saved = await self._store.upsert(store_code, offer_code, payload.row_values())
            await self._store.append_history(saved, history.UPDATED, history.should_append, payload.updated_by)
            return OfferSagaOutcome(
                store_code, offer_code, saved.status_id, f"Offer ({offer_code}) updated successfully in DB"
            )

        ctx = self._context(Operation.UPDATE, env, store_code, offer_code, payload.updated_by)
        steps = self._update_steps(payload, offer, env, clear_caches)
        result = await self._execute(ctx, steps)

        values = payload.row_values()
        values.pop("upgrade_offer_code")
        values.pop("upgrade_plan_code")
        saved = await self._store.set_status(
            store_code,
            offer_code,
            next_status(Operation.UPDATE, env, Outcome.SUCCESS),
            None,
            **values,
        )
        await self._store.append_history(saved, history.UPDATED, history.should_append, payload.updated_by)
        ctx.log.info("offer updated")
        return OfferSagaOutcome(
            store_code,
            offer_code,
            saved.status_id,
            f"Offer ({offer_code}) updated successfully on {env.label}",
            saga=result,
        )

    def _update_steps(
        self,
        payload: OfferPayload,
        offer: OfferColumnsMixin,
        env: Env,
        clear_caches: bool,
    ) -> list[SagaStep]:
        billing, content = self._c.billing, self._c.content
        store_code, offer_code = payload.store_code, payload.offer_code
        upgrade_request = payload.upgrade_coupon_request()
        if upgrade_request is not None and upgrade_request.code != offer.upgrade_offer_code:
            upgrade_request = None

        async def fetch_previous_coupon(ctx: SagaContext) -> CouponSnapshot:
            return await self._require_coupon(offer_code, env)

        async def update_coupon(ctx: SagaContext) -> CouponSnapshot:
            return await billing.update_coupon(payload.coupon_request(), env)

        async def restore_coupon(ctx: SagaContext) -> None:
            await billing.restore_coupon(ctx.get_result("fetch_previous_coupon"), env)

        async def fetch_previous_content(ctx: SagaContext) -> Any:
            entry = await content.fetch_entry(offer_code, env)
            if entry is None:
                raise RemoteError(
                    ErrorOrigin.CONTENT, f"Content entry for offer ({offer_code}) not found on {env.label}"
                )
            return entry

        async def update_content(ctx: SagaContext) -> Any:
            previous = ctx.get_result("fetch_previous_content")
            return await content.update_entry(previous.entry_id, payload.content_fields(), env)

        async def restore_content(ctx: SagaContext) -> None:
            await content.restore_entry(ctx.get_result("fetch_previous_content"), env)

        steps = [SagaStep("fetch_previous_coupon", fetch_previous_coupon, retry=self._read_retry)]
        if upgrade_request is not None:

            async def fetch_previous_upgrade_coupon(ctx: SagaContext) -> CouponSnapshot:
                return await self._require_coupon(upgrade_request.code, env)

            steps.append(
                SagaStep("fetch_previous_upgrade_coupon", fetch_previous_upgrade_coupon, retry=self._read_retry)
            )
        steps += [
            SagaStep("fetch_previous_content", fetch_previous_content, retry=self._read_retry),
            SagaStep(
                "update_coupon",
                update_coupon,
                compensation=restore_coupon,
                compensation_name=comp.RESTORE_COUPON,
            ),
        ]
        if upgrade_request is not None:

            async def update_upgrade_coupon(ctx: SagaContext) -> CouponSnapshot:
                return await billing.update_coupon(upgrade_request, env)

            async def restore_upgrade_coupon(ctx: SagaContext) -> None:
                await billing.restore_coupon(ctx.get_result("fetch_previous_upgrade_coupon"), env)

            steps.append(
                SagaStep(
                    "update_upgrade_coupon",
                    update_upgrade_coupon,
                    compensation=restore_upgrade_coupon,
                    compensation_name=comp.RESTORE_UPGRADE_COUPON,
                )
            )
        steps += [
            self._cache_step("clear_auth_cache", self._clear_auth_cache(store_code, env)),
            SagaStep(
                "update_content",
                update_content,
                compensation=restore_content,
                compensation_name=comp.RESTORE_CONTENT,
            ),
        ]
        if clear_caches:
            steps.append(self._cache_step("clear_content_cache", self._clear_content_cache(env)))
        return steps

    # ── delete / retire ───────────────────────────────────────

    async def delete(
        self,
        store_code: str,
        offer_code: str,
        updated_by: str | None = None,
        clear_caches: bool = True,
    ) -> OfferSagaOutcome:
        """Hard-delete a draft, or retire a staged/published offer everywhere it lives."""
        offer = await self._store.get(store_code, offer_code)
        ensure_allowed(Operation.DELETE, offer.status_id, offer_code)
        env = offer.env

        if env is Env.DB:
            await self._store.delete(store_code, offer_code)
            return OfferSagaOutcome(store_code, offer_code, None, f"Offer ({offer_code}) deleted successfully from DB")

        ctx = self._context(Operation.DELETE, env, store_code, offer_code, updated_by)
        steps = self._delete_steps(offer, env, clear_caches)
        result = await self._execute(ctx, steps, previous_status=StatusCode(offer.status_id))

        saved = await self._store.set_status(
            store_code,
            offer_code,
            next_status(Operation.DELETE, env, Outcome.SUCCESS),
            None,
            updated_by=updated_by,
        )
        await self._store.append_history(saved, history.RETIRED_ACTION, history.should_append, updated_by)
        ctx.log.info("offer retired")
        return OfferSagaOutcome(
            store_code,
            offer_code,
            saved.status_id,
            f"Offer ({offer_code}) retired successfully on {env.label}",
            saga=result,
        )

    def _delete_steps(self, offer: OfferColumnsMixin, env: Env, clear_caches: bool) -> list[SagaStep]:
        envs = _affected_envs(env)
        steps: list[SagaStep] = []
        for target in envs:
            steps += self._retire_coupon_steps(offer.offer_code, target, comp.RESTORE_COUPON, "coupon")
            if offer.upgrade_offer_code:
                steps += self._retire_coupon_steps(
                    offer.upgrade_offer_code, target, comp.RESTORE_UPGRADE_COUPON, "upgrade_coupon"
                )
        for target in envs:
            steps.append(SagaStep(f"remove_targeting_{target}", self._remove_targeting(offer, target)))
        steps.append(self._cache_step("clear_auth_cache", self._clear_auth_cache(offer.store_code, env)))
        if clear_caches:
            steps.append(self._cache_step("clear_content_cache", self._clear_content_cache(env)))
        return steps

    def _retire_coupon_steps(self, code: str, env: Env, restore_name: str, label: str) -> list[SagaStep]:
        billing = self._c.billing
        fetch_name = f"fetch_{label}_{env}"

        async def fetch(ctx: SagaContext) -> CouponSnapshot | None:
            return await billing.fetch_coupon(code, env)

        async def deactivate(ctx: SagaContext) -> None:
            if ctx.get_result(fetch_name) is not None:
                await billing.deactivate_coupon(code, env)

        async def restore(ctx: SagaContext) -> None:
            snapshot = ctx.get_result(fetch_name)
            if snapshot is not None:
                await billing.restore_coupon(snapshot, env)

        return [
            SagaStep(fetch_name, fetch, retry=self._read_retry),
            SagaStep(f"deactivate_{label}_{env}", deactivate, compensation=restore, compensation_name=restore_name),
        ]

    def _remove_targeting(self, offer: OfferColumnsMixin, env: Env) -> Action:
        async def remove(ctx: SagaContext) -> Any:
            return await remove_offer_entry(self._c.targeting, offer.store_code, offer.offer_code, env, ctx.updated_by)

        return remove

    # ── validate ──────────────────────────────────────────────

    async def validate(
        self,
        store_code: str,
        offer_code: str,
        run_build: bool = True,
        retire: bool = True,
        updated_by: str | None = None,
    ) -> OfferSagaOutcome:
        """Run the DIT checks, then hand the offer to the build oracle.

        A failed DIT retires the offer's live side effects (unless *retire*
        is false) because an offer that failed validation must not stay live.
        Busy and offline build conditions leave the status untouched.
        """
        offer = await self._store.get(store_code, offer_code)
        ensure_allowed(Operation.VALIDATE, offer.status_id, offer_code)
        env = offer.env
        ctx = self._context(Operation.VALIDATE, env, store_code, offer_code, updated_by)

        # retention offers never wait on the build queue
        if offer.offer_type_id != OfferType.RETENTION:
            pending = next_status(Operation.VALIDATE, env, Outcome.PENDING)
            others = [
                o
                for o in await self._store.find_by_status([pending])
                if (o.store_code, o.offer_code) != (store_code, offer_code)
            ]
            if others:
                raise BusyError(
                    f"Another offer on {env.label} is being validated, please try again in a few minutes."
                )

        if (offer.draft_data or {}).get("code_type") == CodeType.BULK:
            if not await self._read_retry.execute(self._c.billing.codes_ready, offer_code, env):
                raise PolicyViolation(
                    f"{ctx.prefix}Bulk codes for coupon ({offer_code}) are not ready yet, please try again later"
                )

        report = await self.run_data_integrity_test(store_code, offer_code, env=env)
        if not report.passed:
            message = f"Data integrity test failed: {report.summary()}"
            if retire:
                await self._compensator.rollback(ctx, self._retire_actions(offer, env))
            cause = RemoteError(report.first_failure_origin() or ErrorOrigin.BUILD, message)
            await self._fail(ctx, cause, message)

        if not run_build:
            saved = await self._store.set_status(
                store_code, offer_code, next_status(Operation.VALIDATE, env, Outcome.SUCCESS), None
            )
            return OfferSagaOutcome(
                store_code, offer_code, saved.status_id, f"Offer ({offer_code}) validated successfully on {env.label}"
            )

        cfg = BuildConfig(env, self._offers_url, OfferType(offer.offer_type_id).name.lower(), offer_code)
        try:
            build_key = await self._c.build.trigger_build(cfg)
        except (BusyError, OfflineError) as exc:
            raise _prefixed(exc, ctx) from exc
        except RemoteError as exc:
            await self._fail(ctx, exc, str(exc))
        if not build_key:
            message = f"Build was not triggered for offer ({offer_code})"
            await self._fail(ctx, RemoteError(ErrorOrigin.BUILD, message), message)

        saved = await self._store.set_status(store_code, offer_code, pending, None, build_key=build_key)
        ctx.log.info("validation build triggered", build_key=build_key)
        return OfferSagaOutcome(
            store_code,
            offer_code,
            saved.status_id,
            f"Offer ({offer_code}) validation started on {env.label}",
            data={"build_key": build_key},
        )

    async def complete_validation(
        self,
        build_key: str,
        succeeded: bool,
        updated_by: str | None = None,
    ) -> OfferSagaOutcome | None:
        """Apply a build result; returns ``None`` when no offer here owns *build_key*."""
        offer = await self._store.find_by_build_key(build_key)
        if offer is None:
            return None
        env = offer.env
        ctx = self._context(Operation.VALIDATE, env, offer.store_code, offer.offer_code, updated_by)

        if succeeded:
            status = next_status(Operation.VALIDATE, env, Outcome.SUCCESS)
            message = f"Offer ({offer.offer_code}) passed validation on {env.label}"
            saved = await self._store.set_status(offer.store_code, offer.offer_code, status, None, build_key=None)
        else:
            # the offer code is dead once the build failed
            await self._compensator.rollback(ctx, self._retire_actions(offer, env))
            status = next_status(Operation.VALIDATE, env, Outcome.FAILURE)
            message = f"Offer ({offer.offer_code}) failed build validation on {env.label}"
            saved = await self._store.set_status(offer.store_code, offer.offer_code, status, message, build_key=None)
        ctx.log.info("build result applied", build_key=build_key, succeeded=succeeded)
        return OfferSagaOutcome(offer.store_code, offer.offer_code, saved.status_id, message)

    async def run_data_integrity_test(self, store_code: str, offer_code: str, env: Env | None = None) -> DitReport:
        """Run the DIT checks and record the outcome on the row without changing status."""
        if env is None:
            env = (await self._store.get(store_code, offer_code)).env
        if env is Env.DB:
            raise GuardViolation(f"Offer ({offer_code}) only exists in DB", code="GUARD_DIT")
        report = await self._dit.run(store_code, offer_code, env)
        await self._store.update(store_code, offer_code, dit_passed=report.passed, dit_checked_at=datetime.now(UTC))
        return report

    def _retire_actions(self, offer: OfferColumnsMixin, env: Env) -> list[tuple[str, Action]]:
        """Undo everything that makes the offer live in *env*."""
        billing, content = self._c.billing, self._c.content
        actions: list[tuple[str, Action]] = []

        def deactivate(code: str, target: Env) -> Action:
            async def run(ctx: SagaContext) -> None:
                await billing.deactivate_coupon(code, target)

            return run

        for target in _affected_envs(env):
            actions.append((f"deactivate_coupon_{target}", deactivate(offer.offer_code, target)))
            if offer.upgrade_offer_code:
                actions.append((f"deactivate_upgrade_coupon_{target}", deactivate(offer.upgrade_offer_code, target)))

        async def archive(ctx: SagaContext) -> None:
            entry = await content.fetch_entry(offer.offer_code, env)
            if entry is not None and entry.state != EntryState.ARCHIVED:
                await content.archive_entry(entry.entry_id, env)

        actions.append(("archive_content", archive))
        actions.append(("clear_content_cache", self._clear_content_cache(env)))

        if offer.gl_rollback_version is not None:
            version = offer.gl_rollback_version

            async def rollback_targeting(ctx: SagaContext) -> None:
                await self._c.targeting.rollback_to_version(OFFERS_SET, version, env)

            actions.append(("rollback_targeting", rollback_targeting))
        actions.append(("clear_auth_cache", self._clear_auth_cache(offer.store_code, env)))
        return actions

    # ── caches ────────────────────────────────────────────────

    async def clear_content_cache(self, env: Env) -> None:
        """Clear the content cache once for *env* (used after campaign fan-out)."""
        try:
            await self._read_retry.execute(self._c.cache.clear_cache, env)
        except RemoteError as exc:
            if not self._props.ignore_cache_errors:
                raise
            logger.warning("%s content cache clear failed, ignored by configuration: %s", env.label, exc)

    def _clear_content_cache(self, env: Env) -> Action:
        async def clear(ctx: SagaContext) -> None:
            await self._c.cache.clear_cache(env)

        return clear

    def _clear_auth_cache(self, store_code: str, env: Env) -> Action:
        async def clear(ctx: SagaContext) -> None:
            await self._c.auth_cache.clear_offer_cache(store_code, env)

        return clear

    def _cache_step(self, name: str, clear: Action) -> SagaStep:
        """Retried cache clear; failures are logged and dropped when configured to."""

        async def action(ctx: SagaContext) -> None:
            try:
                await self._read_retry.execute(clear, ctx)
            except RemoteError as exc:
                if not self._props.ignore_cache_errors:
                    raise
                ctx.log.warning("cache clear failed, ignored by configuration", step=name, error=str(exc))

        return SagaStep(name, action)

    # ── execution ─────────────────────────────────────────────

    def _context(
        self,
        operation: Operation,
        env: Env,
        store_code: str,
        offer_code: str,
        updated_by: str | None,
    ) -> SagaContext:
        ctx = SagaContext(operation, env, store_code, offer_code, updated_by=updated_by)
        ctx.status_sink = self._status_sink(ctx)
        return ctx

    def _status_sink(self, ctx: SagaContext) -> StatusSink:
        async def sink(status: StatusCode, message: str | None) -> None:
            fields: dict[str, Any] = {}
            version = ctx.get_variable("gl_rollback_version")
            if version is not None:
                fields["gl_rollback_version"] = version
            await self._store.set_status(ctx.store_code, ctx.offer_code, status, message, **fields)

        return sink

    async def _execute(
        self,
        ctx: SagaContext,
        steps: list[SagaStep],
        previous_status: StatusCode | None = None,
    ) -> SagaResult:
        try:
            return await self._runner.run(steps, ctx)
        except CompensationFailure:
            raise
        except (BusyError, OfflineError) as exc:
            ctx.log.warning("saga stopped, retry later", error=exc.message)
            raise _prefixed(exc, ctx) from exc
        except RemoteError as exc:
            await self._fail(ctx, exc, str(exc), previous_status)

    async def _fail(
        self,
        ctx: SagaContext,
        cause: RemoteError,
        message: str,
        previous_status: StatusCode | None = None,
    ) -> NoReturn:
        """Persist the failure status with ``errMessage`` and raise :class:`SagaFailure`."""
        status = next_status(ctx.operation, ctx.env, Outcome.FAILURE, previous_status)
        if await self._store.find(ctx.store_code, ctx.offer_code) is not None:
            await self._store.set_status(ctx.store_code, ctx.offer_code, status, message)
        ctx.log.error("saga failed", status=status.name, error=message)
        raise SagaFailure(f"{ctx.prefix}{message}", cause=cause, status_id=int(status)) from cause

    async def _require_coupon(self, code: str, env: Env) -> CouponSnapshot:
        snapshot = await self._c.billing.fetch_coupon(code, env)
        if snapshot is None:
            raise RemoteError(ErrorOrigin.BILLING, f"Coupon ({code}) not found on {env.label}", status_code=404)
        return snapshot


def _live(snapshot: CouponSnapshot | None) -> CouponSnapshot | None:
    return snapshot if snapshot is not None and snapshot.state == CouponState.REDEEMABLE else None


def _affected_envs(env: Env) -> list[Env]:
    """A published offer also lives on staging."""
    return [Env.PROD, Env.STG] if env is Env.PROD else [env]


def _prefixed(exc: SamocException, ctx: SagaContext) -> SamocException:
    return type(exc)(f"{ctx.prefix}{exc.message}", code=exc.code, context=exc.context, status_code=exc.status_code)

