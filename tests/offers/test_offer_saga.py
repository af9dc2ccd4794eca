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
"""Tests for OfferSaga create, update, retire and draft flows."""

from __future__ import annotations

import pytest

from samoc.core.properties import SagaProperties
from samoc.kernel.exceptions import (
    BusyError,
    CompensationFailure,
    ErrorOrigin,
    GuardViolation,
    RemoteError,
    SagaFailure,
)
from samoc.offers import history
from samoc.offers.payloads import RetentionOfferPayload
from samoc.offers.saga import OfferSaga
from samoc.offers.targeting import OFFERS_SET, offer_entry
from samoc.status.codes import CouponState, EntryState, Env, StatusCode


# ── Helpers ──────────────────────────────────────────────────


def _targeting_entry(fakes, store_code="store-us", offer_code="SUMMER", env=Env.STG):
    return offer_entry(fakes.targeting.current(OFFERS_SET, env).value, store_code, offer_code)


async def _staged(saga, payload):
    await saga.save_draft(payload)
    return await saga.create(payload)


# ── Draft ────────────────────────────────────────────────────


class TestSaveDraft:
    async def test_draft_touches_no_collaborator(self, saga, store, fakes, payload):
        outcome = await saga.save_draft(payload)

        assert outcome.message == "Offer (SUMMER) saved as draft in DB"
        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.DFT
        assert row.campaign == "SUMMER"
        assert row.created_by == "alice"
        assert row.draft_data["coupon"] == {"discount": 20}
        assert fakes.billing.calls == []
        assert fakes.targeting.calls == []

    async def test_staged_offer_cannot_go_back_to_draft(self, saga, payload):
        await _staged(saga, payload)
        with pytest.raises(GuardViolation) as exc_info:
            await saga.save_draft(payload)
        assert exc_info.value.code == "GUARD_DRAFT"


# ── Create ───────────────────────────────────────────────────


class TestCreate:
    async def test_create_stages_offer_everywhere(self, saga, store, fakes, payload):
        outcome = await saga.create(payload)

        assert outcome.message == "Offer (SUMMER) created successfully on STG"
        assert outcome.status_id == StatusCode.STG
        assert outcome.saga.success

        row = await store.get("store-us", "SUMMER")
        coupon = fakes.billing.coupons[(Env.STG, "SUMMER")]
        assert row.status_id == StatusCode.STG
        assert row.env is Env.STG
        assert row.coupon_id == coupon.coupon_id
        assert row.gl_rollback_version == 1
        assert row.err_message is None
        assert coupon.attributes == {"discount": 20}

        assert _targeting_entry(fakes) == {
            "offerCode": "SUMMER",
            "offerType": "acquisition",
            "planCode": "monthly",
            "priority": 1,
        }
        assert fakes.content.entries[(Env.STG, "SUMMER")].fields["headline"] == "Twenty percent off"
        assert fakes.auth_cache.called("clear_offer_cache") == [("store-us", Env.STG)]
        assert fakes.cache.called("clear_cache") == [(Env.STG,)]

        rows = await store.history("store-us", "SUMMER")
        assert [r.action for r in rows] == [history.CREATED]

    async def test_create_guard_rejects_staged_offer(self, saga, fakes, payload):
        await saga.create(payload)
        with pytest.raises(GuardViolation):
            await saga.create(payload)

    async def test_content_failure_rolls_back_targeting_and_coupon(self, saga, store, fakes, payload):
        fakes.content.fail("create_entry", RemoteError(ErrorOrigin.CONTENT, "content service down"))

        with pytest.raises(SagaFailure) as exc_info:
            await saga.create(payload)

        assert exc_info.value.message == "STG: content service down"
        assert exc_info.value.status_id == StatusCode.STG_ERR_CRT
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.EXPIRED
        assert _targeting_entry(fakes) is None
        assert fakes.targeting.called("rollback_to_version") == [(OFFERS_SET, 1, Env.STG)]

        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.STG_ERR_CRT
        assert row.err_message == "content service down"
        assert row.coupon_id is None

    async def test_billing_failure_compensates_nothing(self, saga, store, fakes, payload):
        fakes.billing.fail("create_coupon", RemoteError(ErrorOrigin.BILLING, "plan not found"))

        with pytest.raises(SagaFailure):
            await saga.create(payload)

        assert fakes.targeting.called("write_config") == []
        assert fakes.billing.called("deactivate_coupon") == []
        assert (await store.get("store-us", "SUMMER")).status_id == StatusCode.STG_ERR_CRT

    async def test_unserved_targeting_entry_rolls_back_without_history(self, saga, store, fakes, payload):
        fakes.auth_cache.serves_offers = False

        with pytest.raises(SagaFailure) as exc_info:
            await saga.create(payload)

        assert exc_info.value.cause.origin is ErrorOrigin.TARGETING
        assert len(fakes.auth_cache.called("verify_offer")) == 3
        assert fakes.content.called("create_entry") == []
        assert _targeting_entry(fakes) is None
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.EXPIRED
        assert (await store.get("store-us", "SUMMER")).status_id == StatusCode.STG_ERR_CRT
        assert await store.history("store-us", "SUMMER") == []

    async def test_retry_after_crash_reuses_live_coupon(self, saga, store, fakes, payload):
        live = fakes.billing.seed("SUMMER")

        await saga.create(payload)

        assert fakes.billing.called("create_coupon") == []
        assert (await store.get("store-us", "SUMMER")).coupon_id == live.coupon_id

    async def test_create_can_be_retried_after_failure(self, saga, store, fakes, payload):
        fakes.content.fail("create_entry", RemoteError(ErrorOrigin.CONTENT, "blip"), times=1)
        with pytest.raises(SagaFailure):
            await saga.create(payload)

        outcome = await saga.create(payload)

        assert outcome.status_id == StatusCode.STG
        assert len(fakes.billing.called("create_coupon")) == 2
        assert _targeting_entry(fakes) is not None

    async def test_failed_rollback_persists_rollback_failed_status(self, saga, store, fakes, payload):
        fakes.content.fail("create_entry", RemoteError(ErrorOrigin.CONTENT, "content service down"))
        fakes.targeting.fail("rollback_to_version", RemoteError(ErrorOrigin.TARGETING, "rollback refused"))

        with pytest.raises(CompensationFailure) as exc_info:
            await saga.create(payload)

        assert exc_info.value.message == "Rollback failed for Create Offer on STG: rollback refused"
        assert fakes.billing.called("deactivate_coupon") == []
        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.STG_RB_FAIL
        assert row.err_message == "rollback refused"
        assert row.gl_rollback_version == 1

    async def test_concurrent_targeting_write_is_busy_and_not_compensated(self, saga, store, fakes, payload):
        fakes.targeting.fail("write_config", BusyError("Configuration offers was changed by another user"))

        with pytest.raises(BusyError) as exc_info:
            await saga.create(payload)

        assert exc_info.value.message.startswith("STG: ")
        assert fakes.billing.called("deactivate_coupon") == []
        assert (await store.get("store-us", "SUMMER")).status_id == StatusCode.DFT

    async def test_ignored_cache_errors_do_not_fail_create(self, store, fakes, payload):
        props = SagaProperties(read_retry_base_delay_ms=0, ignore_cache_errors=True)
        saga = OfferSaga(store, fakes.collaborators, props)
        fakes.cache.fail("clear_cache", RemoteError(ErrorOrigin.CACHE, "cache down"))

        outcome = await saga.create(payload)

        assert outcome.status_id == StatusCode.STG
        assert len(fakes.cache.called("clear_cache")) == 3

    async def test_disabled_rollback_leaves_side_effects(self, store, fakes, payload):
        props = SagaProperties(read_retry_base_delay_ms=0, disable_rollback=True)
        saga = OfferSaga(store, fakes.collaborators, props)
        fakes.content.fail("create_entry", RemoteError(ErrorOrigin.CONTENT, "down"))

        with pytest.raises(SagaFailure):
            await saga.create(payload)

        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.REDEEMABLE
        assert _targeting_entry(fakes) is not None

    async def test_retention_offer_creates_upgrade_coupon(self, retention_saga, retention_store, fakes):
        payload = RetentionOfferPayload(
            store_code="store-us",
            offer_code="STAY",
            plan_code="monthly",
            upgrade_offer="STAY_UP",
            upgrade_plan="annual",
        )

        await retention_saga.create(payload)

        row = await retention_store.get("store-us", "STAY")
        assert row.upgrade_offer_code == "STAY_UP"
        assert row.upgrade_coupon_id == fakes.billing.coupons[(Env.STG, "STAY_UP")].coupon_id
        assert _targeting_entry(fakes, offer_code="STAY")["upgradeOfferCode"] == "STAY_UP"


# ── Update ───────────────────────────────────────────────────


class TestUpdate:
    async def test_update_draft_stays_in_db(self, saga, fakes, payload):
        await saga.save_draft(payload)

        outcome = await saga.update(payload.model_copy(update={"offer_name": "Renamed"}))

        assert outcome.message == "Offer (SUMMER) updated successfully in DB"
        assert outcome.status_id == StatusCode.DFT
        assert fakes.billing.calls == []

    async def test_update_staged_offer(self, saga, store, fakes, payload):
        await _staged(saga, payload)

        changed = payload.model_copy(update={"coupon": {"discount": 30}, "content": {"headline": "Thirty"}})
        outcome = await saga.update(changed)

        assert outcome.message == "Offer (SUMMER) updated successfully on STG"
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].attributes == {"discount": 30}
        entry = fakes.content.entries[(Env.STG, "SUMMER")]
        assert entry.fields["headline"] == "Thirty"
        assert entry.version == 2
        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.STG
        assert row.draft_data["coupon"] == {"discount": 30}
        # staging an unchanged draft adds no audit row
        assert [r.action for r in await store.history("store-us", "SUMMER")] == [history.UPDATED, history.UPDATED]

    async def test_content_failure_restores_previous_coupon_exactly(self, saga, store, fakes, payload):
        await _staged(saga, payload)
        before = fakes.billing.coupons[(Env.STG, "SUMMER")]
        fakes.content.fail("update_entry", RemoteError(ErrorOrigin.CONTENT, "content service down"))

        with pytest.raises(SagaFailure) as exc_info:
            await saga.update(payload.model_copy(update={"coupon": {"discount": 90}}))

        assert exc_info.value.status_id == StatusCode.STG_ERR_UPD
        assert fakes.billing.coupons[(Env.STG, "SUMMER")] == before
        assert fakes.billing.called("restore_coupon") == [(before, Env.STG)]
        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.STG_ERR_UPD
        assert row.err_message == "content service down"

    async def test_cache_failure_restores_coupon_and_content(self, saga, fakes, payload):
        await _staged(saga, payload)
        coupon_before = fakes.billing.coupons[(Env.STG, "SUMMER")]
        entry_before = fakes.content.entries[(Env.STG, "SUMMER")]
        fakes.cache.fail("clear_cache", RemoteError(ErrorOrigin.CACHE, "cache down"))

        with pytest.raises(SagaFailure):
            await saga.update(payload.model_copy(update={"content": {"headline": "Changed"}}))

        assert fakes.content.entries[(Env.STG, "SUMMER")] == entry_before
        assert fakes.billing.coupons[(Env.STG, "SUMMER")] == coupon_before
        assert fakes.targeting.called("rollback_to_version") == []

    async def test_missing_coupon_fails_before_any_write(self, saga, fakes, payload):
        await _staged(saga, payload)
        del fakes.billing.coupons[(Env.STG, "SUMMER")]

        with pytest.raises(SagaFailure) as exc_info:
            await saga.update(payload)

        assert exc_info.value.cause.origin is ErrorOrigin.BILLING
        assert fakes.billing.called("update_coupon") == []

    async def test_update_guard_rejects_pending_validation(self, saga, store, payload):
        await _staged(saga, payload)
        await store.set_status("store-us", "SUMMER", StatusCode.STG_VALDN_PEND)

        with pytest.raises(GuardViolation):
            await saga.update(payload)


# ── Delete ───────────────────────────────────────────────────


class TestDelete:
    async def test_delete_draft_removes_row(self, saga, store, fakes, payload):
        await saga.save_draft(payload)

        outcome = await saga.delete("store-us", "SUMMER")

        assert outcome.message == "Offer (SUMMER) deleted successfully from DB"
        assert await store.find("store-us", "SUMMER") is None
        assert fakes.billing.calls == []

    async def test_retire_staged_offer(self, saga, store, fakes, payload):
        await _staged(saga, payload)

        outcome = await saga.delete("store-us", "SUMMER", updated_by="bob")

        assert outcome.message == "Offer (SUMMER) retired successfully on STG"
        assert outcome.status_id == StatusCode.STG_RETD
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.EXPIRED
        assert _targeting_entry(fakes) is None
        actions = [r.action for r in await store.history("store-us", "SUMMER")]
        assert actions[-1] == history.RETIRED_ACTION

    async def test_retire_published_offer_touches_both_environments(self, saga, store, fakes, payload):
        await _staged(saga, payload)
        fakes.billing.seed("SUMMER", Env.PROD)
        await store.set_status("store-us", "SUMMER", StatusCode.PROD)

        outcome = await saga.delete("store-us", "SUMMER")

        assert outcome.status_id == StatusCode.PROD_RETD
        assert fakes.billing.coupons[(Env.PROD, "SUMMER")].state == CouponState.EXPIRED
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.EXPIRED

    async def test_failed_retire_restores_coupon_and_previous_status(self, saga, store, fakes, payload):
        await _staged(saga, payload)
        fakes.cache.fail("clear_cache", RemoteError(ErrorOrigin.CACHE, "cache down"))

        with pytest.raises(SagaFailure) as exc_info:
            await saga.delete("store-us", "SUMMER")

        assert exc_info.value.status_id == StatusCode.STG
        assert fakes.billing.coupons[(Env.STG, "SUMMER")].state == CouponState.REDEEMABLE
        row = await store.get("store-us", "SUMMER")
        assert row.status_id == StatusCode.STG
        assert row.err_message == "cache down"

    async def test_retired_offer_cannot_be_deleted_again(self, saga, payload):
        await _staged(saga, payload)
        await saga.delete("store-us", "SUMMER")

        with pytest.raises(GuardViolation):
            await saga.delete("store-us", "SUMMER")

    async def test_retire_leaves_content_entry_alone(self, saga, fakes, payload):
        await _staged(saga, payload)
        await saga.delete("store-us", "SUMMER")
        assert fakes.content.entries[(Env.STG, "SUMMER")].state == EntryState.PUBLISHED
