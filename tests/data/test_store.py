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
"""Tests for OfferStore and the offer history rules."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from samoc.data.entities import OfferEntity, OfferHistoryEntity
from samoc.data.repository import OfferRepository
from samoc.data.store import db_retry_policy, is_transient_db_error, with_err_message
from samoc.kernel.exceptions import ResourceNotFoundException
from samoc.offers import history
from samoc.status.codes import Env, StatusCode


class TestOfferStore:
    async def test_upsert_inserts_then_updates_same_row(self, store):
        first = await store.upsert("store-us", "SUMMER", {"plan_code": "monthly"})
        second = await store.upsert("store-us", "SUMMER", {"plan_code": "annual"})

        assert first.id == second.id
        assert second.plan_code == "annual"
        assert second.status_id == StatusCode.DFT
        assert second.env is Env.DB

    async def test_get_missing_raises_not_found(self, store):
        with pytest.raises(ResourceNotFoundException) as exc_info:
            await store.get("store-us", "NOPE")
        assert exc_info.value.status_code == 404

    async def test_set_status_annotates_and_clears_err_message(self, store):
        await store.upsert("store-us", "SUMMER", {"draft_data": {"offer_name": "Summer"}})

        failed = await store.set_status("store-us", "SUMMER", StatusCode.STG_ERR_CRT, "content down")
        assert failed.err_message == "content down"
        assert failed.draft_data["offer_name"] == "Summer"

        fixed = await store.set_status("store-us", "SUMMER", StatusCode.STG, None, coupon_id="cpn-1")
        assert fixed.err_message is None
        assert fixed.coupon_id == "cpn-1"
        assert fixed.env is Env.STG

    async def test_find_by_status_and_campaign_and_build_key(self, store):
        await store.upsert("store-us", "A", {"status_id": int(StatusCode.STG_VALDN_PEND), "campaign": "c1"})
        await store.upsert("store-gb", "B", {"status_id": int(StatusCode.STG), "campaign": "c1", "build_key": "K-1"})

        pending = await store.find_by_status([StatusCode.STG_VALDN_PEND])
        assert [o.offer_code for o in pending] == ["A"]
        assert {o.offer_code for o in await store.find_by_campaign("c1")} == {"A", "B"}
        assert (await store.find_by_build_key("K-1")).offer_code == "B"
        assert await store.find_by_build_key("K-2") is None

    async def test_delete_removes_row(self, store):
        await store.upsert("store-us", "SUMMER", {})
        await store.delete("store-us", "SUMMER")
        assert await store.find("store-us", "SUMMER") is None

    async def test_append_history_respects_predicate(self, store):
        offer = await store.upsert("store-us", "SUMMER", {"draft_data": {"offer_name": "Summer"}})

        first = await store.append_history(offer, history.CREATED, history.should_append, "alice")
        duplicate = await store.append_history(offer, history.UPDATED, history.should_append, "alice")

        assert first is not None
        assert first.updated_by == "alice"
        assert duplicate is None
        rows = await store.history("store-us", "SUMMER")
        assert [row.action for row in rows] == [history.CREATED]


class TestStoreHelpers:
    def test_with_err_message_does_not_mutate_input(self):
        draft = {"nested": {"a": 1}}
        annotated = with_err_message(draft, "boom")
        annotated["nested"]["a"] = 2
        assert draft == {"nested": {"a": 1}}
        assert annotated["errMessage"] == "boom"
        assert "errMessage" not in with_err_message(annotated, None)

    def test_only_operational_errors_are_transient(self):
        assert is_transient_db_error(OperationalError("SELECT 1", {}, Exception("database is locked")))
        assert not is_transient_db_error(ValueError("bad"))

    def test_db_retry_policy_attempts(self):
        assert db_retry_policy(max_attempts=5).max_attempts == 5


class TestHistoryRules:
    def _entry(self, status: int, draft: dict | None = None) -> OfferHistoryEntity:
        return OfferHistoryEntity(
            store_code="store-us", offer_code="SUMMER", action="x", status_id=status, draft_data=draft
        )

    def _offer(self, status: int, draft: dict | None = None) -> SimpleNamespace:
        return SimpleNamespace(status_id=status, draft_data=draft)

    def test_first_record_is_always_appended(self):
        assert history.should_append(None, self._offer(StatusCode.DFT))

    def test_error_annotation_alone_is_not_a_change(self):
        previous = self._entry(StatusCode.STG, {"offer_name": "A"})
        current = self._offer(StatusCode.STG, {"offer_name": "A", "errMessage": "boom", "updated_by": "bob"})
        assert not history.should_append(previous, current)

    def test_draft_change_is_appended(self):
        previous = self._entry(StatusCode.STG, {"offer_name": "A"})
        assert history.should_append(previous, self._offer(StatusCode.STG, {"offer_name": "B"}))

    def test_promotion_to_prod_is_appended(self):
        previous = self._entry(StatusCode.STG_VALDN_PASS, {"offer_name": "A"})
        assert history.should_append(previous, self._offer(StatusCode.PROD, {"offer_name": "A"}))

    def test_retirement_is_appended(self):
        previous = self._entry(StatusCode.STG, {"offer_name": "A"})
        assert history.should_append(previous, self._offer(StatusCode.STG_RETD, {"offer_name": "A"}))

    def test_draft_changes_lists_old_and_new(self):
        assert history.draft_changes({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4}) == {"b": (2, 3), "c": (None, 4)}


class TestOfferRepository:
    async def test_find_all_filters_on_column_values(self, session_factory):
        async with session_factory() as session:
            repo = OfferRepository(OfferEntity, session)
            await repo.save(OfferEntity(store_code="store-us", offer_code="A", campaign="c1"))
            await repo.save(OfferEntity(store_code="store-gb", offer_code="B", campaign="c1", build_key="K-1"))
            await repo.save(OfferEntity(store_code="store-de", offer_code="C", campaign="c2"))

            assert {o.offer_code for o in await repo.find_all(campaign="c1")} == {"A", "B"}
            assert {o.offer_code for o in await repo.find_by_campaign("c2")} == {"C"}
            assert (await repo.find_by_build_key("K-1")).offer_code == "B"
            assert len(await repo.find_all()) == 3
