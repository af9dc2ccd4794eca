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
"""Shared fixtures: a file-backed SQLite database and in-memory collaborators."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fakes import Fakes
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from samoc.core.properties import SagaProperties
from samoc.data.entities import Base, OfferEntity, RetentionOfferEntity
from samoc.data.store import OfferStore, db_retry_policy
from samoc.offers.payloads import OfferPayload
from samoc.offers.saga import OfferSaga

OFFERS_URL = "http://samoc.test/offers"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'samoc.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def fakes() -> Fakes:
    return Fakes()


@pytest.fixture
def properties() -> SagaProperties:
    return SagaProperties(db_retry_base_delay_ms=0, read_retry_base_delay_ms=0)


@pytest.fixture
def store(session_factory) -> OfferStore[OfferEntity]:
    return OfferStore(session_factory, OfferEntity, retry=db_retry_policy(base_delay=timedelta(0)))


@pytest.fixture
def retention_store(session_factory) -> OfferStore[RetentionOfferEntity]:
    return OfferStore(session_factory, RetentionOfferEntity, retry=db_retry_policy(base_delay=timedelta(0)))


@pytest.fixture
def saga(store, fakes, properties) -> OfferSaga:
    return OfferSaga(store, fakes.collaborators, properties, offers_url=OFFERS_URL)


@pytest.fixture
def retention_saga(retention_store, fakes, properties) -> OfferSaga:
    return OfferSaga(retention_store, fakes.collaborators, properties, offers_url=OFFERS_URL)


@pytest.fixture
def payload() -> OfferPayload:
    return OfferPayload(
        store_code="store-us",
        offer_code="SUMMER",
        plan_code="monthly",
        offer_name="Summer sale",
        coupon={"discount": 20},
        content={"headline": "Twenty percent off"},
        targeting={"priority": 1},
        updated_by="alice",
    )
