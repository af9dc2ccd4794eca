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
"""SamocApplication -- builds the sagas, stores and clients from configuration.

Usage::

    app = SamocApplication.from_file("samoc.yaml")
    await app.startup()
    outcome = await app.saga_for(OfferType.ACQUISITION).create(payload)
    await app.shutdown()

Active profiles come from ``SAMOC_PROFILES_ACTIVE`` (comma separated) unless
given explicitly.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from samoc.campaigns.saga import CampaignSaga
from samoc.clients import build_collaborators, close_collaborators
from samoc.core.config import Config
from samoc.core.properties import DataProperties, SagaProperties, ServiceProperties
from samoc.data.entities import Base, ExtensionOfferEntity, OfferEntity, RetentionOfferEntity
from samoc.data.store import OfferStore, db_retry_policy
from samoc.eligibility.workflow import FilterWorkflow
from samoc.kernel.exceptions import RemoteError
from samoc.logging.structlog_adapter import StructlogAdapter
from samoc.offers.callbacks import BuildCallbackHandler
from samoc.offers.saga import OfferSaga
from samoc.ports.outbound import Collaborators
from samoc.resilience.retry import RetryPolicy
from samoc.status.codes import OfferType

logger = logging.getLogger(__name__)

PROFILES_ENV = "SAMOC_PROFILES_ACTIVE"


class SamocApplication:
    def __init__(self, config: Config, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self.saga_properties = config.bind(SagaProperties)
        self.services = config.bind(ServiceProperties)
        self.data = config.bind(DataProperties)
        self._transport = transport
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._collaborators: Collaborators | None = None
        self._sagas: dict[OfferType, OfferSaga] = {}

    @classmethod
    def from_file(
        cls,
        path: str | Path = "samoc.yaml",
        profiles: Sequence[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SamocApplication:
        if profiles is None:
            profiles = [p.strip() for p in os.environ.get(PROFILES_ENV, "").split(",") if p.strip()]
        return cls(Config.from_file(path, active_profiles=list(profiles)), transport)

    @property
    def collaborators(self) -> Collaborators:
        if self._collaborators is None:
            raise RuntimeError("SamocApplication has not been started")
        return self._collaborators

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("SamocApplication has not been started")
        return self._session_factory

    async def startup(self) -> None:
        StructlogAdapter().configure(self.config)
        for source in self.config.loaded_sources:
            logger.info("Loaded configuration from %s", source)

        self._engine = create_async_engine(self.data.url, echo=self.data.echo)
        if self.data.create_schema:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._collaborators = build_collaborators(self.services, self._transport)

        props = self.saga_properties
        retry = db_retry_policy(props.db_retry_attempts, props.db_retry_base_delay)
        for offer_type, model in (
            (OfferType.ACQUISITION, OfferEntity),
            (OfferType.RETENTION, RetentionOfferEntity),
            (OfferType.EXTENSION, ExtensionOfferEntity),
        ):
            store = OfferStore(self._session_factory, model, retry=retry)
            self._sagas[offer_type] = OfferSaga(store, self._collaborators, props, offers_url=props.offers_url)
        logger.info("samoc started (rollback %s)", "disabled" if props.disable_rollback else "enabled")

    async def shutdown(self) -> None:
        if self._collaborators is not None:
            await close_collaborators(self._collaborators)
            self._collaborators = None
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._sagas.clear()

    def saga_for(self, offer_type: OfferType) -> OfferSaga:
        """Acquisition, winback and signup offers share the ``offers`` table."""
        if not self._sagas:
            raise RuntimeError("SamocApplication has not been started")
        if offer_type in (OfferType.RETENTION, OfferType.EXTENSION):
            return self._sagas[offer_type]
        return self._sagas[OfferType.ACQUISITION]

    def campaigns(self, offer_type: OfferType = OfferType.ACQUISITION) -> CampaignSaga:
        return CampaignSaga(self.saga_for(offer_type))

    def build_callbacks(self) -> BuildCallbackHandler:
        return BuildCallbackHandler(
            [self.saga_for(t) for t in (OfferType.ACQUISITION, OfferType.RETENTION, OfferType.EXTENSION)]
        )

    def filters(self, stores: Sequence[str] = ()) -> FilterWorkflow:
        props = self.saga_properties
        return FilterWorkflow(
            self.session_factory,
            self.collaborators.targeting,
            self.collaborators.auth_cache,
            stores=stores,
            read_retry=RetryPolicy(
                max_attempts=props.read_retry_attempts,
                base_delay=props.read_retry_base_delay,
                retry_on=(RemoteError,),
                name="filter read",
            ),
        )
