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
"""OfferStore -- short, retried transactions against one offer table.

Sagas never hold a session across a remote call. Each read or write opens
its own session, commits, and returns detached entities (the session factory
must be built with ``expire_on_commit=False``). Writes are retried on
connection-level failures only; constraint violations propagate at once.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from samoc.data.entities import OfferColumnsMixin, OfferHistoryEntity
from samoc.data.repository import HistoryRepository, OfferRepository
from samoc.kernel.exceptions import ResourceNotFoundException
from samoc.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

O = TypeVar("O", bound=OfferColumnsMixin)  # noqa: E741
R = TypeVar("R")


def is_transient_db_error(exc: BaseException) -> bool:
    """Connection drops and lock timeouts are worth another attempt."""
    return isinstance(exc, OperationalError) or bool(getattr(exc, "connection_invalidated", False))


def db_retry_policy(max_attempts: int = 3, base_delay: timedelta = timedelta(milliseconds=200)) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay=base_delay,
        retry_on=(DBAPIError,),
        should_retry=is_transient_db_error,
        name="db write",
    )


def with_err_message(draft_data: dict[str, Any] | None, message: str | None) -> dict[str, Any]:
    """Deep copy of *draft_data* with ``errMessage`` set (or removed when *message* is None)."""
    data = copy.deepcopy(draft_data) if draft_data else {}
    if message is None:
        data.pop("errMessage", None)
    else:
        data["errMessage"] = message
    return data


class OfferStore(Generic[O]):
    """Persistence facade used by the offer and campaign sagas."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[O],
        retry: RetryPolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._retry = retry or db_retry_policy()

    @property
    def model(self) -> type[O]:
        return self._model

    async def _run(self, work: Callable[[AsyncSession], Awaitable[R]], write: bool = True) -> R:
        async def attempt() -> R:
            async with self._session_factory() as session:
                result = await work(session)
                if write:
                    await session.commit()
                return result

        return await self._retry.execute(attempt)

    def _offers(self, session: AsyncSession) -> OfferRepository[O]:
        return OfferRepository(self._model, session)

    # ── reads ─────────────────────────────────────────────────

    async def find(self, store_code: str, offer_code: str) -> O | None:
        return await self._run(lambda s: self._offers(s).find_by_key(store_code, offer_code), write=False)

    async def get(self, store_code: str, offer_code: str) -> O:
        offer = await self.find(store_code, offer_code)
        if offer is None:
            raise ResourceNotFoundException(
                f"Offer ({offer_code}) not found in store {store_code}",
                context={"store_code": store_code, "offer_code": offer_code},
            )
        return offer

    async def find_by_campaign(self, campaign: str) -> list[O]:
        return await self._run(lambda s: self._offers(s).find_by_campaign(campaign), write=False)

    async def find_by_build_key(self, build_key: str) -> O | None:
        return await self._run(lambda s: self._offers(s).find_by_build_key(build_key), write=False)

    async def find_by_status(self, statuses: Iterable[int]) -> list[O]:
        wanted = list(statuses)
        return await self._run(lambda s: self._offers(s).find_by_status(wanted), write=False)

    # ── writes ────────────────────────────────────────────────

    async def upsert(self, store_code: str, offer_code: str, values: dict[str, Any]) -> O:
        """Insert the row or update it in place; the (store, offer) key never duplicates."""

        async def work(session: AsyncSession) -> O:
            repo = self._offers(session)
            offer = await repo.find_by_key(store_code, offer_code)
            if offer is None:
                offer = self._model(store_code=store_code, offer_code=offer_code)
            for key, value in values.items():
                setattr(offer, key, value)
            return await repo.save(offer)

        return await self._run(work)

    async def update(self, store_code: str, offer_code: str, **fields: Any) -> O:
        async def work(session: AsyncSession) -> O:
            repo = self._offers(session)
            offer = await repo.find_by_key(store_code, offer_code)
            if offer is None:
                raise ResourceNotFoundException(f"Offer ({offer_code}) not found in store {store_code}")
            for key, value in fields.items():
                setattr(offer, key, value)
            return await repo.save(offer)

        return await self._run(work)

    async def set_status(
        self,
        store_code: str,
        offer_code: str,
        status_id: int,
        err_message: str | None = None,
        **fields: Any,
    ) -> O:
        """Persist *status_id* and annotate ``draft_data.errMessage``.

        Passing ``err_message=None`` clears a previous error annotation.
        """

        async def work(session: AsyncSession) -> O:
            repo = self._offers(session)
            offer = await repo.find_by_key(store_code, offer_code)
            if offer is None:
                raise ResourceNotFoundException(f"Offer ({offer_code}) not found in store {store_code}")
            offer.status_id = int(status_id)
            offer.draft_data = with_err_message(offer.draft_data, err_message)
            for key, value in fields.items():
                setattr(offer, key, value)
            return await repo.save(offer)

        return await self._run(work)

    async def delete(self, store_code: str, offer_code: str) -> None:
        async def work(session: AsyncSession) -> None:
            repo = self._offers(session)
            offer = await repo.find_by_key(store_code, offer_code)
            if offer is not None:
                await repo.delete_entity(offer)

        await self._run(work)

    # ── history ───────────────────────────────────────────────

    async def history(self, store_code: str, offer_code: str) -> list[OfferHistoryEntity]:
        return await self._run(lambda s: HistoryRepository(session=s).list_for(store_code, offer_code), write=False)

    async def append_history(
        self,
        offer: O,
        action: str,
        should_append: Callable[[OfferHistoryEntity | None, O], bool],
        updated_by: str | None = None,
    ) -> OfferHistoryEntity | None:
        """Append a history row for *offer* when *should_append* accepts it."""

        async def work(session: AsyncSession) -> OfferHistoryEntity | None:
            repo = HistoryRepository(session=session)
            previous = await repo.latest(offer.store_code, offer.offer_code)
            if not should_append(previous, offer):
                logger.debug("No history change for %s/%s", offer.store_code, offer.offer_code)
                return None
            entry = OfferHistoryEntity(
                store_code=offer.store_code,
                offer_code=offer.offer_code,
                action=action,
                status_id=offer.status_id,
                draft_data=copy.deepcopy(offer.draft_data),
                created_by=offer.created_by or "",
                updated_by=updated_by or "",
            )
            return await repo.append(entry)

        return await self._run(work)
