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
"""Generic async repository plus the offer, history and filter repositories."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar, cast, get_args, get_origin

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from samoc.data.entities import OfferColumnsMixin, OfferHistoryEntity, UserEligibilityFilterEntity

T = TypeVar("T")
ID = TypeVar("ID")
O = TypeVar("O", bound=OfferColumnsMixin)  # noqa: E741


class Repository(Generic[T, ID]):
    """Session-bound base for the samoc repositories.

    A concrete subclass such as ``Repository[OfferHistoryEntity, Any]`` picks
    its model up from the generic argument; subclasses that stay generic over
    the offer tables receive the model explicitly. Repositories only flush;
    the caller owns the transaction.
    """

    _entity_type: type | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            if get_origin(base) is Repository:
                args = get_args(base)
                if args and not isinstance(args[0], TypeVar):
                    cls._entity_type = args[0]
                break

    def __init__(self, model: type[T] | None = None, session: AsyncSession | None = None) -> None:
        resolved = model or getattr(type(self), "_entity_type", None)
        if resolved is None:
            raise TypeError(f"{type(self).__name__} needs a concrete entity type or an explicit model")
        self._model: type[T] = cast(type[T], resolved)
        self._session = session

    @property
    def model(self) -> type[T]:
        return self._model

    def _require_session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError(f"{type(self).__name__} used without a session")
        return self._session

    async def save(self, entity: T) -> T:
        session = self._require_session()
        session.add(entity)
        await session.flush()
        await session.refresh(entity)
        return entity

    async def find_all(self, **filters: Any) -> list[T]:
        """Rows whose columns equal the given values."""
        session = self._require_session()
        stmt = select(self._model)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self._model, key) == value)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def delete_entity(self, entity: T) -> None:
        session = self._require_session()
        await session.delete(entity)
        await session.flush()


class OfferRepository(Repository[O, Any]):
    """Queries over one of the offer tables, keyed by (store_code, offer_code)."""

    async def find_by_key(self, store_code: str, offer_code: str) -> O | None:
        session = self._require_session()
        stmt = select(self._model).where(
            self._model.store_code == store_code,  # type: ignore[attr-defined]
            self._model.offer_code == offer_code,  # type: ignore[attr-defined]
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def find_by_campaign(self, campaign: str) -> list[O]:
        return await self.find_all(campaign=campaign)

    async def find_by_build_key(self, build_key: str) -> O | None:
        found = await self.find_all(build_key=build_key)
        return found[0] if found else None

    async def find_by_status(self, statuses: Iterable[int]) -> list[O]:
        session = self._require_session()
        codes = [int(s) for s in statuses]
        stmt = select(self._model).where(self._model.status_id.in_(codes))  # type: ignore[attr-defined]
        result = await session.execute(stmt)
        return list(result.scalars().all())


class HistoryRepository(Repository[OfferHistoryEntity, Any]):
    """Append-only access to ``offer_history``."""

    async def latest(self, store_code: str, offer_code: str) -> OfferHistoryEntity | None:
        rows = await self.list_for(store_code, offer_code)
        return rows[-1] if rows else None

    async def list_for(self, store_code: str, offer_code: str) -> list[OfferHistoryEntity]:
        session = self._require_session()
        stmt = (
            select(OfferHistoryEntity)
            .where(OfferHistoryEntity.store_code == store_code, OfferHistoryEntity.offer_code == offer_code)
            .order_by(OfferHistoryEntity.created_at)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def append(self, entry: OfferHistoryEntity) -> OfferHistoryEntity:
        return await self.save(entry)


class FilterRepository(Repository[UserEligibilityFilterEntity, Any]):
    """User eligibility filters; soft-deleted rows are invisible."""

    async def latest(self, store_code: str) -> UserEligibilityFilterEntity | None:
        session = self._require_session()
        stmt = (
            select(UserEligibilityFilterEntity)
            .where(
                UserEligibilityFilterEntity.store_code == store_code,
                UserEligibilityFilterEntity.deleted_at.is_(None),
            )
            .order_by(UserEligibilityFilterEntity.created_at.desc())
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def soft_delete(self, entity: UserEligibilityFilterEntity) -> None:
        entity.deleted_at = datetime.now(UTC)
        await self.save(entity)
