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
"""ORM entities for offers, offer history and user eligibility filters."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from samoc.status.codes import Env, FilterStatus, OfferType, StatusCode
from samoc.status.registry import target_env


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all samoc entities."""


class SoftDeleteMixin:
    """Adds a ``deleted_at`` timestamp; soft-deleted rows are skipped by repositories."""

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class BaseEntity(Base):
    """UUID primary key plus created/updated audit columns."""

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    created_by: Mapped[str | None] = mapped_column(String(255), default=None)
    updated_by: Mapped[str | None] = mapped_column(String(255), default=None)


class OfferColumnsMixin:
    """Columns shared by the acquisition, retention and extension offer tables.

    ``coupon_id`` is set once the billing coupon exists, which happens when the
    offer reaches the staged tier. ``gl_rollback_version`` is the targeting
    configuration version to restore if the offer has to be rolled back.
    """

    store_code: Mapped[str] = mapped_column(String(64), index=True)
    offer_code: Mapped[str] = mapped_column(String(128), index=True)
    offer_type_id: Mapped[int] = mapped_column(Integer, default=int(OfferType.ACQUISITION))
    plan_code: Mapped[str | None] = mapped_column(String(128), default=None)
    status_id: Mapped[int] = mapped_column(Integer, default=int(StatusCode.DFT))
    draft_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, default=None)
    coupon_id: Mapped[str | None] = mapped_column(String(128), default=None)
    upgrade_offer_code: Mapped[str | None] = mapped_column(String(128), default=None)
    upgrade_plan_code: Mapped[str | None] = mapped_column(String(128), default=None)
    upgrade_coupon_id: Mapped[str | None] = mapped_column(String(128), default=None)
    gl_rollback_version: Mapped[int | None] = mapped_column(Integer, default=None)
    campaign: Mapped[str | None] = mapped_column(String(128), default=None, index=True)
    campaign_name: Mapped[str | None] = mapped_column(String(255), default=None)
    build_key: Mapped[str | None] = mapped_column(String(128), default=None, index=True)
    dit_passed: Mapped[bool | None] = mapped_column(Boolean, default=None)
    dit_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    @property
    def env(self) -> Env:
        return target_env(self.status_id, self.coupon_id)

    @property
    def region(self) -> str:
        return self.store_code[-2:].upper()

    @property
    def err_message(self) -> str | None:
        return (self.draft_data or {}).get("errMessage")


class OfferEntity(OfferColumnsMixin, BaseEntity):
    """Acquisition and winback offers."""

    __tablename__ = "offers"
    __table_args__ = (UniqueConstraint("store_code", "offer_code", name="uq_offers_store_offer"),)


class RetentionOfferEntity(OfferColumnsMixin, BaseEntity):
    __tablename__ = "retention_offers"
    __table_args__ = (UniqueConstraint("store_code", "offer_code", name="uq_retention_offers_store_offer"),)


class ExtensionOfferEntity(OfferColumnsMixin, BaseEntity):
    __tablename__ = "extension_offers"
    __table_args__ = (UniqueConstraint("store_code", "offer_code", name="uq_extension_offers_store_offer"),)


OFFER_MODELS: tuple[type[OfferColumnsMixin], ...] = (OfferEntity, RetentionOfferEntity, ExtensionOfferEntity)


class OfferHistoryEntity(BaseEntity):
    """Append-only audit row; never updated after insert."""

    __tablename__ = "offer_history"

    store_code: Mapped[str] = mapped_column(String(64), index=True)
    offer_code: Mapped[str] = mapped_column(String(128), index=True)
    action: Mapped[str] = mapped_column(String(32))
    status_id: Mapped[int] = mapped_column(Integer)
    draft_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, default=None)


class UserEligibilityFilterEntity(SoftDeleteMixin, BaseEntity):
    """Draft/staged/published snapshots of the retention eligibility rules.

    ``store_code`` is the empty string for the global filter.
    """

    __tablename__ = "user_eligibility_filters"

    store_code: Mapped[str] = mapped_column(String(64), default="", index=True)
    status_id: Mapped[int] = mapped_column(Integer, default=int(FilterStatus.NEW))
    draft_data: Mapped[list[Any] | None] = mapped_column(JSON, default=None)
    stg_data: Mapped[list[Any] | None] = mapped_column(JSON, default=None)
    prod_data: Mapped[list[Any] | None] = mapped_column(JSON, default=None)
    stg_rollback_version: Mapped[int | None] = mapped_column(Integer, default=None)
    prod_rollback_version: Mapped[int | None] = mapped_column(Integer, default=None)
    regions: Mapped[str | None] = mapped_column(String(255), default=None)

    @property
    def region_list(self) -> list[str]:
        return self.regions.split(",") if self.regions else []
