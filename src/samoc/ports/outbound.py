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
"""Outbound port protocols for the external systems of record.

Adapters (HTTP clients in :mod:`samoc.clients`, in-memory fakes in tests)
must satisfy these structural contracts. Every adapter raises
:class:`~samoc.kernel.exceptions.RemoteError` tagged with its own origin;
the targeting and build ports additionally raise
:class:`~samoc.kernel.exceptions.BusyError` /
:class:`~samoc.kernel.exceptions.OfflineError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

from samoc.status.codes import CodeType, CouponState, EntryState, Env

CURRENT: Literal["current"] = "current"


# ── value objects ─────────────────────────────────────────────


@dataclass(frozen=True)
class CouponRequest:
    """What the billing service needs to create or update a coupon."""

    code: str
    plan_code: str | None
    name: str = ""
    code_type: CodeType = CodeType.SINGLE_CODE
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CouponSnapshot:
    """Full billing-side state of a coupon, enough to restore it verbatim."""

    code: str
    coupon_id: str
    state: CouponState
    code_type: CodeType = CodeType.SINGLE_CODE
    plan_code: str | None = None
    name: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContentEntry:
    entry_id: str
    offer_code: str
    state: EntryState
    environments: tuple[str, ...] = ()
    fields: dict[str, Any] = field(default_factory=dict)
    version: int = 1


@dataclass(frozen=True)
class TargetingConfig:
    """One version of a configuration set held by the targeting service."""

    config_set: str
    version: int
    value: dict[str, Any]


@dataclass(frozen=True)
class BuildConfig:
    env: Env
    offers_url: str
    offer_type: str
    offer_code: str


# ── ports ─────────────────────────────────────────────────────


@runtime_checkable
class BillingPort(Protocol):
    """Coupon/billing service. Deactivate and restore are idempotent."""

    async def fetch_plan(self, plan_code: str, env: Env) -> dict[str, Any]: ...

    async def create_coupon(self, request: CouponRequest, env: Env) -> CouponSnapshot: ...

    async def update_coupon(self, request: CouponRequest, env: Env) -> CouponSnapshot: ...

    async def deactivate_coupon(self, code: str, env: Env) -> None: ...

    async def restore_coupon(self, snapshot: CouponSnapshot, env: Env) -> CouponSnapshot:
        """Put the coupon back exactly as *snapshot* describes it."""
        ...

    async def fetch_coupon(self, code: str, env: Env) -> CouponSnapshot | None: ...

    async def codes_ready(self, code: str, env: Env) -> bool:
        """Whether the unique codes of a bulk coupon have been generated."""
        ...


@runtime_checkable
class ContentPort(Protocol):
    """Content-management service holding the offer copy."""

    async def create_entry(self, offer_code: str, fields: dict[str, Any], env: Env) -> ContentEntry: ...

    async def update_entry(self, entry_id: str, fields: dict[str, Any], env: Env) -> ContentEntry: ...

    async def archive_entry(self, entry_id: str, env: Env) -> None: ...

    async def restore_entry(self, snapshot: ContentEntry, env: Env) -> ContentEntry: ...

    async def fetch_entry(self, offer_code: str, env: Env) -> ContentEntry | None: ...


@runtime_checkable
class TargetingPort(Protocol):
    """Versioned configuration store with one optimistic version per set."""

    async def read_config(
        self,
        config_set: str,
        env: Env,
        version: int | Literal["current"] = CURRENT,
    ) -> TargetingConfig: ...

    async def write_config(
        self,
        config_set: str,
        value: dict[str, Any],
        expected_version: int,
        env: Env,
        changed_by: str | None = None,
    ) -> TargetingConfig:
        """Write a new version; raises ``BusyError`` when *expected_version* is stale."""
        ...

    async def rollback_to_version(self, config_set: str, version: int, env: Env) -> TargetingConfig:
        """Re-publish *version*; raises ``BusyError`` when the set moved on by more than one version."""
        ...


@runtime_checkable
class CachePort(Protocol):
    """Downstream content cache in front of the content service."""

    async def clear_cache(self, env: Env) -> None: ...

    async def verify_offer(self, store_code: str, offer_code: str, env: Env) -> bool: ...


@runtime_checkable
class AuthCachePort(Protocol):
    """Read-only entitlement cache that serves targeting data to clients."""

    async def clear_offer_cache(self, store_code: str, env: Env) -> None: ...

    async def verify_offer(self, store_code: str, offer_code: str, env: Env) -> bool:
        """Whether the cache already serves the targeting entry for *offer_code*."""
        ...


@runtime_checkable
class BuildPort(Protocol):
    """Asynchronous build/validation oracle."""

    async def trigger_build(self, cfg: BuildConfig) -> str | None:
        """Return the build key, or ``None`` when the oracle accepted nothing."""
        ...


@dataclass
class Collaborators:
    """The set of external systems an offer saga talks to."""

    billing: BillingPort
    content: ContentPort
    targeting: TargetingPort
    cache: CachePort
    auth_cache: AuthCachePort
    build: BuildPort
