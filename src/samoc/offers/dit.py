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
"""Data integrity test (DIT): four read-only checks run concurrently.

* billing -- the coupon exists and is not expired
* content -- the entry is published and tagged for the environment
* targeting -- the configuration holds an entry for the offer
* cache -- the content cache serves the offer
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from samoc.kernel.exceptions import ErrorOrigin, RemoteError
from samoc.offers.targeting import offer_exists
from samoc.ports.outbound import Collaborators
from samoc.resilience.retry import RetryPolicy
from samoc.status.codes import CouponState, EntryState, Env

logger = logging.getLogger(__name__)

# environment tag a published content entry must carry
CONTENT_ENV_TAGS = {Env.PROD: "Prod", Env.STG: "Dev"}


@dataclass(frozen=True)
class CheckResult:
    name: str
    origin: ErrorOrigin
    passed: bool
    message: str = ""


@dataclass(frozen=True)
class DitReport:
    store_code: str
    offer_code: str
    env: Env
    checks: tuple[CheckResult, ...]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)

    def failures(self) -> list[CheckResult]:
        return [check for check in self.checks if not check.passed]

    def summary(self) -> str:
        return "; ".join(check.message for check in self.failures())

    def first_failure_origin(self) -> ErrorOrigin | None:
        failures = self.failures()
        return failures[0].origin if failures else None


class DataIntegrityTest:
    """Runs the DIT checks for one offer in one environment."""

    def __init__(self, collaborators: Collaborators, retry: RetryPolicy | None = None) -> None:
        self._c = collaborators
        self._retry = retry or RetryPolicy(max_attempts=1, name="dit check")

    async def run(self, store_code: str, offer_code: str, env: Env) -> DitReport:
        checks: list[tuple[str, ErrorOrigin, Callable[[], Awaitable[CheckResult]]]] = [
            ("coupon", ErrorOrigin.BILLING, lambda: self._check_coupon(offer_code, env)),
            ("content", ErrorOrigin.CONTENT, lambda: self._check_content(offer_code, env)),
            ("targeting", ErrorOrigin.TARGETING, lambda: self._check_targeting(store_code, offer_code, env)),
            ("cache", ErrorOrigin.CACHE, lambda: self._check_cache(store_code, offer_code, env)),
        ]
        outcomes = await asyncio.gather(
            *(self._retry.execute(check) for _, _, check in checks),
            return_exceptions=True,
        )
        results: list[CheckResult] = []
        for (name, origin, _), outcome in zip(checks, outcomes, strict=True):
            if isinstance(outcome, RemoteError):
                results.append(CheckResult(name, outcome.origin, False, str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        report = DitReport(store_code, offer_code, env, tuple(results))
        logger.info(
            "DIT for %s/%s on %s: %s",
            store_code,
            offer_code,
            env.label,
            "passed" if report.passed else report.summary(),
        )
        return report

    async def _check_coupon(self, offer_code: str, env: Env) -> CheckResult:
        coupon = await self._c.billing.fetch_coupon(offer_code, env)
        if coupon is None:
            return CheckResult("coupon", ErrorOrigin.BILLING, False, f"Coupon ({offer_code}) not found")
        if coupon.state == CouponState.EXPIRED:
            return CheckResult("coupon", ErrorOrigin.BILLING, False, f"Coupon ({offer_code}) is expired")
        return CheckResult("coupon", ErrorOrigin.BILLING, True)

    async def _check_content(self, offer_code: str, env: Env) -> CheckResult:
        entry = await self._c.content.fetch_entry(offer_code, env)
        if entry is None:
            return CheckResult("content", ErrorOrigin.CONTENT, False, f"Content entry for ({offer_code}) not found")
        if entry.state != EntryState.PUBLISHED:
            return CheckResult(
                "content", ErrorOrigin.CONTENT, False, f"Content entry for ({offer_code}) is {entry.state.value}"
            )
        tag = CONTENT_ENV_TAGS[env]
        if tag not in entry.environments:
            return CheckResult(
                "content", ErrorOrigin.CONTENT, False, f"Content entry for ({offer_code}) is not tagged {tag}"
            )
        return CheckResult("content", ErrorOrigin.CONTENT, True)

    async def _check_targeting(self, store_code: str, offer_code: str, env: Env) -> CheckResult:
        if not await offer_exists(self._c.targeting, store_code, offer_code, env):
            return CheckResult(
                "targeting", ErrorOrigin.TARGETING, False, f"Offer ({offer_code}) missing from targeting configuration"
            )
        return CheckResult("targeting", ErrorOrigin.TARGETING, True)

    async def _check_cache(self, store_code: str, offer_code: str, env: Env) -> CheckResult:
        if not await self._c.cache.verify_offer(store_code, offer_code, env):
            message = f"Offer ({offer_code}) is not served by content cache"
            return CheckResult("cache", ErrorOrigin.CACHE, False, message)
        return CheckResult("cache", ErrorOrigin.CACHE, True)
