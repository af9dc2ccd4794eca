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
"""Build oracle adapter.

A saturated build server and one that is down for maintenance are not
failures of the offer: they surface as ``BusyError`` / ``OfflineError``
and the caller retries later.
"""

from __future__ import annotations

import logging

from samoc.clients.http import RestAdapter
from samoc.kernel.exceptions import BusyError, OfflineError, RemoteError
from samoc.ports.outbound import BuildConfig

logger = logging.getLogger(__name__)

_SATURATED = "maximum number of concurrent builds"


class BuildClient(RestAdapter):
    """Implements :class:`~samoc.ports.outbound.BuildPort`."""

    async def trigger_build(self, cfg: BuildConfig) -> str | None:
        params = {
            "OFFERS_URL": cfg.offers_url,
            "OFFER_TYPE": cfg.offer_type,
            "PROMO_CODE": cfg.offer_code,
            "VALDN_ENV": cfg.env.value,
        }
        try:
            response = await self._clients[cfg.env].post("/builds", params=params)
        except RemoteError as exc:
            logger.error("Failed to trigger build for %s on %s: %s", cfg.offer_code, cfg.env.label, exc)
            if exc.status_code == 400 and _SATURATED in exc.message:
                raise BusyError(
                    "Another offer is being validated on the build server, please try again in a few minutes.",
                    code="BUILD_BUSY",
                ) from exc
            if exc.status_code == 503:
                raise OfflineError(
                    "The build server may be down for scheduled maintenance, please retry later.",
                    code="BUILD_OFFLINE",
                ) from exc
            raise
        return response.json().get("buildResultKey")
