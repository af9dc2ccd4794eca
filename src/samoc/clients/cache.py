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
"""Cache adapters: the content cache and the auth (entitlement) cache."""

from __future__ import annotations

from samoc.clients.http import RestAdapter
from samoc.status.codes import Env


class CacheClient(RestAdapter):
    """Content cache in front of the content service."""

    async def clear_cache(self, env: Env) -> None:
        await self._clients[env].post("/cache/clear")

    async def verify_offer(self, store_code: str, offer_code: str, env: Env) -> bool:
        data = await self._clients[env].find_json(f"/stores/{store_code}/offers/{offer_code}")
        return data is not None


class AuthCacheClient(RestAdapter):
    """Entitlement cache serving targeting data to clients."""

    async def clear_offer_cache(self, store_code: str, env: Env) -> None:
        await self._clients[env].delete(f"/stores/{store_code}/offers/cache")

    async def verify_offer(self, store_code: str, offer_code: str, env: Env) -> bool:
        data = await self._clients[env].get_json(f"/stores/{store_code}/offers")
        return offer_code in {entry.get("offerCode") for entry in data.get("offers", [])}
