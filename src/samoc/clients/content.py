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
"""Content service adapter: offer entries."""

from __future__ import annotations

from typing import Any

from samoc.clients.http import RestAdapter
from samoc.ports.outbound import ContentEntry
from samoc.status.codes import EntryState, Env


def _entry(data: dict[str, Any]) -> ContentEntry:
    return ContentEntry(
        entry_id=str(data["id"]),
        offer_code=data["offerCode"],
        state=EntryState(data.get("state", EntryState.DRAFT)),
        environments=tuple(data.get("environments") or ()),
        fields=dict(data.get("fields") or {}),
        version=int(data.get("version", 1)),
    )


class ContentClient(RestAdapter):
    """Implements :class:`~samoc.ports.outbound.ContentPort` over REST."""

    async def create_entry(self, offer_code: str, fields: dict[str, Any], env: Env) -> ContentEntry:
        response = await self._clients[env].post("/entries", json={"offerCode": offer_code, "fields": fields})
        return _entry(response.json())

    async def update_entry(self, entry_id: str, fields: dict[str, Any], env: Env) -> ContentEntry:
        response = await self._clients[env].put(f"/entries/{entry_id}", json={"fields": fields})
        return _entry(response.json())

    async def archive_entry(self, entry_id: str, env: Env) -> None:
        await self._clients[env].put(f"/entries/{entry_id}/archived")

    async def restore_entry(self, snapshot: ContentEntry, env: Env) -> ContentEntry:
        body = {
            "offerCode": snapshot.offer_code,
            "state": snapshot.state.value,
            "environments": list(snapshot.environments),
            "fields": snapshot.fields,
            "version": snapshot.version,
        }
        response = await self._clients[env].put(f"/entries/{snapshot.entry_id}/restore", json=body)
        return _entry(response.json())

    async def fetch_entry(self, offer_code: str, env: Env) -> ContentEntry | None:
        data = await self._clients[env].get_json("/entries", params={"offerCode": offer_code})
        items = data.get("items") or []
        return _entry(items[0]) if items else None
