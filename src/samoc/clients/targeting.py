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
"""Targeting service adapter: versioned configuration sets.

Values travel as JSON strings in ``configurationValue``; every write names
the version it was based on and the service answers 409 when another
writer got there first.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, Literal

from samoc.clients.http import RestAdapter
from samoc.kernel.exceptions import BusyError, RemoteError
from samoc.ports.outbound import CURRENT, TargetingConfig
from samoc.status.codes import Env

logger = logging.getLogger(__name__)

CHANGED_BY = "samoc"


class TargetingClient(RestAdapter):
    """Implements :class:`~samoc.ports.outbound.TargetingPort` over REST."""

    async def read_config(
        self,
        config_set: str,
        env: Env,
        version: int | Literal["current"] = CURRENT,
    ) -> TargetingConfig:
        data = await self._clients[env].get_json(f"/configurations/{config_set}/versions/{version}")
        return _config(config_set, data)

    async def write_config(
        self,
        config_set: str,
        value: dict[str, Any],
        expected_version: int,
        env: Env,
        changed_by: str | None = None,
        comments: str | None = None,
    ) -> TargetingConfig:
        body = {
            "configurationValue": json.dumps(value),
            "expectedVersion": expected_version,
            "lastChangedBy": changed_by or CHANGED_BY,
            "comments": comments or f"SAMOC: update {config_set}",
        }
        try:
            response = await self._clients[env].put(f"/configurations/{config_set}", json=body)
        except RemoteError as exc:
            if exc.status_code == 409:
                raise BusyError(
                    f"Configuration {config_set} was changed by another user on {env.label}, please try again",
                    code="TARGETING_VERSION_CONFLICT",
                    status_code=409,
                ) from exc
            raise
        return _config(config_set, response.json())

    async def rollback_to_version(self, config_set: str, version: int, env: Env) -> TargetingConfig:
        current = await self.read_config(config_set, env)
        if current.version - version > 1:
            raise BusyError(f"Configuration is outdated on {env.label}", code="TARGETING_OUTDATED", status_code=409)
        previous = await self.read_config(config_set, env, version)
        stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        restored = await self.write_config(
            config_set,
            previous.value,
            current.version,
            env,
            comments=f"SAMOC: Rollback to version {version} on {stamp}",
        )
        logger.info("Configuration %s rolled back to version %s on %s", config_set, version, env.label)
        return restored


def _config(config_set: str, data: dict[str, Any]) -> TargetingConfig:
    raw = data.get("configurationValue") or "{}"
    value = json.loads(raw) if isinstance(raw, str) else raw
    return TargetingConfig(config_set, int(data["configurationVersion"]), value)
