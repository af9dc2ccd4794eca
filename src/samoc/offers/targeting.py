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
"""Offer entries inside the targeting configuration.

The ``offers`` configuration set is laid out as
``{"stores": {<store_code>: {<offer_code>: <entry>}}}``. Every edit is a
read-modify-write against the current version, so a concurrent writer makes
the write fail closed with ``BusyError``.
"""

from __future__ import annotations

import copy
from typing import Any

from samoc.ports.outbound import TargetingConfig, TargetingPort
from samoc.status.codes import Env

OFFERS_SET = "offers"
RETENTION_SET = "retention"


def offer_entry(value: dict[str, Any], store_code: str, offer_code: str) -> dict[str, Any] | None:
    return value.get("stores", {}).get(store_code, {}).get(offer_code)


async def put_offer_entry(
    port: TargetingPort,
    store_code: str,
    offer_code: str,
    entry: dict[str, Any],
    env: Env,
    changed_by: str | None = None,
) -> TargetingConfig:
    """Write *entry* for the offer; returns the new configuration version."""
    current = await port.read_config(OFFERS_SET, env)
    value = copy.deepcopy(current.value)
    value.setdefault("stores", {}).setdefault(store_code, {})[offer_code] = entry
    return await port.write_config(OFFERS_SET, value, current.version, env, changed_by)


async def remove_offer_entry(
    port: TargetingPort,
    store_code: str,
    offer_code: str,
    env: Env,
    changed_by: str | None = None,
) -> TargetingConfig | None:
    """Blank the offer's entry; returns ``None`` when there was nothing to remove."""
    current = await port.read_config(OFFERS_SET, env)
    if offer_entry(current.value, store_code, offer_code) is None:
        return None
    value = copy.deepcopy(current.value)
    del value["stores"][store_code][offer_code]
    return await port.write_config(OFFERS_SET, value, current.version, env, changed_by)


async def offer_exists(port: TargetingPort, store_code: str, offer_code: str, env: Env) -> bool:
    current = await port.read_config(OFFERS_SET, env)
    return offer_entry(current.value, store_code, offer_code) is not None
