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
"""When an offer change deserves an audit row."""

from __future__ import annotations

from typing import Any

from samoc.data.entities import OfferColumnsMixin, OfferHistoryEntity
from samoc.status.codes import StatusCode
from samoc.status.registry import RETIRED

IGNORED_FIELDS = frozenset({"errMessage", "updated_by"})

CREATED = "created"
UPDATED = "updated"
RETIRED_ACTION = "retired"


def draft_changes(previous: dict[str, Any] | None, current: dict[str, Any] | None) -> dict[str, tuple[Any, Any]]:
    """Fields whose values differ between two drafts, as ``{field: (old, new)}``."""
    previous = previous or {}
    current = current or {}
    changes: dict[str, tuple[Any, Any]] = {}
    for key in previous.keys() | current.keys():
        if key in IGNORED_FIELDS:
            continue
        if previous.get(key) != current.get(key):
            changes[key] = (previous.get(key), current.get(key))
    return changes


def should_append(previous: OfferHistoryEntity | None, offer: OfferColumnsMixin) -> bool:
    """Append on first record, on draft changes, on promotion to PROD and on retirement."""
    if previous is None:
        return True
    if draft_changes(previous.draft_data, offer.draft_data):
        return True
    promoted = previous.status_id >= StatusCode.STG and previous.status_id != StatusCode.PROD
    if promoted and offer.status_id == StatusCode.PROD:
        return True
    return offer.status_id in RETIRED
