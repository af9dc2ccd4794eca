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
"""Relational persistence: entities, repositories and the retried offer store."""

from samoc.data.entities import (
    OFFER_MODELS,
    Base,
    BaseEntity,
    ExtensionOfferEntity,
    OfferColumnsMixin,
    OfferEntity,
    OfferHistoryEntity,
    RetentionOfferEntity,
    UserEligibilityFilterEntity,
)
from samoc.data.repository import FilterRepository, HistoryRepository, OfferRepository, Repository
from samoc.data.store import OfferStore, db_retry_policy, with_err_message

__all__ = [
    "OFFER_MODELS",
    "Base",
    "BaseEntity",
    "ExtensionOfferEntity",
    "FilterRepository",
    "HistoryRepository",
    "OfferColumnsMixin",
    "OfferEntity",
    "OfferHistoryEntity",
    "OfferRepository",
    "OfferStore",
    "Repository",
    "RetentionOfferEntity",
    "UserEligibilityFilterEntity",
    "db_retry_policy",
    "with_err_message",
]
