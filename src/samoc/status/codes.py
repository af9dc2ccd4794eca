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
"""Closed enumerations shared across the offer lifecycle."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class StatusCode(IntEnum):
    """Offer lifecycle status.

    The numeric values are ordered by promotion tier so that ``>=``
    comparisons can derive the environment an offer lives in.
    """

    DFT = 1
    STG_ERR_CRT = 10
    STG_ERR_UPD = 12
    STG_ERR_DEL = 14
    STG = 20
    STG_VALDN_PEND = 30
    STG_VALDN_FAIL = 33
    STG_VALDN_PASS = 36
    STG_RETD = 40
    STG_RB_FAIL = 45
    STG_FAIL = 47
    APV_PEND = 50
    APV_REJ = 53
    APV_APRVD = 56
    PROD_PEND = 60
    PROD_ERR_PUB = 62
    PROD_ERR_UPD = 64
    PROD_ERR_DEL = 66
    PROD = 70
    PROD_VALDN_PEND = 80
    PROD_VALDN_FAIL = 83
    PROD_VALDN_PASS = 86
    PROD_RETD = 90
    PROD_RB_FAIL = 95
    PROD_FAIL = 97


class Env(StrEnum):
    """Where an offer currently lives: local draft, staged or published."""

    DB = "db"
    STG = "stg"
    PROD = "prod"

    @property
    def label(self) -> str:
        return self.value.upper()


class Operation(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VALIDATE = "validate"


class Outcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    ROLLBACK_FAILURE = "rollback_failure"
    PENDING = "pending"


class OfferType(IntEnum):
    DEFAULT_SIGNUP = 1
    ACQUISITION = 2
    WINBACK = 3
    RETENTION = 4
    EXTENSION = 5


class CodeType(StrEnum):
    SINGLE_CODE = "single_code"
    BULK = "bulk"


class EntryState(StrEnum):
    """Publish state of a content entry."""

    ARCHIVED = "archived"
    PUBLISHED = "published"
    DRAFT = "draft"


class CouponState(StrEnum):
    EXPIRED = "expired"
    REDEEMABLE = "redeemable"


class FilterStatus(IntEnum):
    """Lifecycle of a user eligibility filter."""

    NEW = 0
    STG = 1
    PROD = 2
    DFT = 3
