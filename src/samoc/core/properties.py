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
"""Typed configuration sections bound from :class:`~samoc.core.config.Config`."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, Field

from samoc.core.config import config_properties


@config_properties(prefix="samoc.saga")
class SagaProperties(BaseModel):
    """Saga engine switches and retry budgets."""

    disable_rollback: bool = False
    ignore_cache_errors: bool = False
    db_retry_attempts: int = Field(default=3, ge=1)
    db_retry_base_delay_ms: int = Field(default=200, ge=0)
    read_retry_attempts: int = Field(default=3, ge=1)
    read_retry_base_delay_ms: int = Field(default=500, ge=0)
    offers_url: str = ""

    @property
    def db_retry_base_delay(self) -> timedelta:
        return timedelta(milliseconds=self.db_retry_base_delay_ms)

    @property
    def read_retry_base_delay(self) -> timedelta:
        return timedelta(milliseconds=self.read_retry_base_delay_ms)


@config_properties(prefix="samoc.data")
class DataProperties(BaseModel):
    """Offer database connection."""

    url: str = "sqlite+aiosqlite:///samoc.db"
    echo: bool = False
    create_schema: bool = False


class EndpointProperties(BaseModel):
    stg: str = ""
    prod: str = ""
    timeout_seconds: float = 30.0
    token: str | None = None

    def url_for(self, env: str) -> str:
        return self.prod if env == "prod" else self.stg


@config_properties(prefix="samoc.services")
class ServiceProperties(BaseModel):
    """Base URLs of the collaborators, per environment."""

    billing: EndpointProperties = EndpointProperties()
    content: EndpointProperties = EndpointProperties()
    targeting: EndpointProperties = EndpointProperties()
    cache: EndpointProperties = EndpointProperties()
    auth_cache: EndpointProperties = EndpointProperties()
    build: EndpointProperties = EndpointProperties()
