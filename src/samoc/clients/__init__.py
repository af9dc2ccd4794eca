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
"""HTTP adapters for the collaborator ports."""

from __future__ import annotations

import httpx

from samoc.clients.billing import BillingClient
from samoc.clients.build import BuildClient
from samoc.clients.cache import AuthCacheClient, CacheClient
from samoc.clients.content import ContentClient
from samoc.clients.http import EnvClients, RestAdapter, ServiceClient, ServiceClientBuilder
from samoc.clients.targeting import TargetingClient
from samoc.core.properties import ServiceProperties
from samoc.kernel.exceptions import ErrorOrigin
from samoc.ports.outbound import Collaborators


def build_collaborators(
    services: ServiceProperties,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Collaborators:
    """Wire every HTTP adapter from the ``samoc.services`` configuration."""

    def clients(name: str, origin: ErrorOrigin) -> EnvClients:
        return EnvClients.from_properties(name, origin, getattr(services, name), transport)

    return Collaborators(
        billing=BillingClient(clients("billing", ErrorOrigin.BILLING)),
        content=ContentClient(clients("content", ErrorOrigin.CONTENT)),
        targeting=TargetingClient(clients("targeting", ErrorOrigin.TARGETING)),
        cache=CacheClient(clients("cache", ErrorOrigin.CACHE)),
        auth_cache=AuthCacheClient(clients("auth_cache", ErrorOrigin.AUTH_CACHE)),
        build=BuildClient(clients("build", ErrorOrigin.BUILD)),
    )


async def close_collaborators(collaborators: Collaborators) -> None:
    """Close the HTTP clients behind every adapter built by :func:`build_collaborators`."""
    for adapter in vars(collaborators).values():
        if isinstance(adapter, RestAdapter):
            await adapter.close()


__all__ = [
    "AuthCacheClient",
    "BillingClient",
    "BuildClient",
    "CacheClient",
    "ContentClient",
    "EnvClients",
    "RestAdapter",
    "ServiceClient",
    "ServiceClientBuilder",
    "TargetingClient",
    "build_collaborators",
    "close_collaborators",
]
