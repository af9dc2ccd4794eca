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
"""HTTP service client with retry and error translation.

Every non-2xx response and every transport failure becomes a
:class:`~samoc.kernel.exceptions.RemoteError` tagged with the client's
origin, so adapters never leak ``httpx`` exceptions into the sagas.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from typing import Any

import httpx

from samoc.core.properties import EndpointProperties
from samoc.kernel.exceptions import ErrorOrigin, RemoteError
from samoc.resilience.retry import RetryPolicy
from samoc.status.codes import Env


class ServiceClient:
    """Thin wrapper over ``httpx.AsyncClient`` for one collaborator in one environment.

    Built with a fluent builder::

        client = (ServiceClient.rest("billing", ErrorOrigin.BILLING)
            .base_url("http://billing.stg")
            .timeout(timedelta(seconds=10))
            .bearer_token(token)
            .build())

        coupon = await client.get_json("/coupons/SUMMER")

    A retry policy set on the builder applies to GET requests only;
    mutating calls fail fast.
    """

    def __init__(
        self,
        name: str,
        origin: ErrorOrigin,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.name = name
        self.origin = origin
        self._client = http_client
        self._retry = retry_policy

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        if self._retry is not None:
            return await self._retry.execute(self._request, "GET", path, **kwargs)
        return await self._request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("DELETE", path, **kwargs)

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        return (await self.get(path, **kwargs)).json()

    async def find_json(self, path: str, **kwargs: Any) -> Any | None:
        """GET that maps 404 to ``None``."""
        try:
            return await self.get_json(path, **kwargs)
        except RemoteError as exc:
            if exc.status_code == 404:
                return None
            raise

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteError(
                self.origin,
                f"{self.name}: {method} {path} failed with {exc.response.status_code}: {_detail(exc.response)}",
                status_code=exc.response.status_code,
                context={"body": _body(exc.response)},
            ) from exc
        except httpx.TransportError as exc:
            raise RemoteError(self.origin, f"{self.name}: {method} {path} failed: {exc}") from exc
        return response

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def rest(name: str, origin: ErrorOrigin) -> ServiceClientBuilder:
        return ServiceClientBuilder(name, origin)


class ServiceClientBuilder:
    """Fluent builder for ServiceClient."""

    def __init__(self, name: str, origin: ErrorOrigin) -> None:
        self._name = name
        self._origin = origin
        self._base_url: str = ""
        self._timeout: timedelta = timedelta(seconds=30)
        self._retry: RetryPolicy | None = None
        self._headers: dict[str, str] = {}
        self._transport: httpx.AsyncBaseTransport | None = None

    def base_url(self, url: str) -> ServiceClientBuilder:
        self._base_url = url
        return self

    def timeout(self, timeout: timedelta) -> ServiceClientBuilder:
        self._timeout = timeout
        return self

    def retry(
        self,
        max_attempts: int = 3,
        base_delay: timedelta = timedelta(seconds=1),
    ) -> ServiceClientBuilder:
        """Retry GETs that fail with a transport error or a 5xx."""
        self._retry = RetryPolicy(
            max_attempts=max_attempts,
            base_delay=base_delay,
            retry_on=(RemoteError,),
            should_retry=_is_retryable,
            name=f"{self._name} read",
        )
        return self

    def header(self, name: str, value: str) -> ServiceClientBuilder:
        self._headers[name] = value
        return self

    def bearer_token(self, token: str | None) -> ServiceClientBuilder:
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        return self

    def transport(self, transport: httpx.AsyncBaseTransport) -> ServiceClientBuilder:
        """Swap the network transport (``httpx.MockTransport`` in tests)."""
        self._transport = transport
        return self

    def build(self) -> ServiceClient:
        http_client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout.total_seconds(),
            headers=self._headers,
            transport=self._transport,
        )
        return ServiceClient(self._name, self._origin, http_client, self._retry)


class EnvClients:
    """One :class:`ServiceClient` per environment for a collaborator."""

    def __init__(self, clients: Mapping[Env, ServiceClient]) -> None:
        self._clients = dict(clients)

    def __getitem__(self, env: Env) -> ServiceClient:
        try:
            return self._clients[env]
        except KeyError:
            raise ValueError(f"No endpoint configured for {env.label}") from None

    @classmethod
    def from_properties(
        cls,
        name: str,
        origin: ErrorOrigin,
        endpoint: EndpointProperties,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_attempts: int = 3,
    ) -> EnvClients:
        clients: dict[Env, ServiceClient] = {}
        for env in (Env.STG, Env.PROD):
            builder = (
                ServiceClient.rest(f"{name} {env.label}", origin)
                .base_url(endpoint.url_for(env.value))
                .timeout(timedelta(seconds=endpoint.timeout_seconds))
                .bearer_token(endpoint.token)
                .retry(max_attempts=retry_attempts, base_delay=timedelta(milliseconds=200))
            )
            if transport is not None:
                builder = builder.transport(transport)
            clients[env] = builder.build()
        return cls(clients)

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()


class RestAdapter:
    """Base for the port adapters: one :class:`EnvClients` per collaborator."""

    def __init__(self, clients: EnvClients) -> None:
        self._clients = clients

    async def close(self) -> None:
        await self._clients.close()


def _is_retryable(exc: BaseException) -> bool:
    status = getattr(exc, "status_code", None)
    return status is None or status >= 500


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _detail(response: httpx.Response) -> str:
    body = _body(response)
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body) or response.reason_phrase
