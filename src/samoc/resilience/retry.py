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
"""Bounded retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Retry an async callable with exponential backoff.

    Only exceptions in *retry_on* (and accepted by *should_retry*, when given)
    are retried; anything else propagates on the first attempt.

    Args:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Base delay between retries (doubled each attempt).
        retry_on: Tuple of exception types to retry on. Defaults to all.
        should_retry: Optional predicate for finer selection.
        name: Label used in retry log lines.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: timedelta = timedelta(seconds=1),
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        should_retry: Callable[[BaseException], bool] | None = None,
        name: str = "operation",
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._base_delay = base_delay.total_seconds()
        self._retry_on = retry_on
        self._should_retry = should_retry
        self._name = name

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Execute *func* with retry logic."""
        for attempt in range(self._max_attempts):
            try:
                return await func(*args, **kwargs)
            except self._retry_on as exc:
                if self._should_retry is not None and not self._should_retry(exc):
                    raise
                retries_left = self._max_attempts - attempt - 1
                if retries_left == 0:
                    raise
                logger.warning("%s failed (%s retries left): %s", self._name, retries_left, exc)
                await asyncio.sleep(self._base_delay * (2**attempt))
        raise AssertionError("unreachable")  # pragma: no cover
