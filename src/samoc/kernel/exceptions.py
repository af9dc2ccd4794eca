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
"""Exception hierarchy for samoc.

All errors inherit from SamocException and carry an HTTP-like
``status_code`` so that callers can build a response without inspecting the
concrete type.

Categories:
- BusinessException: guard and policy violations, missing resources
- RemoteError: any collaborator failure, tagged by origin
- BusyError / OfflineError: retryable conditions that are never compensated
- CompensationFailure: a rollback call itself failed (terminal)
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


# =============================================================================
# Base Exception
# =============================================================================


class SamocException(Exception):
    """Base exception for all samoc errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "GUARD_CREATE").
        context: Arbitrary key-value pairs for error context and debugging.
        status_code: HTTP-like status used when the error reaches a caller.
    """

    default_status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.context: dict = context if context is not None else {}
        self.status_code = status_code if status_code is not None else self.default_status


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(SamocException):
    """Domain rule violations."""

    default_status = 400


class GuardViolation(BusinessException):
    """The persisted status does not allow the requested operation."""

    default_status = 406


class PolicyViolation(BusinessException):
    """The request breaks a workflow rule (ordering, ownership, concurrency)."""


class ResourceNotFoundException(BusinessException):
    """Requested offer, filter or build does not exist."""

    default_status = 404


# =============================================================================
# Remote Errors
# =============================================================================


class ErrorOrigin(StrEnum):
    """Collaborator that raised a :class:`RemoteError`."""

    BILLING = "billing"
    CONTENT = "content"
    TARGETING = "targeting"
    CACHE = "cache"
    AUTH_CACHE = "auth_cache"
    BUILD = "build"
    DATABASE = "database"


class RemoteError(SamocException):
    """A collaborator call failed.

    One class serves every collaborator; the compensation policy switches
    on :attr:`origin`.
    """

    def __init__(
        self,
        origin: ErrorOrigin | str,
        message: str,
        status_code: int | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, code=f"REMOTE_{str(origin).upper()}", context=context, status_code=status_code)
        self.origin = ErrorOrigin(origin)

    def __repr__(self) -> str:
        return f"RemoteError(origin={self.origin.value!r}, message={self.message!r}, status_code={self.status_code})"


class BusyError(SamocException):
    """Targeting version conflict or build saturation; retry later."""

    default_status = 400


class OfflineError(SamocException):
    """The build oracle is down for maintenance."""

    default_status = 503


# =============================================================================
# Saga Outcome Exceptions
# =============================================================================


class SagaFailure(SamocException):
    """Forward path failed and compensation completed.

    Carries the triggering error as ``cause`` and the status persisted for the
    offer.
    """

    def __init__(self, message: str, cause: Exception, status_id: int | None = None) -> None:
        status_code = getattr(cause, "status_code", None)
        super().__init__(message, code="SAGA_FAILED", status_code=status_code)
        self.cause = cause
        self.status_id = status_id


class CompensationFailure(SamocException):
    """A compensating call threw. Terminal until an operator intervenes."""

    def __init__(
        self,
        message: str,
        cause: Exception,
        original: Exception | None = None,
        status_id: int | None = None,
    ) -> None:
        super().__init__(message, code="ROLLBACK_FAILED")
        self.cause = cause
        self.original = original
        self.status_id = status_id


class CampaignFailure(SamocException):
    """One or more regions of a campaign saga failed.

    ``message`` is the newline-joined list of ``"<REGION>: <error>"`` lines and
    ``status_code`` is taken from the first failing region.
    """

    def __init__(self, errors: list[tuple[str, Exception]], successes: list[str] | None = None) -> None:
        message = "\n".join(f"{region}: {error}" for region, error in errors)
        status_code = getattr(errors[0][1], "status_code", 500) if errors else 500
        super().__init__(message, code="CAMPAIGN_FAILED", status_code=status_code)
        self.errors = errors
        self.successes: list[str] = successes or []

    def region_errors(self) -> dict[str, Any]:
        return {region: str(error) for region, error in self.errors}
