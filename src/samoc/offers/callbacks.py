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
"""Routes build-oracle results back to the offer that triggered the build."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from samoc.kernel.exceptions import ResourceNotFoundException
from samoc.offers.saga import OfferSaga
from samoc.saga.result import OfferSagaOutcome

logger = logging.getLogger(__name__)


class BuildCallbackHandler:
    """Finds the offer owning a build key across every offer table.

    Build keys are unique across tables, so the first saga that recognises
    the key applies the result.
    """

    def __init__(self, sagas: Sequence[OfferSaga]) -> None:
        self._sagas = list(sagas)

    async def handle(self, build_key: str, succeeded: bool, updated_by: str | None = None) -> OfferSagaOutcome:
        for saga in self._sagas:
            outcome = await saga.complete_validation(build_key, succeeded, updated_by)
            if outcome is not None:
                return outcome
        logger.warning("Build result for unknown key %s ignored", build_key)
        raise ResourceNotFoundException(f"No offer is waiting for build {build_key}", context={"build_key": build_key})
