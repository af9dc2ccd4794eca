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
"""Retention eligibility rules: merging, list naming and the filter workflow."""

from samoc.eligibility.merger import MergedRule, merge_rules, offer_campaigns, rule_key, sort_rules
from samoc.eligibility.rules import (
    apply_country_rules,
    build_lists,
    extract_rules,
    is_empty_condition,
    rule_name,
    state_data,
)
from samoc.eligibility.workflow import FilterMode, FilterState, FilterWorkflow, RulesPayload

__all__ = [
    "FilterMode",
    "FilterState",
    "FilterWorkflow",
    "MergedRule",
    "RulesPayload",
    "apply_country_rules",
    "build_lists",
    "extract_rules",
    "is_empty_condition",
    "merge_rules",
    "offer_campaigns",
    "rule_key",
    "rule_name",
    "sort_rules",
    "state_data",
]
