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
"""Tests for rule extraction, list naming and country rule application."""

from __future__ import annotations

import pytest

from samoc.eligibility.rules import (
    apply_country_rules,
    base_list_name,
    build_lists,
    extract_rules,
    is_empty_condition,
    list_name,
    rule_name,
    state_data,
)
from samoc.kernel.exceptions import PolicyViolation

US = {
    "country": "US",
    "retentionOffersLists": [{"name": "Legacy list", "offerIds": ["OLD"]}],
    "userEligibility": [
        {
            "conditions": {},
            "offers": {"primaryOffersLists": [{"listName": "Legacy list", "weight": 100}], "secondaryOffersLists": []},
        }
    ],
}

LOYAL = {
    "name": "Loyal",
    "planLengthInMonths": 12,
    "primaryLists": [{"name": "Stay", "weight": 60, "offers": ["STAY_US"]}],
    "secondaryLists": [],
}


class TestNames:
    def test_list_name(self):
        assert list_name("SAMOC Loyal Primary: Stay", 0) == "Stay"
        assert list_name("Legacy list", 0) == "List"
        assert list_name("Legacy list", 2) == "List 2"

    @pytest.mark.parametrize(
        ("full_name", "is_default", "index", "expected"),
        [
            ("SAMOC Loyal Primary: Stay", False, 0, "Loyal"),
            ("samoc Loyal secondary: Stay", False, 0, "Loyal"),
            ("SAMOC Loyal Primary 50%: Stay", False, 0, "Loyal"),
            ("SAMOC Default Primary: Stay", False, 2, "Criteria 3"),
            ("SAMOC Default Primary: Stay", True, 0, "Default"),
            ("Legacy list", True, 0, "Default"),
            ("Legacy list", False, 1, "Criteria 2 (Legacy list)"),
        ],
    )
    def test_rule_name(self, full_name, is_default, index, expected):
        assert rule_name(full_name, is_default, index) == expected

    def test_base_list_name(self):
        assert base_list_name("Loyal", 0, "Primary") == "SAMOC Loyal Primary"
        assert base_list_name("Loyal", 2, "Secondary") == "SAMOC Loyal 2 Secondary"

    def test_empty_condition(self):
        assert is_empty_condition({})
        assert is_empty_condition({"planLengthInMonths": 0, "activeCoupons": []})
        assert not is_empty_condition({"isInFreeTrial": False})


class TestExtract:
    def test_state_data_requires_lists_and_eligibility(self):
        assert state_data(US) == US
        assert state_data({"country": "GB", "retentionOffersLists": []}) is None
        assert state_data(None) is None

    def test_extract_rules(self):
        (rule,) = extract_rules(US)
        assert rule == {
            "name": "Default",
            "countries": ["US"],
            "primaryLists": [{"name": "List", "weight": 100, "offers": ["OLD"]}],
            "secondaryLists": [],
            "exclusiveOfferOverrides": None,
        }

    def test_extract_incomplete_country(self):
        assert extract_rules({"country": "GB"}) is None


class TestBuildLists:
    def test_weights_are_topped_up_with_empty_list(self):
        lists = build_lists("Loyal", 0, "Primary", LOYAL["primaryLists"], set())

        assert lists.lists == (
            {"name": "SAMOC Loyal Primary: Stay", "offerIds": ["STAY_US"]},
            {"name": "SAMOC Loyal Primary: Empty", "offerIds": []},
        )
        assert lists.refs == (
            {"listName": "SAMOC Loyal Primary: Stay", "weight": 60},
            {"listName": "SAMOC Loyal Primary: Empty", "weight": 40},
        )

    def test_duplicate_short_names_are_numbered(self):
        lists = build_lists(
            "R",
            0,
            "Primary",
            [{"name": "A", "weight": 50, "offers": ["X"]}, {"name": "A", "weight": 50, "offers": ["Y"]}],
            set(),
        )
        assert [lst["name"] for lst in lists.lists] == ["SAMOC R Primary: A", "SAMOC R Primary: A 1"]

    def test_lists_without_offers_or_weight_are_dropped(self):
        dropped = [{"name": "A", "weight": 0, "offers": ["X"]}, {"name": "B", "weight": 30}]
        lists = build_lists("R", 0, "Primary", dropped, set())
        assert lists.refs == ({"listName": "SAMOC R Primary: Empty", "weight": 100},)

    def test_overweight_is_rejected(self):
        heavy = [{"name": "A", "weight": 70, "offers": ["X"]}, {"name": "B", "weight": 40, "offers": ["Y"]}]
        with pytest.raises(PolicyViolation, match="total list weight exceeds 100%"):
            build_lists("R", 0, "Primary", heavy, set())

    def test_taken_name_returns_none(self):
        assert build_lists("R", 0, "Primary", [], {"SAMOC R Primary: Empty"}) is None


class TestApplyCountryRules:
    def test_rebuilds_eligibility_and_keeps_foreign_lists(self):
        updated = apply_country_rules(US, [LOYAL])

        names = [lst["name"] for lst in updated["retentionOffersLists"]]
        assert names == [
            "SAMOC Loyal Primary: Stay",
            "SAMOC Loyal Primary: Empty",
            "SAMOC Loyal Secondary: Empty",
            "Legacy list",
        ]
        (cond,) = updated["userEligibility"]
        assert cond["conditions"]["planLengthInMonths"] == 12
        assert cond["offers"]["secondaryOffersLists"] == [{"listName": "SAMOC Loyal Secondary: Empty", "weight": 100}]
        assert US["userEligibility"][0]["conditions"] == {}

    def test_same_rule_name_twice_gets_indexed_lists(self):
        updated = apply_country_rules(US, [LOYAL, LOYAL])
        refs = [c["offers"]["primaryOffersLists"][0]["listName"] for c in updated["userEligibility"]]
        assert refs == ["SAMOC Loyal Primary: Stay", "SAMOC Loyal 1 Primary: Stay"]

    def test_previous_samoc_lists_are_replaced(self):
        first = apply_country_rules(US, [LOYAL])
        renamed = {**LOYAL, "name": "Faithful"}

        second = apply_country_rules(first, [renamed])

        assert not any(lst["name"].startswith("SAMOC Loyal") for lst in second["retentionOffersLists"])

    def test_incomplete_country_is_returned_unchanged(self):
        incomplete = {"country": "GB", "retentionOffersLists": []}
        assert apply_country_rules(incomplete, [LOYAL]) == incomplete
        assert apply_country_rules(None, [LOYAL]) is None
