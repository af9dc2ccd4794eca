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
"""Tests for the eligibility rule merger."""

from __future__ import annotations

from types import SimpleNamespace

from samoc.eligibility.merger import MergedRule, merge_rules, offer_campaigns, rule_key, sort_rules


# ── Helpers ──────────────────────────────────────────────────


def _rule(country: str, name: str, months: int | None = None, offers: tuple[str, ...] = ("RET",)) -> dict:
    rule = {
        "name": name,
        "countries": [country],
        "primaryLists": [{"name": "List", "weight": 100, "offers": list(offers)}],
        "secondaryLists": [],
    }
    if months is not None:
        rule["planLengthInMonths"] = months
    return rule


def _names(result: list[dict]) -> list[tuple[str, str, int]]:
    return [(r["countries"][0], r["name"], r["suffix"]) for r in result]


# ── Keys ─────────────────────────────────────────────────────


class TestRuleKey:
    def test_offer_codes_are_replaced_by_campaign(self):
        campaigns = {"US": {"STAY_US": "stay"}, "GB": {"STAY_GB": "stay"}}
        us = _rule("US", "Loyal", 12, ("STAY_US",))
        gb = _rule("GB", "Loyal", 12, ("STAY_GB",))
        assert rule_key(us, campaigns) == rule_key(gb, campaigns)

    def test_condition_values_are_rendered(self):
        rule = {"countries": ["US"], "planLengthInMonths": 12.0, "isInFreeTrial": False, "activeCoupons": ["A", "B"]}
        assert rule_key(rule, {}) == "12/false/A,B/undefined///"

    def test_missing_and_null_differ(self):
        assert rule_key({"countries": ["US"], "isInFreeTrial": None}, {}) != rule_key({"countries": ["US"]}, {})

    def test_offer_campaigns_maps_upgrade_codes(self):
        rows = [
            SimpleNamespace(store_code="store-us", offer_code="STAY_US", campaign="stay", upgrade_offer_code="UP_US"),
            SimpleNamespace(store_code="store-gb", offer_code="STAY_GB", campaign="stay", upgrade_offer_code=None),
        ]
        assert offer_campaigns(rows) == {
            "US": {"STAY_US": "stay", "UP_US": "stay_upgrade"},
            "GB": {"STAY_GB": "stay"},
        }


# ── Merge ────────────────────────────────────────────────────


class TestMergeRules:
    def test_identical_queues_share_every_placement(self):
        assert merge_rules([["A", "B"], ["A", "B"]]) == (MergedRule("A", (0, 1)), MergedRule("B", (0, 1)))

    def test_unique_tail_is_placed_alone(self):
        assert merge_rules([["A"], ["A", "C"]]) == (MergedRule("A", (0, 1)), MergedRule("C", (1,)))

    def test_crossed_order_splits_a_key(self):
        assert merge_rules([["B", "A"], ["A", "B"]]) == (
            MergedRule("A", (1,)),
            MergedRule("B", (0, 1)),
            MergedRule("A", (0,)),
        )

    def test_every_country_order_is_preserved(self):
        queues = [["A", "B", "C"], ["C", "A"], ["B", "D", "C"]]
        placements = merge_rules(queues)
        for idx, queue in enumerate(queues):
            assert [p.key for p in placements if idx in p.countries] == queue

    def test_input_is_not_mutated(self):
        queues = [["A", "B"], ["B"]]
        merge_rules(queues)
        assert queues == [["A", "B"], ["B"]]

    def test_empty(self):
        assert merge_rules([]) == ()
        assert merge_rules([[], []]) == ()


class TestSortRules:
    def test_shared_rules_are_grouped_without_suffix(self):
        rules = [
            _rule("US", "Annual", 12),
            _rule("US", "Default"),
            _rule("GB", "Annual", 12),
            _rule("GB", "Default"),
        ]

        assert _names(sort_rules(rules, {})) == [
            ("GB", "Annual", 0),
            ("US", "Annual", 0),
            ("GB", "Default", 0),
            ("US", "Default", 0),
        ]

    def test_unique_rule_gets_no_suffix_increment(self):
        rules = [_rule("US", "Annual", 12), _rule("US", "Monthly", 1), _rule("GB", "Annual", 12)]

        assert _names(sort_rules(rules, {})) == [
            ("GB", "Annual", 0),
            ("US", "Annual", 0),
            ("US", "Monthly", 0),
        ]

    def test_repeated_key_in_one_country_keeps_last_suffix(self):
        rules = [_rule("US", "First", 12), _rule("US", "Monthly", 1), _rule("US", "Again", 12)]

        assert _names(sort_rules(rules, {})) == [
            ("US", "Again", 1),
            ("US", "Monthly", 0),
            ("US", "Again", 1),
        ]

    def test_split_rule_gets_new_suffix(self):
        rules = [
            _rule("US", "Annual", 12),
            _rule("US", "Monthly", 1),
            _rule("GB", "Monthly", 1),
            _rule("GB", "Annual", 12),
        ]

        assert _names(sort_rules(rules, {})) == [
            ("US", "Annual", 0),
            ("GB", "Monthly", 0),
            ("US", "Monthly", 0),
            ("GB", "Annual", 1),
        ]
