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
"""Conversion between a country's targeting entry and editable rules.

A country entry in the retention configuration set looks like::

    {
        "country": "US",
        "retentionOffersLists": [{"name": ..., "offerIds": [...]}],
        "userEligibility": [
            {
                "conditions": {...},
                "offers": {
                    "primaryOffersLists": [{"listName": ..., "weight": 60}],
                    "secondaryOffersLists": [...],
                },
                "exclusiveOfferOverrides": [...] | None,
            }
        ],
    }

Rules are the flattened form used by the merger and by callers: the
conditions plus ``name``, ``countries``, ``primaryLists`` and
``secondaryLists`` (``{"name", "weight", "offers"}``).
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from samoc.kernel.exceptions import PolicyViolation

CONDITION_FIELDS = ("planLengthInMonths", "isInFreeTrial", "activeCoupons", "inactiveCoupons")
LIST_PREFIX = "SAMOC"
DEFAULT_RULE = "Default"

_WEIGHT_TAIL = re.compile(r"([0-9]+%[-_ ]*)?:.*$", re.IGNORECASE)
_PRIMARY_TAIL = re.compile(r"[-_ ]*primary[-_ ]*$", re.IGNORECASE)
_SECONDARY_TAIL = re.compile(r"[-_ ]*secondary[-_ ]*$", re.IGNORECASE)
_SAMOC_HEAD = re.compile(r"^samoc[-_ ]*", re.IGNORECASE)


def state_data(country: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """The part of a country entry that filter snapshots keep, or ``None`` if incomplete."""
    if not country or not country.get("retentionOffersLists") or not country.get("userEligibility"):
        return None
    return {
        "country": country["country"],
        "retentionOffersLists": country["retentionOffersLists"],
        "userEligibility": country["userEligibility"],
    }


def is_empty_condition(conditions: Mapping[str, Any]) -> bool:
    return (
        not conditions.get("planLengthInMonths")
        and conditions.get("isInFreeTrial") is None
        and not conditions.get("activeCoupons")
        and not conditions.get("inactiveCoupons")
    )


def list_name(full_name: str, index: int) -> str:
    """Short list name: the part after ``":"``, else ``List``/``List <n>``."""
    parts = re.split(r": *", full_name)
    if len(parts) > 1:
        return parts[-1]
    return f"List {index}" if index else "List"


def rule_name(full_list_name: str, is_default: bool, index: int) -> str:
    """Recover a rule name from the name of its first offer list.

    Lists written by this tool are named ``"SAMOC <rule> <Primary|Secondary>: <list>"``;
    anything else is named after its position.
    """
    lowered = full_list_name.lower()
    if lowered.startswith(LIST_PREFIX.lower()) and ("primary" in lowered or "secondary" in lowered):
        name = _WEIGHT_TAIL.sub("", full_list_name)
        name = _PRIMARY_TAIL.sub("", name)
        name = _SECONDARY_TAIL.sub("", name)
        name = _SAMOC_HEAD.sub("", name).strip()
        if name == DEFAULT_RULE and not is_default:
            name = f"Criteria {index + 1}"
        return name
    if is_default:
        return DEFAULT_RULE
    return f"Criteria {index + 1} ({full_list_name})"


def _rule_lists(
    refs: Sequence[Mapping[str, Any]],
    lists_by_name: Mapping[str, list[str]],
) -> tuple[list[dict[str, Any]], str | None]:
    lists = [
        {
            "name": list_name(ref["listName"], idx),
            "weight": ref.get("weight", 0),
            "offers": list(lists_by_name.get(ref["listName"]) or []),
        }
        for idx, ref in enumerate(refs)
    ]
    first = refs[0]["listName"] if refs else None
    return [lst for lst in lists if lst["offers"]], first


def extract_rules(country: Mapping[str, Any] | None) -> list[dict[str, Any]] | None:
    """Flatten a country entry into rules; ``None`` when the entry is incomplete."""
    if state_data(country) is None:
        return None
    lists_by_name = {lst["name"]: lst.get("offerIds") or [] for lst in country["retentionOffersLists"]}
    rules: list[dict[str, Any]] = []
    for index, cond in enumerate(country["userEligibility"]):
        offers = cond.get("offers") or {}
        primary, primary_name = _rule_lists(offers.get("primaryOffersLists") or [], lists_by_name)
        secondary, secondary_name = _rule_lists(offers.get("secondaryOffersLists") or [], lists_by_name)
        conditions = cond.get("conditions") or {}
        rule: dict[str, Any] = {
            key: copy.deepcopy(conditions[key])
            for key in CONDITION_FIELDS
            if key in conditions and not _is_blank(key, conditions[key])
        }
        rule.update(
            name=rule_name(primary_name or secondary_name or "", is_empty_condition(conditions), index),
            countries=[country["country"]],
            primaryLists=primary,
            secondaryLists=secondary,
            exclusiveOfferOverrides=cond.get("exclusiveOfferOverrides") or None,
        )
        rules.append(rule)
    return rules


def _is_blank(key: str, value: Any) -> bool:
    if key == "isInFreeTrial":
        return value is None
    return not value


@dataclass(frozen=True)
class ListSet:
    """Offer lists generated for one side (primary or secondary) of a rule."""

    lists: tuple[dict[str, Any], ...]
    refs: tuple[dict[str, Any], ...]


def base_list_name(name: str, index: int, side: str) -> str:
    return f"{LIST_PREFIX} {name}{f' {index}' if index else ''} {side}"


def build_lists(
    name: str,
    index: int,
    side: str,
    lists: Sequence[Mapping[str, Any]],
    taken: Mapping[str, Any] | set[str],
) -> ListSet | None:
    """Name the rule's lists; ``None`` when a generated name is already *taken*.

    Lists without offers or weight are dropped; any weight left below 100 goes
    to an ``Empty`` list so the weights always add up.
    """
    base = base_list_name(name, index, side)
    used: set[str] = set()
    non_empty = [lst for lst in lists if lst.get("offers") and (lst.get("weight") or 0) > 0]
    total = sum(lst["weight"] for lst in non_empty)
    if total > 100:
        raise PolicyViolation("total list weight exceeds 100%", code="LIST_WEIGHT")

    generated: list[dict[str, Any]] = []
    refs: list[dict[str, Any]] = []
    counter = 1
    for lst in non_empty:
        short = lst.get("name") or ""
        while short in used:
            short = f"{lst['name']} {counter}" if lst.get("name") else f"{counter}"
            counter += 1
        used.add(short)
        full = f"{base}: {short}"
        if full in taken:
            return None
        generated.append({"name": full, "offerIds": list(lst["offers"])})
        refs.append({"listName": full, "weight": lst["weight"]})

    if total < 100:
        short = "Empty"
        empty_counter = 1
        while short in used:
            short = f"Empty {empty_counter}"
            empty_counter += 1
        full = f"{base}: {short}"
        if full in taken:
            return None
        generated.append({"name": full, "offerIds": []})
        refs.append({"listName": full, "weight": 100 - total})
    return ListSet(tuple(generated), tuple(refs))


def apply_country_rules(
    country: Mapping[str, Any] | None,
    rules: Sequence[Mapping[str, Any]],
) -> dict[str, Any] | None:
    """Return a copy of *country* whose eligibility is rebuilt from *rules*.

    Generated lists replace earlier ``SAMOC`` lists; lists created by other
    tools are kept. An incomplete country entry is returned unchanged.
    """
    lists_by_name: dict[str, dict[str, Any]] = {}
    eligibility: list[dict[str, Any]] = []
    for rule in rules:
        name = rule.get("name") or DEFAULT_RULE
        index = 0
        while True:
            primary = build_lists(name, index, "Primary", rule.get("primaryLists") or [], lists_by_name)
            secondary = (
                build_lists(name, index, "Secondary", rule.get("secondaryLists") or [], lists_by_name)
                if primary is not None
                else None
            )
            if primary is not None and secondary is not None:
                break
            index += 1
        for lst in (*primary.lists, *secondary.lists):
            lists_by_name[lst["name"]] = lst
        eligibility.append(
            {
                "conditions": {key: rule.get(key) for key in CONDITION_FIELDS},
                "offers": {
                    "primaryOffersLists": list(primary.refs),
                    "secondaryOffersLists": list(secondary.refs),
                },
                "exclusiveOfferOverrides": rule.get("exclusiveOfferOverrides") or None,
            }
        )

    if state_data(country) is None:
        return dict(country) if country else None
    kept = [
        lst
        for lst in country["retentionOffersLists"]
        if lst["name"] not in lists_by_name and not lst["name"].startswith(LIST_PREFIX)
    ]
    updated = copy.deepcopy(dict(country))
    updated["retentionOffersLists"] = [*lists_by_name.values(), *copy.deepcopy(kept)]
    updated["userEligibility"] = eligibility
    return updated
