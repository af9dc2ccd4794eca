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
"""Consolidates per-country eligibility rules into one ordered list.

Each country holds an ordered queue of rule keys. The merge repeatedly
promotes the tail rule of the country whose promotion collides with the
fewest other countries, building the result from the back. Rule naming
downstream depends on the exact grouping, so the tie-breaks below are part
of the contract:

* a collision is another country holding the key (first occurrence) at a
  position other than its own tail, the promoting country included;
* among equal collision counts the first country in queue order wins;
* a promoted key folds into the first placement with the same key only
  when the promoting country's own first placement lies after it;
  otherwise a new placement is prepended and every country whose tail
  equals the key is popped into it.

All intermediate structures are tuples; queues are never mutated, only the
per-country ``heads`` index advances.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

OfferCampaigns = Mapping[str, Mapping[str, str]]


@dataclass(frozen=True)
class MergedRule:
    """One placement: a rule key and the countries (queue indexes) sharing it, in join order."""

    key: str
    countries: tuple[int, ...]

    def with_country(self, country: int) -> MergedRule:
        if country in self.countries:
            return self
        return replace(self, countries=(*self.countries, country))


def _js(value: Any) -> str:
    """Render a value for a rule key; lists are comma-joined."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else _js(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _field(rule: Mapping[str, Any], name: str) -> str:
    return _js(rule[name]) if name in rule else "undefined"


def _lists_key(lists: Iterable[Mapping[str, Any]] | None, mapping: Mapping[str, str]) -> str:
    parts = []
    for lst in lists or ():
        offers = [mapping.get(offer, offer) for offer in lst.get("offers") or ()]
        parts.append(f"{_js(lst.get('weight'))}/{'/'.join(offers)}")
    return "".join(parts)


def rule_key(rule: Mapping[str, Any], offer_campaigns: OfferCampaigns) -> str:
    """Serialise *rule* so that equivalent rules of different countries compare equal.

    Offer codes are replaced by their campaign id (per the rule's first
    country) since the same campaign uses a different offer code per store.
    """
    countries = rule.get("countries") or [""]
    mapping = offer_campaigns.get(countries[0], {})
    overrides = "".join(
        f"{o.get('country')}/{o.get('state') or ''}/{o.get('offerId')}"
        for o in rule.get("exclusiveOfferOverrides") or ()
    )
    return "/".join(
        [
            _field(rule, "planLengthInMonths"),
            _field(rule, "isInFreeTrial"),
            _field(rule, "activeCoupons"),
            _field(rule, "inactiveCoupons"),
            _lists_key(rule.get("primaryLists"), mapping),
            _lists_key(rule.get("secondaryLists"), mapping),
            overrides,
        ]
    )


def offer_campaigns(offers: Iterable[Any]) -> dict[str, dict[str, str]]:
    """``{COUNTRY: {offer_code: campaign}}`` from retention offer rows.

    Upgrade offer codes map to ``<campaign>_upgrade``.
    """
    result: dict[str, dict[str, str]] = {}
    for offer in offers:
        mapping = result.setdefault(offer.store_code[-2:].upper(), {})
        mapping[offer.offer_code] = offer.campaign
        if offer.upgrade_offer_code:
            mapping[offer.upgrade_offer_code] = f"{offer.campaign}_upgrade"
    return result


def _collisions(key: str, queues: tuple[tuple[str, ...], ...], heads: tuple[int, ...]) -> int:
    count = 0
    for queue, head in zip(queues, heads, strict=True):
        remaining = queue[:head]
        if key in remaining and remaining.index(key) != head - 1:
            count += 1
    return count


def _best_country(queues: tuple[tuple[str, ...], ...], heads: tuple[int, ...]) -> int | None:
    best: int | None = None
    best_collisions = 0
    for idx, head in enumerate(heads):
        if head == 0:
            continue
        collisions = _collisions(queues[idx][head - 1], queues, heads)
        if best is None or best_collisions > collisions:
            best, best_collisions = idx, collisions
    return best


def _first(placements: tuple[MergedRule, ...], predicate: Callable[[MergedRule], bool]) -> int | None:
    return next((i for i, placement in enumerate(placements) if predicate(placement)), None)


def _pop(heads: tuple[int, ...], idx: int) -> tuple[int, ...]:
    return (*heads[:idx], heads[idx] - 1, *heads[idx + 1 :])


def merge_rules(country_queues: Sequence[Sequence[str]]) -> tuple[MergedRule, ...]:
    """Merge per-country rule-key queues; returns placements front to back."""
    queues = tuple(tuple(queue) for queue in country_queues)
    heads = tuple(len(queue) for queue in queues)
    placements: tuple[MergedRule, ...] = ()

    while (best := _best_country(queues, heads)) is not None:
        key = queues[best][heads[best] - 1]
        heads = _pop(heads, best)

        merge_at = _first(placements, lambda p: p.key == key)
        if merge_at is not None:
            own = _first(placements, lambda p: best in p.countries)
            if own is not None and own > merge_at:
                merged = placements[merge_at].with_country(best)
                placements = (*placements[:merge_at], merged, *placements[merge_at + 1 :])
                continue

        joined = MergedRule(key, (best,))
        for idx in range(len(queues)):
            if heads[idx] > 0 and queues[idx][heads[idx] - 1] == key:
                heads = _pop(heads, idx)
                joined = joined.with_country(idx)
        placements = (joined, *placements)

    return placements


def sort_rules(rules: Sequence[Mapping[str, Any]], campaigns: OfferCampaigns) -> list[dict[str, Any]]:
    """Order *rules* of all countries into one list, each tagged with ``suffix``.

    Countries are queued in first-seen order and merged in reverse of it.
    ``suffix`` is a running counter bumped whenever a key is placed again,
    so rules that could not be merged stay distinguishable.
    """
    queues: dict[str, list[str]] = {}
    by_key: dict[str, dict[str, Mapping[str, Any]]] = {}
    for rule in rules:
        key = rule_key(rule, campaigns)
        for country in rule.get("countries") or ():
            queues.setdefault(country, []).append(key)
            by_key.setdefault(country, {})[key] = rule

    names = list(reversed(list(queues)))
    merged = merge_rules([queues[name] for name in names])

    seen: set[str] = set()
    suffix = 0
    placed: list[Mapping[str, Any]] = []
    suffixes: dict[int, int] = {}
    for placement in merged:
        if placement.key in seen:
            suffix += 1
        else:
            seen.add(placement.key)
        for idx in placement.countries:
            rule = by_key[names[idx]][placement.key]
            placed.append(rule)
            # a rule placed twice keeps the suffix of its last placement
            suffixes[id(rule)] = suffix
    return [{**rule, "suffix": suffixes[id(rule)]} for rule in placed]
