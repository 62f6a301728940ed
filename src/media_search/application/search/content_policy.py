"""
Content Policy - Session decision and result filtering.

evaluate_policy() decides once per session whether filtering applies.
filter_results() applies that decision to any list of classified results.
Both are pure so the batch and streaming paths cannot drift apart.

Decision order (first applicable rule wins):
    a. filtering disabled globally          → not applied
    b. principal is the owner               → not applied
    c. any of the principal's groups enables filtering → applied
    d. otherwise                            → not applied
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from media_search.domain.entities import (
    ClassifiedResult,
    PolicyDecision,
    PolicySnapshot,
    Principal,
    normalize_terms,
)

logger = logging.getLogger(__name__)

REASON_GLOBAL_DISABLED = "filtering disabled globally"
REASON_OWNER = "owner exemption"
REASON_GROUP_ENABLED = "group policy enables filtering: {group}"
REASON_GROUP_DISABLED = "no group policy enables filtering"
REASON_NO_GROUPS = "no group tags"


def evaluate_policy(principal: Principal, snapshot: PolicySnapshot) -> PolicyDecision:
    """Compute the session's policy decision."""
    if snapshot.global_filter_disabled:
        return PolicyDecision(applies=False, reason=REASON_GLOBAL_DISABLED)

    if principal.is_owner:
        return PolicyDecision(applies=False, reason=REASON_OWNER)

    if not principal.groups:
        return PolicyDecision(applies=False, reason=REASON_NO_GROUPS)

    for group in sorted(principal.groups):
        if snapshot.group_policies.get(group) is True:
            return PolicyDecision(applies=True, reason=REASON_GROUP_ENABLED.format(group=group))

    return PolicyDecision(applies=False, reason=REASON_GROUP_DISABLED)


def is_blocked(result: ClassifiedResult, blocked_terms: Sequence[str]) -> bool:
    """True if the title or type_name contains any blocked term."""
    title = (result.title or "").lower()
    type_name = (result.type_name or "").lower()
    return any(term in title or term in type_name for term in blocked_terms)


def filter_results(
    results: Iterable[ClassifiedResult],
    decision: PolicyDecision,
    blocked_terms: Iterable[str],
) -> list[ClassifiedResult]:
    """
    Drop blocked results when the decision applies.

    Matching is case-insensitive substring containment, not word-boundary
    aware. Relative order of the survivors is preserved.
    """
    results = list(results)
    if not decision.applies:
        return results

    terms = normalize_terms(blocked_terms)
    if not terms:
        return results

    kept = [result for result in results if not is_blocked(result, terms)]
    removed = len(results) - len(kept)
    if removed:
        logger.debug(f"Content filter removed {removed}/{len(results)} results")
    return kept
