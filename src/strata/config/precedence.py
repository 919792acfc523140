"""Precedence-based merging of configuration sources.

Sources are ordered by an *effective priority*: their base priority plus a boost
depending on their type and on the active :class:`.PrecedencePolicy`. They are then
deep-merged from lowest to highest priority, so that the highest priority source wins
on any leaf key.

Under the ``merge`` policy no boost is applied and sources are merged in the order they
are given.
"""

from __future__ import annotations

import logging
import typing as t
from collections.abc import Mapping, Sequence
from copy import deepcopy
from datetime import datetime

from .source import ConfigurationSource
from .types import InvalidSourceError, PrecedencePolicy, SourceType

log = logging.getLogger(__name__)

BOOSTS: dict[PrecedencePolicy, dict[SourceType, int]] = {
    PrecedencePolicy.AWS_FIRST: {
        SourceType.SECRETS_STORE: 1000,
        SourceType.PARAMETER_STORE: 500,
        SourceType.OBJECT_STORE: 250,
    },
    PrecedencePolicy.LOCAL_FIRST: {
        SourceType.LOCAL_FILE: 1000,
        SourceType.ENVIRONMENT: 500,
        SourceType.OBJECT_STORE: 400,
        SourceType.PARAMETER_STORE: 250,
    },
    PrecedencePolicy.MERGE: {},
}
"""Priority boost per policy and source type."""

BASE_PRIORITIES: dict[PrecedencePolicy, dict[SourceType, int]] = {
    PrecedencePolicy.AWS_FIRST: {
        SourceType.SECRETS_STORE: 100,
        SourceType.PARAMETER_STORE: 90,
        SourceType.ENVIRONMENT: 50,
        SourceType.LOCAL_FILE: 50,
    },
    PrecedencePolicy.LOCAL_FIRST: {
        SourceType.ENVIRONMENT: 100,
        SourceType.LOCAL_FILE: 90,
        SourceType.SECRETS_STORE: 50,
        SourceType.PARAMETER_STORE: 40,
    },
}
"""Base priority given to loader outputs, per policy."""


def get_policy(policy: PrecedencePolicy | str) -> PrecedencePolicy:
    """Return a policy from its value.

    Unknown values fall back to ``aws-first`` with a warning.
    """
    try:
        return PrecedencePolicy(policy)
    except ValueError:
        log.warning(
            "Unknown precedence policy '%s', using '%s'.",
            policy,
            PrecedencePolicy.AWS_FIRST,
        )
        return PrecedencePolicy.AWS_FIRST


def source_priority(
    source_type: SourceType | str, policy: PrecedencePolicy | str
) -> int:
    """Return the default base priority of a source type under `policy`."""
    priorities = BASE_PRIORITIES.get(PrecedencePolicy(policy), {})
    return priorities.get(SourceType(source_type), 50)


def validate_sources(sources: Sequence[t.Any]) -> list[str]:
    """Check the structure of every source.

    Returns
    -------
    issues
        One message per problem found, qualified by the index of the source. Empty if
        all sources are valid.
    """
    issues: list[str] = []
    types = list(SourceType)
    for i, source in enumerate(sources):
        if source is None:
            issues.append(f"Source at index {i} is null or undefined")
            continue

        name = getattr(source, "name", None)
        if not isinstance(name, str) or not name:
            issues.append(f"Source at index {i} must have a valid name")

        if getattr(source, "type", None) not in types:
            issues.append(f"Source at index {i} must have a valid type")

        priority = getattr(source, "priority", None)
        if isinstance(priority, bool) or not isinstance(priority, int | float):
            issues.append(f"Source at index {i} must have a numeric priority")

        if not isinstance(getattr(source, "data", None), Mapping):
            issues.append(f"Source at index {i} must have a valid data object")

        if not isinstance(getattr(source, "loaded_at", None), datetime):
            issues.append(f"Source at index {i} must have a valid loadedAt date")

    return issues


def effective_priority(
    source: ConfigurationSource, policy: PrecedencePolicy | str
) -> float:
    """Return the base priority of `source` plus the boost of the policy."""
    boosts = BOOSTS[PrecedencePolicy(policy)]
    return source.priority + boosts.get(SourceType(source.type), 0)


def order_sources(
    sources: Sequence[ConfigurationSource], policy: PrecedencePolicy | str
) -> list[ConfigurationSource]:
    """Return sources from lowest to highest precedence.

    The sort is stable: sources with the same effective priority keep their relative
    order. Under the ``merge`` policy the given order is kept.
    """
    policy = PrecedencePolicy(policy)
    if policy is PrecedencePolicy.MERGE:
        return list(sources)
    return sorted(sources, key=lambda s: effective_priority(s, policy))


def deep_merge(target: Mapping[str, t.Any], source: Mapping[str, t.Any]) -> dict:
    """Merge `source` onto `target`, recursively.

    Nested mappings present on both sides are merged. Any other value of `source`
    (scalars, lists, None) replaces the value of `target`. Inputs are left untouched.
    """
    out = deepcopy(dict(target))
    for key, value in source.items():
        current = out.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            out[key] = deep_merge(current, value)
        else:
            out[key] = deepcopy(value)
    return out


def merge_sources(
    sources: Sequence[ConfigurationSource],
    policy: PrecedencePolicy | str = PrecedencePolicy.AWS_FIRST,
) -> dict[str, t.Any]:
    """Merge configuration sources according to a precedence policy.

    Parameters
    ----------
    sources
        Sources to merge.
    policy
        Precedence policy.

    Raises
    ------
    InvalidSourceError
        If any source is malformed. All issues are reported.
    """
    issues = validate_sources(sources)
    if issues:
        raise InvalidSourceError(issues)

    if not sources:
        return {}
    if len(sources) == 1:
        return sources[0].data  # type: ignore[return-value]

    policy = get_policy(policy)
    ordered = order_sources(sources, policy)
    log.debug(
        "Merging sources with policy %s: %s",
        policy,
        ", ".join(s.name for s in ordered),
    )

    merged: dict[str, t.Any] = {}
    for source in ordered:
        merged = deep_merge(merged, source.data)
    return merged
