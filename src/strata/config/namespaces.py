"""Organize a configuration into namespaces.

A namespace gathers the keys destined to one part of an application. Its values are
extracted from a flat or partially nested configuration with three strategies, applied
in this order, each one merged over the previous:

* direct key: ``{"database": {"host": ...}}``
* prefixed key: ``DATABASE_HOST`` gives ``{"host": ...}``
* path key: ``/app/database/connection/timeout`` gives
  ``{"connection": {"timeout": ...}}``

Keys that belong to no namespace are kept unmodified in the ``default`` namespace.
"""

from __future__ import annotations

import logging
import re
import typing as t
from collections.abc import Iterable, Mapping, Sequence
from copy import deepcopy
from datetime import UTC, datetime

from strata.utils import guess_value, to_camel_case

from .precedence import deep_merge
from .types import ConfigError

log = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

RESERVED_NAMESPACES = frozenset(
    ["config", "env", "process", "global", DEFAULT_NAMESPACE, "root"]
)
"""Names that cannot be used as namespaces (case insensitive)."""

_namespace_re = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_valid_namespace(name: t.Any) -> bool:
    """Return True if `name` is an identifier and not a reserved word."""
    return (
        isinstance(name, str)
        and _namespace_re.match(name) is not None
        and name.lower() not in RESERVED_NAMESPACES
    )


def _prefix(namespace: str) -> str:
    return f"{namespace.upper()}_"


def _path_marker(namespace: str) -> str:
    return f"/{namespace}/"


def _from_direct_key(config: Mapping[str, t.Any], namespace: str) -> dict:
    value = config.get(namespace)
    if isinstance(value, Mapping):
        return deepcopy(dict(value))
    return {}


def _from_prefixed_keys(config: Mapping[str, t.Any], namespace: str) -> dict:
    prefix = _prefix(namespace)
    out = {}
    for key, value in config.items():
        if not key.upper().startswith(prefix):
            continue
        name = to_camel_case(key[len(prefix) :])
        if name:
            out[name] = value
    return out


def _from_path_keys(config: Mapping[str, t.Any], namespace: str) -> dict:
    marker = _path_marker(namespace)
    out: dict[str, t.Any] = {}
    for key, value in config.items():
        index = key.find(marker)
        if index < 0:
            continue
        segments = [
            to_camel_case(s) for s in key[index + len(marker) :].split("/") if s
        ]
        if not segments:
            continue
        node = out
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value
    return out


def extract_namespace(config: Mapping[str, t.Any], namespace: str) -> dict[str, t.Any]:
    """Return the configuration of a single namespace.

    The three strategies are applied in order (direct key, prefixed keys, path keys).
    On a conflict for the same leaf, the later strategy wins.
    """
    extracted: dict[str, t.Any] = {}
    for strategy in (_from_direct_key, _from_prefixed_keys, _from_path_keys):
        extracted = deep_merge(extracted, strategy(config, namespace))
    return extracted


def _belongs_to(key: str, namespaces: Iterable[str]) -> bool:
    upper = key.upper()
    for namespace in namespaces:
        if key == namespace:
            return True
        if upper.startswith(_prefix(namespace)):
            return True
        if _path_marker(namespace) in key:
            return True
    return False


def organize(
    config: Mapping[str, t.Any], namespaces: Sequence[str]
) -> dict[str, dict[str, t.Any]]:
    """Split a configuration into namespaces.

    Parameters
    ----------
    config
        Flat or partially nested configuration.
    namespaces
        Names of the namespaces to extract.

    Returns
    -------
    organized
        One entry per namespace, possibly empty, and a ``default`` entry holding the
        keys that matched no namespace, if there are any.
    """
    organized = {ns: extract_namespace(config, ns) for ns in namespaces}

    remaining = {
        k: deepcopy(v) for k, v in config.items() if not _belongs_to(k, namespaces)
    }
    if remaining:
        organized[DEFAULT_NAMESPACE] = remaining

    return organized


class NamespaceReport(t.NamedTuple):
    """Result of :func:`validate_namespace`."""

    is_valid: bool
    issues: list[str]
    suggestions: list[str]


def validate_namespace(namespace: str, config: t.Any) -> NamespaceReport:
    """Check a namespace name and its configuration.

    Unlike the factory creation, which silently drops invalid namespaces, this reports
    every problem found with a suggestion on how to fix it.
    """
    issues = []
    suggestions = []

    if not isinstance(namespace, str) or not _namespace_re.match(namespace):
        issues.append(f"Invalid namespace name: {namespace}")
        suggestions.append("Use alphanumeric characters and underscores only")
    elif namespace.lower() in RESERVED_NAMESPACES:
        issues.append(f"Reserved namespace name: {namespace}")
        suggestions.append("Choose a different namespace name")

    if not isinstance(config, Mapping) or not config:
        issues.append("Invalid configuration structure for namespace")
        suggestions.append("Ensure configuration is a non-empty object")
    else:
        seen: dict[str, str] = {}
        conflicts = []
        for key in config:
            lower = str(key).lower()
            if lower in seen:
                conflicts.append(f"{seen[lower]}/{key}")
            else:
                seen[lower] = str(key)
        if conflicts:
            issues.append(f"Key conflicts found: {', '.join(conflicts)}")
            suggestions.append("Resolve key naming conflicts")

    return NamespaceReport(not issues, issues, suggestions)


class ConfigurationFactory:
    """Return the configuration of a namespace on demand.

    Each call returns a fresh copy, in which string values that represent booleans,
    numbers or JSON containers are converted.

    Parameters
    ----------
    namespace
        Name of the namespace.
    config
        Its configuration. It is copied.
    sources
        Names of the sources the configuration was aggregated from.
    """

    def __init__(
        self,
        namespace: str,
        config: Mapping[str, t.Any],
        sources: Iterable[str] = (),
    ):
        self.namespace = namespace
        self.config = deepcopy(dict(config))
        self.sources = list(sources)
        self.created_at = datetime.now(UTC)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.namespace!r}, keys={self.keys})"

    def __call__(self) -> dict[str, t.Any]:
        return _convert(deepcopy(self.config))

    @property
    def keys(self) -> list[str]:
        """Top-level keys of the namespace configuration."""
        return list(self.config)

    @property
    def is_valid(self) -> bool:
        """Whether the namespace passes :func:`validate_namespace`."""
        return validate_namespace(self.namespace, self.config).is_valid


def _convert(value: t.Any) -> t.Any:
    if isinstance(value, dict):
        return {k: _convert(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert(v) for v in value]
    return guess_value(value)


def create_factory(
    namespace: str, config: Mapping[str, t.Any], sources: Iterable[str] = ()
) -> ConfigurationFactory:
    """Return a factory for a namespace.

    Raises
    ------
    ConfigError
        If the namespace name is not valid.
    """
    if not is_valid_namespace(namespace):
        raise ConfigError(f"Invalid namespace name: {namespace}")
    return ConfigurationFactory(namespace, config, sources)


def create_factories(
    organized: Mapping[str, Mapping[str, t.Any]], sources: Iterable[str] = ()
) -> dict[str, ConfigurationFactory]:
    """Return factories for every usable namespace.

    Invalid or empty namespaces, and the ``default`` one, are skipped with a warning.
    """
    sources = list(sources)
    factories = {}
    for namespace, config in organized.items():
        if namespace == DEFAULT_NAMESPACE:
            continue
        if not is_valid_namespace(namespace):
            log.warning("Skipping invalid namespace '%s'.", namespace)
            continue
        if not isinstance(config, Mapping) or not config:
            log.warning("Skipping empty namespace '%s'.", namespace)
            continue
        factories[namespace] = ConfigurationFactory(namespace, config, sources)
    return factories
