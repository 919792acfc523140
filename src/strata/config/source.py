"""Labeled chunks of configuration data."""

from __future__ import annotations

import typing as t
from collections.abc import Mapping
from datetime import UTC, datetime

from .types import SourceType

if t.TYPE_CHECKING:
    from .loaders import ConfigLoader


class ConfigurationSource:
    """Configuration data along with where it came from.

    No check is done at creation, so that malformed sources can be reported all at
    once by :func:`.precedence.validate_sources`.

    Parameters
    ----------
    name
        Human readable identifier.
    type
        Kind of backend, a :class:`.SourceType` or its value.
    priority
        Base priority, on an arbitrary scale.
    data
        Key/values of this source. May be nested.
    loaded_at
        Time of retrieval. Defaults to now.
    namespace
        Optional logical group.
    errors
        Non-fatal issues encountered while loading.
    """

    def __init__(
        self,
        name: str,
        type: SourceType | str,
        priority: int | float,
        data: Mapping[str, t.Any],
        loaded_at: datetime | None = None,
        namespace: str | None = None,
        errors: list[str] | None = None,
    ):
        self.name = name
        self.type = type
        self.priority = priority
        self.data = data
        self.loaded_at = datetime.now(UTC) if loaded_at is None else loaded_at
        self.namespace = namespace
        self.errors = [] if errors is None else errors

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.name!r}, type={self.type!s}, "
            f"priority={self.priority}, keys={len(self.data or {})})"
        )

    @classmethod
    def from_loader(
        cls,
        loader: ConfigLoader,
        data: Mapping[str, t.Any],
        errors: list[str] | None = None,
        priority: int | float | None = None,
    ) -> t.Self:
        """Label the output of a loader."""
        if priority is None:
            priority = 0 if loader.priority is None else loader.priority
        return cls(
            loader.name, loader.source_type, priority, dict(data), errors=errors
        )

    @property
    def failed(self) -> bool:
        """True if errors were recorded for this source."""
        return bool(self.errors)
