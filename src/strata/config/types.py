"""Type definitions."""

import enum
import typing as t
from collections import abc

LOCAL = "local"
"""Tier in which remote sources are never consulted."""

TIERS = ("production", "test", "development", LOCAL)
"""Valid environment tiers."""


class SourceType(enum.StrEnum):
    """Kind of backend a configuration source was obtained from."""

    ENVIRONMENT = "environment"
    SECRETS_STORE = "secrets-store"
    PARAMETER_STORE = "parameter-store"
    LOCAL_FILE = "local-file"
    OBJECT_STORE = "object-store"


class PrecedencePolicy(enum.StrEnum):
    """Rule deciding which source wins when keys collide."""

    AWS_FIRST = "aws-first"
    LOCAL_FIRST = "local-first"
    MERGE = "merge"


class ConfigError(Exception):
    """General exception for configuration aggregation."""


class NotInitializedError(ConfigError):
    """Configuration was accessed before being loaded."""

    def __init__(self, msg: str | None = None) -> None:
        if msg is None:
            msg = "Configuration service not initialized. Call initialize() first."
        super().__init__(msg)


class ReadOnlyConfigError(ConfigError):
    """Attempt to modify a validated configuration."""


class UnknownConfigKeyError(ConfigError):
    """Key does not lead to any known option."""


class ConfigParsingError(ConfigError):
    """Unable to parse a config value."""


class MultipleConfigKeyError(ConfigError):
    """A parameter was specified more than once."""

    def __init__(
        self, key: str, values: abc.Sequence[t.Any], msg: str | None = None
    ) -> None:
        if msg is None:
            msg = (
                f"Configuration key '{key}' was specified more than once "
                f"with values {values}"
            )
        super().__init__(msg)

        self.message = msg
        self.key = key
        self.values = values


class LoaderError(ConfigError):
    """A loader failed to fetch its data.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, msg: str, loader: str) -> None:
        super().__init__(msg)
        self.loader = loader


class RemoteSourceError(ConfigError):
    """A remote backend refused or failed a request."""

    def __init__(self, msg: str, service: str, operation: str) -> None:
        super().__init__(msg)
        self.service = service
        self.operation = operation


class MissingEnvironmentMappingError(ConfigError):
    """The active tier has no path segment configured."""

    def __init__(self, tier: str, available: abc.Iterable[str]) -> None:
        self.tier = tier
        self.available = list(available)
        super().__init__(
            f"No environment mapping found for '{tier}'. "
            f"Available environments: {', '.join(self.available) or 'none'}"
        )


class InvalidSourceError(ConfigError):
    """One or more configuration sources are malformed."""

    def __init__(self, issues: abc.Sequence[str]) -> None:
        self.issues = list(issues)
        super().__init__("Invalid configuration sources: " + "; ".join(self.issues))


class ConfigValidationError(ConfigError):
    """Configuration does not comply with its schema.

    Parameters
    ----------
    issues
        Pairs of (dotted key path, message), one per violation.
    """

    def __init__(self, issues: abc.Sequence[tuple[str, str]]) -> None:
        self.issues = list(issues)
        lines = [f"  {path}: {msg}" for path, msg in self.issues]
        super().__init__(
            f"Configuration validation failed ({len(self.issues)} issue(s)):\n"
            + "\n".join(lines)
        )

    @property
    def paths(self) -> list[str]:
        """Key paths that failed validation."""
        return [path for path, _ in self.issues]


class InitializationCancelledError(ConfigError):
    """Initialization was cancelled or timed out."""

    def __init__(self, msg: str, timeout: float | None = None) -> None:
        super().__init__(msg)
        self.timeout = timeout
