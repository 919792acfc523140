"""Aggregate configuration from multiple sources."""

from .environment import resolve_tier
from .loaders import (
    ConfigLoader,
    ConfigValue,
    DictLoader,
    EnvFileLoader,
    EnvironmentLoader,
    FileLoader,
    JsonLoader,
    ParameterStoreLoader,
    SecretsManagerLoader,
    TomlLoader,
    Undefined,
    YamlLoader,
)
from .namespaces import (
    ConfigurationFactory,
    create_factories,
    create_factory,
    extract_namespace,
    is_valid_namespace,
    organize,
    validate_namespace,
)
from .options import ServiceOptions
from .orchestrator import LoadingOrchestrator
from .precedence import deep_merge, merge_sources, validate_sources
from .schema import DefaultConfig, Schema, schema_for_tier, validate_config
from .service import ConfigService, State
from .source import ConfigurationSource
from .types import (
    ConfigError,
    ConfigValidationError,
    InitializationCancelledError,
    InvalidSourceError,
    LoaderError,
    MissingEnvironmentMappingError,
    NotInitializedError,
    PrecedencePolicy,
    ReadOnlyConfigError,
    RemoteSourceError,
    SourceType,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "ConfigService",
    "ConfigValidationError",
    "ConfigValue",
    "ConfigurationFactory",
    "ConfigurationSource",
    "DefaultConfig",
    "DictLoader",
    "EnvFileLoader",
    "EnvironmentLoader",
    "FileLoader",
    "InitializationCancelledError",
    "InvalidSourceError",
    "JsonLoader",
    "LoaderError",
    "LoadingOrchestrator",
    "MissingEnvironmentMappingError",
    "NotInitializedError",
    "ParameterStoreLoader",
    "PrecedencePolicy",
    "ReadOnlyConfigError",
    "RemoteSourceError",
    "Schema",
    "SecretsManagerLoader",
    "ServiceOptions",
    "SourceType",
    "State",
    "TomlLoader",
    "Undefined",
    "YamlLoader",
    "create_factories",
    "create_factory",
    "deep_merge",
    "extract_namespace",
    "is_valid_namespace",
    "merge_sources",
    "organize",
    "resolve_tier",
    "schema_for_tier",
    "validate_config",
    "validate_namespace",
    "validate_sources",
]
