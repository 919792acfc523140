"""Configuration loaders.

Each loader adapts one backend (process environment, AWS Secrets Manager, SSM
Parameter Store, S3 objects, local files) and exposes the same small API: an awaitable
:meth:`~.ConfigLoader.load` returning a flat mapping, an awaitable
:meth:`~.ConfigLoader.is_available` probe, and a :attr:`~.ConfigLoader.name` for
diagnostics.

Loaders never raise when there is simply nothing to load, they return an empty
mapping instead. Only actual backend failures raise.
"""

from .aws import ParameterStoreLoader, S3Loader, SecretsManagerLoader
from .core import ConfigLoader, ConfigValue, DictLoader, FileLoader, Undefined
from .envfile import EnvFileLoader
from .environment import EnvironmentLoader
from .json import JsonLoader
from .toml import TomlLoader
from .yaml import YamlLoader

__all__ = [
    "ConfigLoader",
    "ConfigValue",
    "DictLoader",
    "EnvFileLoader",
    "EnvironmentLoader",
    "FileLoader",
    "JsonLoader",
    "ParameterStoreLoader",
    "S3Loader",
    "SecretsManagerLoader",
    "TomlLoader",
    "Undefined",
    "YamlLoader",
]
