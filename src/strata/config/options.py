"""Options of the configuration service.

Options are themselves a :class:`.Schema`, so they can be given as keyword arguments,
as a mapping with string values (coerced like any configuration), or read from a file.
"""

from __future__ import annotations

import typing as t
from collections.abc import Mapping
from os import path

from traitlets import Bool, Dict, Enum, Float, List, TraitError, Unicode, validate

from strata.utils import did_you_mean

from .loaders import FileLoader, JsonLoader, TomlLoader, YamlLoader
from .loaders.aws import DEFAULT_ENVIRONMENT_MAPPING
from .namespaces import is_valid_namespace
from .schema import Schema, validate_config
from .types import PrecedencePolicy, UnknownConfigKeyError

FILE_LOADERS: dict[str, type[FileLoader]] = {
    ".json": JsonLoader,
    ".toml": TomlLoader,
    ".yaml": YamlLoader,
    ".yml": YamlLoader,
}
"""Loader used for each options file extension."""


class ServiceOptions(Schema):
    """Options of :class:`.ConfigService`."""

    env_prefix = Unicode(
        None,
        allow_none=True,
        help="Only keep environment variables with this prefix, and strip it.",
    )
    validate_on_load = Bool(
        True,
        help=(
            "Validate the configuration against the schema. If False the raw "
            "aggregated data is used as is."
        ),
    )
    fail_on_error = Bool(False, help="Abort loading on the first loader failure.")
    fallback_to_local = Bool(
        True,
        help=(
            "Continue with the remaining loaders when one fails. Only effective if "
            "fail_on_error is False."
        ),
    )
    precedence = Enum(
        [p.value for p in PrecedencePolicy],
        default_value=None,
        allow_none=True,
        help=(
            "Merge sources with this precedence policy. If None, loaders outputs are "
            "merged in order, the last loader winning."
        ),
    )
    namespaces = List(
        Unicode(), help="Namespaces to organize the configuration into."
    )
    secret_name = Unicode(
        "/strata-config", help="Name of the secret, after the tier segment."
    )
    parameter_path = Unicode(
        "/strata-config", help="Path of the parameters, after the tier segment."
    )
    environment_mapping = Dict(
        value_trait=Unicode(),
        default_value=DEFAULT_ENVIRONMENT_MAPPING,
        help="Path segment of each environment tier.",
    )
    region = Unicode(
        None, allow_none=True, help="AWS region. Defaults to AWS_REGION."
    )
    with_decryption = Bool(True, help="Decrypt SecureString parameters.")
    timeout = Float(
        None, allow_none=True, help="Maximum duration of initialization, in seconds."
    )
    concurrent = Bool(False, help="Run loaders concurrently.")
    override_file = Unicode(
        ".env",
        allow_none=True,
        help="Local override file applied in the local tier. None to disable.",
    )
    profile_variable = Unicode(
        "AWS_PROFILE",
        help="The local override file is only applied if this variable is set.",
    )
    primary_variable = Unicode("APP_ENV", help="Variable holding the tier.")
    secondary_variable = Unicode(
        "NODE_ENV", help="Variable holding the tier, if the primary one is invalid."
    )

    @validate("timeout")
    def _check_timeout(self, proposal: dict) -> float | None:
        value = proposal["value"]
        if value is not None and value <= 0:
            raise TraitError(f"timeout must be positive, received {value}.")
        return value

    @validate("namespaces")
    def _check_namespaces(self, proposal: dict) -> list[str]:
        invalid = [ns for ns in proposal["value"] if not is_valid_namespace(ns)]
        if invalid:
            raise TraitError(f"Invalid namespace names: {invalid}")
        return proposal["value"]

    @classmethod
    def check_keys(cls, data: Mapping[str, t.Any]) -> None:
        """Raise if `data` contains keys that are not options.

        Raises
        ------
        UnknownConfigKeyError
        """
        names = cls.class_trait_names(config=True)
        for key in data:
            if key in names:
                continue
            msg = f"Unknown option '{key}'"
            if (suggestion := did_you_mean(names, key)) is not None:
                msg += f" (did you mean '{suggestion}'?)"
            raise UnknownConfigKeyError(msg)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, t.Any], origin: str | None = None
    ) -> ServiceOptions:
        """Return validated options from a mapping."""
        cls.check_keys(data)
        return validate_config(cls, data, origin=origin)

    @classmethod
    def from_file(cls, filename: str, **kwargs: t.Any) -> ServiceOptions:
        """Return validated options read from a JSON, TOML or YAML file.

        Parameters
        ----------
        filename
            Path to the file. The format is deduced from the extension.
        kwargs
            Passed to the loader, for instance ``table="tool.strata"`` for a TOML
            file.
        """
        ext = path.splitext(filename)[1].lower()
        try:
            loader_cls = FILE_LOADERS[ext]
        except KeyError as err:
            raise ValueError(
                f"Unsupported options file '{filename}' "
                f"(supported: {', '.join(FILE_LOADERS)})."
            ) from err
        loader = loader_cls(filename, **kwargs)
        data = loader.read()
        return cls.from_mapping(data or {}, origin=loader.name)
