"""Declarative configuration schemas.

A schema is a subclass of :class:`Schema` whose class attributes are
:class:`traits<traitlets.TraitType>`. Other schemas can be nested, either as a class
definition inside the schema or by assigning a schema class to an attribute; they
become *subsections* and are accessed with dot-separated keys::

    class AppConfig(Schema):
        PORT = Int(3000)
        API_KEY = Unicode().tag(required=True)

        class database(Schema):
            host = Unicode("localhost")
            port = Int(5432)

:func:`validate_config` checks raw configuration data against a schema, coercing
strings to the types the traits expect, and returns a frozen instance.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any, Generic, Self, TypeVar, overload

from traitlets import (
    Any as AnyTrait,
    Enum,
    HasTraits,
    Int,
    TraitError,
    TraitType,
    Unicode,
    validate,
)

from strata.utils import did_you_mean, mask_value

from .loaders import ConfigValue
from .precedence import deep_merge
from .types import (
    LOCAL,
    TIERS,
    ConfigParsingError,
    ConfigValidationError,
    ReadOnlyConfigError,
)

log = logging.getLogger(__name__)

S = TypeVar("S", bound="Schema")


class Subsection(Generic[S]):
    """Descriptor for subsection.

    The subsection instance is created along with its parent.
    """

    klass: type[S]
    private_name: str

    def __init__(self, schema: type[S]) -> None:
        self.klass = schema

    def __set_name__(self, owner: type[Any], name: str) -> None:
        self.private_name = "__" + name

    @overload
    def __get__(self, obj: None, owner: type[Any]) -> Self: ...

    @overload
    def __get__(self, obj: Schema, owner: type[Any]) -> S: ...

    def __get__(self, obj: Schema | None, owner: type[Any]) -> Self | S:
        if obj is None:
            return self
        return obj.__dict__[self.private_name]

    def __set__(self, obj: Schema, value: S) -> None:
        obj.__dict__[self.private_name] = value


def freeze_value(value: Any) -> Any:
    """Return a read-only equivalent of `value`, recursively."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_value(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(freeze_value(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    if isinstance(value, frozenset):
        return set(value)
    return value


class Schema(HasTraits):
    """Object holding typed configuration values.

    The main features of this class are:

    * all traits are automatically tagged as configurable (``.tag(config=True)``),
      unless already tagged.
    * traits tagged with ``required=True`` must be given a value when validating
      configuration data.
    * any class attribute that is a subclass of Schema is registered as a nested
      *subsection* and replaced by a :class:`.Subsection` descriptor.
    * once :meth:`freeze` is called, values cannot be changed anymore, and containers
      are replaced by read-only equivalents.

    Values can be obtained as attributes or with (dot-separated) keys:
    ``config.database.port == config["database.port"]``.
    """

    _subsections: dict[str, Subsection] = {}
    """Mapping of subsections descriptors."""

    _frozen: bool = False

    def __init_subclass__(cls, /, **kwargs: Any) -> None:
        """Call :meth:`_setup_schema`."""
        super().__init_subclass__(**kwargs)
        cls._setup_schema()

    @classmethod
    def _setup_schema(cls) -> None:
        """Tag traits and register subsections after class definition."""
        cls._subsections = {}
        for base in reversed(cls.__bases__):
            if issubclass(base, Schema):
                cls._subsections |= base._subsections

        for k, v in list(cls.__dict__.items()):
            if isinstance(v, TraitType) and v.metadata.get("config", True):
                v.tag(config=True)

            if isinstance(v, type) and issubclass(v, Schema):
                v = Subsection(v)
                v.__set_name__(cls, k)
                setattr(cls, k, v)

            if isinstance(v, Subsection):
                cls._subsections[k] = v

        cls.setup_class(cls.__dict__)  # type: ignore

    def __init__(self, **kwargs: Any) -> None:
        super().__init__()
        for name, subsection_cls in self.class_subsections().items():
            setattr(self, name, subsection_cls())
        for key, value in kwargs.items():
            self[key] = value

    def __setattr__(self, name: str, value: Any) -> None:
        if self._frozen and (name in self._subsections or self.has_trait(name)):
            raise ReadOnlyConfigError(
                f"Cannot set '{name}', configuration is read-only."
            )
        super().__setattr__(name, value)

    def __setitem__(self, key: str, value: Any) -> None:
        *path, name = key.split(".")
        subsection = self[".".join(path)] if path else self
        if name not in subsection.trait_names(config=True):
            raise KeyError(f"Could not resolve key '{key}'")
        setattr(subsection, name, value)

    def freeze(self) -> None:
        """Make this section and all its subsections read-only."""
        for subsection in self.subsections().values():
            subsection.freeze()
        for name in self.trait_names(config=True):
            self._trait_values[name] = freeze_value(getattr(self, name))
        self._frozen = True

    @property
    def frozen(self) -> bool:
        """Whether values can still be changed."""
        return self._frozen

    def __str__(self) -> str:
        return self.__class__.__name__

    def __repr__(self) -> str:
        values = ", ".join(
            f"{k}={mask_value(k, v)!r}" for k, v in self.as_dict().items()
        )
        return f"{self.__class__.__name__}({values})"

    def __getitem__(self, key: str) -> Any:
        """Obtain value at `key`."""
        fullpath = key.split(".")
        subsection = self
        for i, name in enumerate(fullpath):
            if name in subsection._subsections:
                subsection = getattr(subsection, name)
                continue
            if i == len(fullpath) - 1 and name in subsection.trait_names(config=True):
                return getattr(subsection, name)

            msg = f"Could not resolve key '{key}'"
            suggestions = subsection.keys(subsections=True, recursive=False)
            if (suggestion := did_you_mean(suggestions, name)) is not None:
                suggestion_fullkey = ".".join([*fullpath[:i], suggestion])
                msg += f" (did you mean '{suggestion_fullkey}'?)"

            raise KeyError(msg)

        return subsection

    def get(self, key: str, default: Any | None = None) -> Any:
        """Obtain value at `key`."""
        try:
            return self[key]
        except KeyError:
            return default

    def __contains__(self, key: str) -> bool:
        """Return if key leads to an existing subsection or trait."""
        try:
            self[key]
        except KeyError:
            return False
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Schema):
            return False
        return self.as_dict() == other.as_dict()

    def keys(self, subsections: bool = False, recursive: bool = True) -> list[str]:
        """Return keys of this section.

        Parameters
        ----------
        subsections
            Include keys of subsections themselves.
        recursive
            Include keys of traits in subsections, dot-separated.
        """
        keys = list(self.trait_names(config=True))
        for name, subsection in self.subsections().items():
            if subsections:
                keys.append(name)
            if recursive:
                keys += [
                    f"{name}.{k}" for k in subsection.keys(subsections=subsections)
                ]
        return keys

    def as_dict(self, nest: bool = False) -> dict[str, Any]:
        """Return values as a dictionary.

        Values are copies: modifying them does not affect this section.

        Parameters
        ----------
        nest
            If True return a nested dictionnary. Otherwise return a flat dictionnary
            with dot-separated keys.
        """
        output: dict[str, Any] = {
            name: _thaw(getattr(self, name)) for name in self.trait_names(config=True)
        }
        for name, subsection in self.subsections().items():
            sub = subsection.as_dict(nest=nest)
            if nest:
                output[name] = sub
            else:
                output |= {f"{name}.{k}": v for k, v in sub.items()}
        return output

    @classmethod
    def class_subsections(cls) -> dict[str, type[Schema]]:
        """Return subsections types."""
        return {name: descr.klass for name, descr in cls._subsections.items()}

    def subsections(self) -> dict[str, Schema]:
        """Return subsections instances."""
        return {name: getattr(self, name) for name in self._subsections}

    @classmethod
    def required_keys(cls) -> list[str]:
        """Return keys of all required traits, recursively."""
        keys = [
            name
            for name, trait in cls.class_traits(config=True).items()
            if trait.metadata.get("required", False)
        ]
        for name, subsection in cls.class_subsections().items():
            keys += [f"{name}.{k}" for k in subsection.required_keys()]
        return keys


def _accepts_string(trait: TraitType) -> bool:
    return isinstance(trait, Unicode | AnyTrait)


def coerce_value(cv: ConfigValue) -> Any:
    """Return the value of `cv` converted for its trait.

    Only strings are converted, and only if the trait does not expect a string.
    JSON objects and arrays are decoded first, then the trait's own string parsing is
    used. A string that cannot be parsed is returned unchanged, for the trait
    validation to reject it.
    """
    value = cv.input
    if not isinstance(value, str) or cv.trait is None or _accepts_string(cv.trait):
        return value

    stripped = value.strip()
    if stripped.startswith(("{", "[")):
        try:
            return json.loads(stripped)
        except ValueError:
            pass

    try:
        cv.parse()
    except ConfigParsingError:
        return value
    return cv.get_value()


def _nest_dotted(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Nest dot-separated keys: ``{"a.b": 1}`` gives ``{"a": {"b": 1}}``."""
    nested = {k: v for k, v in raw.items() if not (isinstance(k, str) and "." in k)}
    for key, value in raw.items():
        if key in nested:
            continue
        *path, last = key.split(".")
        branch: dict[str, Any] = {last: value}
        for name in reversed(path):
            branch = {name: branch}
        nested = deep_merge(nested, branch)
    return nested


def _validate_section(
    section: Schema,
    raw: Mapping[str, Any],
    path: list[str],
    issues: list[tuple[str, str]],
    origin: str | None,
) -> None:
    for name, trait in section.traits(config=True).items():
        fullkey = ".".join([*path, name])
        if name not in raw:
            if trait.metadata.get("required", False):
                issues.append((fullkey, "Required value is missing."))
            continue

        cv = ConfigValue(raw[name], fullkey, origin)
        cv.trait = trait
        try:
            setattr(section, name, coerce_value(cv))
        except TraitError as err:
            issues.append((fullkey, str(err)))

    for name, subsection in section.subsections().items():
        fullkey = ".".join([*path, name])
        subraw = raw.get(name, {})
        if not isinstance(subraw, Mapping):
            issues.append(
                (fullkey, f"Expected a mapping, received {type(subraw).__name__}.")
            )
            subraw = {}
        _validate_section(subsection, subraw, [*path, name], issues, origin)


def validate_config(
    schema: type[S], raw: Mapping[str, Any], origin: str | None = None
) -> S:
    """Validate raw configuration data against a schema.

    Parameters
    ----------
    schema
        Schema class.
    raw
        Configuration data, nested or with dot-separated keys. Keys unknown to the
        schema are ignored.
    origin
        Description of where the data comes from, for information purpose.

    Returns
    -------
    config
        Frozen instance of the schema.

    Raises
    ------
    ConfigValidationError
        Listing every key that failed validation.
    """
    config = schema()
    issues: list[tuple[str, str]] = []
    _validate_section(config, _nest_dotted(raw), [], issues, origin)

    if issues:
        raise ConfigValidationError(issues)

    config.freeze()
    log.debug("Validated configuration against %s.", schema.__name__)
    return config


class DefaultConfig(Schema):
    """Default schema for applications configured from the environment."""

    NODE_ENV = Unicode(None, allow_none=True, help="Secondary environment tier.")
    APP_ENV = Enum(list(TIERS), default_value=LOCAL, help="Environment tier.")
    AWS_REGION = Unicode(None, allow_none=True, help="AWS region.")
    AWS_PROFILE = Unicode(None, allow_none=True, help="AWS credentials profile.")
    PORT = Int(3000, help="Port the application listens on.")
    HOST = Unicode("localhost", help="Host the application binds to.")
    LOG_LEVEL = Enum(
        ["error", "warn", "info", "debug", "verbose"],
        default_value="info",
        help="Verbosity of the application logs.",
    )
    DATABASE_URL = Unicode(None, allow_none=True, help="Database connection URL.")
    REDIS_URL = Unicode(None, allow_none=True, help="Redis connection URL.")

    @validate("PORT")
    def _check_port(self, proposal: dict) -> int:
        if proposal["value"] <= 0:
            raise TraitError(f"PORT must be positive, received {proposal['value']}.")
        return proposal["value"]


class RemoteConfig(DefaultConfig):
    """Default schema outside the local tier, where a region is needed."""

    AWS_REGION = Unicode(help="AWS region.").tag(required=True)

    @validate("AWS_REGION")
    def _check_region(self, proposal: dict) -> str:
        if not proposal["value"]:
            raise TraitError("AWS_REGION must not be empty.")
        return proposal["value"]


def schema_for_tier(tier: str) -> type[DefaultConfig]:
    """Return the default schema for an environment tier."""
    if tier == LOCAL:
        return DefaultConfig
    return RemoteConfig
